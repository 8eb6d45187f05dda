#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
测试公共夹具
"""
import pytest

from address_dedup.config.config import Config
from address_dedup.core.address_normalizer import AddressNormalizer
from address_dedup.core.models import RawAddressRecord, RawFields, SourceTag
from address_dedup.core.spatial_index import METERS_PER_DEGREE

# 巴黎 2 rue de la Paix 附近
PARIS_LAT = 48.8686
PARIS_LON = 2.3317


def meters_north(lat: float, meters: float) -> float:
    """同经度向北移动 meters 米后的纬度"""
    return lat + meters / METERS_PER_DEGREE


def build_raw(source='bano', source_id='1', lat=None, lon=None, house_number=None,
              street=None, city=None, postcode=None, observed_at=None) -> RawAddressRecord:
    return RawAddressRecord(
        source=SourceTag.parse(source),
        source_id=source_id,
        lat=lat,
        lon=lon,
        raw_fields=RawFields(house_number=house_number, street=street, city=city, postcode=postcode),
        observed_at=observed_at,
    )


@pytest.fixture
def config():
    cfg = Config.default_config()
    cfg['performance']['n_jobs'] = 2
    cfg['performance']['show_progress'] = False
    return cfg


@pytest.fixture
def make_raw():
    return build_raw


@pytest.fixture
def normalizer(config):
    return AddressNormalizer(config['normalization'])


@pytest.fixture
def make_normalized(normalizer):
    def factory(**kwargs):
        return normalizer.normalize(build_raw(**kwargs))
    return factory


@pytest.fixture
def paix_pair(make_normalized):
    """同一地址：BANO全称街道名与OSM缩写街道名，相距约13米"""
    bano = make_normalized(source='bano', source_id='750021234', lat=PARIS_LAT, lon=PARIS_LON,
                           house_number='2', street='Rue de la Paix', city='Paris', postcode='75002')
    osm = make_normalized(source='osm', source_id='node/42', lat=meters_north(PARIS_LAT, 13), lon=PARIS_LON,
                          house_number='2', street='R. de la Paix', city='Paris', postcode='75002')
    return bano, osm


def write_bano(path, rows):
    """写无表头BANO CSV"""
    lines = [','.join(str(value) for value in row) for row in rows]
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path


def write_openaddresses(path, rows):
    header = 'LON,LAT,NUMBER,STREET,UNIT,CITY,DISTRICT,REGION,POSTCODE,ID,HASH'
    lines = [header] + [','.join(str(value) for value in row) for row in rows]
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path
