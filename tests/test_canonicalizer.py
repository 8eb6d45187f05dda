#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
规范地址选择测试
"""
from datetime import datetime

import pytest

from address_dedup.core.canonicalizer import Canonicalizer
from address_dedup.core.exceptions import ConfigurationError
from address_dedup.core.models import DuplicateCluster
from conftest import PARIS_LAT, PARIS_LON, meters_north


@pytest.fixture
def canonicalizer(config):
    return Canonicalizer(config)


def test_representative_follows_source_priority(canonicalizer, paix_pair):
    bano, osm = paix_pair
    result = canonicalizer.canonicalize(DuplicateCluster((0, 1)), [osm, bano])

    assert result.representative == 'bano:750021234'
    assert result.source_ids == ('bano:750021234', 'osm:node/42')
    # BANO 是默认的坐标权威来源
    assert (result.lat, result.lon) == (bano.lat, bano.lon)


def test_sparse_record_is_backfilled(canonicalizer, make_normalized):
    sparse = make_normalized(source='bano', source_id='b1', lat=PARIS_LAT, lon=PARIS_LON,
                             house_number='2', street='Rue de la Paix')
    complete = make_normalized(source='osm', source_id='node/7', lat=meters_north(PARIS_LAT, 5), lon=PARIS_LON,
                               house_number='2', street='R. de la Paix', city='Paris', postcode='75002')

    result = canonicalizer.canonicalize(DuplicateCluster((0, 1)), [sparse, complete])

    assert result.representative == 'bano:b1'
    assert result.house_number == '2'
    assert result.street_name == 'rue de la paix'
    assert result.city == 'paris'
    assert result.postcode == '75002'


def test_completeness_then_recency_break_ties(canonicalizer, make_normalized):
    older = make_normalized(source='osm', source_id='node/1', house_number='2', street='Rue A',
                            city='Paris', observed_at=datetime(2020, 1, 1))
    newer = make_normalized(source='osm', source_id='node/2', house_number='2', street='Rue B',
                            city='Paris', observed_at=datetime(2023, 1, 1))
    fuller = make_normalized(source='osm', source_id='node/3', house_number='2', street='Rue C',
                             city='Paris', postcode='75002')

    assert canonicalizer.canonicalize(DuplicateCluster((0, 1)), [older, newer]).street_name == 'rue b'
    assert canonicalizer.canonicalize(DuplicateCluster((0, 1, 2)), [older, newer, fuller]).street_name == 'rue c'


def test_identity_breaks_remaining_ties(canonicalizer, make_normalized):
    a = make_normalized(source='openaddresses', source_id='b', street='Rue B')
    b = make_normalized(source='openaddresses', source_id='a', street='Rue A')

    assert canonicalizer.canonicalize(DuplicateCluster((0, 1)), [a, b]).representative == 'openaddresses:a'


def test_centroid_without_authoritative_source(canonicalizer, make_normalized):
    a = make_normalized(source='osm', source_id='1', lat=48.0, lon=2.0, street='Rue A')
    b = make_normalized(source='openaddresses', source_id='2', lat=48.002, lon=2.004, street='Rue A')
    c = make_normalized(source='openaddresses', source_id='3', street='Rue A')

    result = canonicalizer.canonicalize(DuplicateCluster((0, 1, 2)), [a, b, c])

    assert result.lat == pytest.approx(48.001)
    assert result.lon == pytest.approx(2.002)


def test_no_coordinates_at_all(canonicalizer, make_normalized):
    a = make_normalized(source='osm', source_id='1', street='Rue A')
    result = canonicalizer.canonicalize(DuplicateCluster((0,)), [a])

    assert result.lat is None and result.lon is None
    assert result.to_row()['lat'] is None


def test_canonicalization_is_idempotent(canonicalizer, make_normalized, paix_pair):
    extra = make_normalized(source='openaddresses', source_id='oa-1', lat=48.86861, lon=2.33171,
                            house_number='2', street='Rue de la Paix', city='Paris')
    records = list(paix_pair) + [extra]
    cluster = DuplicateCluster((0, 1, 2))

    first = canonicalizer.canonicalize(cluster, records)
    second = canonicalizer.canonicalize(cluster, records)

    assert first == second
    assert first.to_row() == second.to_row()
    assert first.to_row()['source_ids'] == 'bano:750021234;openaddresses:oa-1;osm:node/42'


def test_source_priority_is_required(config):
    config['canonical']['source_priority'] = []
    with pytest.raises(ConfigurationError):
        Canonicalizer(config)
