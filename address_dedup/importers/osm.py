#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/19 11:00
# @Author  : hejun
"""
OpenStreetMap 导入器
读取 .osm.pbf / .osm 中带 addr:* 标签的节点，依赖 pyosmium（可选依赖 osm）
"""
from typing import Iterator

from address_dedup.core.exceptions import ConfigurationError, SourceReadError
from address_dedup.core.models import RawAddressRecord, RawFields, SourceTag
from address_dedup.importers.base import BaseImporter, clean_value, valid_position
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)


def _load_osmium():
    try:
        import osmium
    except ImportError as e:
        raise ConfigurationError(
            "读取OSM数据需要安装 pyosmium: pip install 'address-dedup[osm]'"
        ) from e
    return osmium


def node_to_record(node_id, tags, lat, lon, timestamp=None) -> RawAddressRecord:
    """节点标签 -> 原始记录"""
    lat, lon = valid_position(lat, lon)
    return RawAddressRecord(
        source=SourceTag.OSM,
        source_id=f"node/{node_id}",
        lat=lat,
        lon=lon,
        raw_fields=RawFields(
            house_number=clean_value(tags.get('addr:housenumber')),
            # 法国的地名式地址只有 addr:place
            street=clean_value(tags.get('addr:street')) or clean_value(tags.get('addr:place')),
            city=clean_value(tags.get('addr:city')) or clean_value(tags.get('addr:district')),
            postcode=clean_value(tags.get('addr:postcode')),
        ),
        observed_at=timestamp,
    )


ADDRESS_KEYS = ('addr:housenumber', 'addr:street', 'addr:place', 'addr:city', 'addr:district', 'addr:postcode')


class OsmImporter(BaseImporter):
    """OSM 节点地址导入器，边解析边产出记录"""

    source = SourceTag.OSM

    def iter_records(self) -> Iterator[RawAddressRecord]:
        osmium = _load_osmium()

        count = 0
        try:
            processor = osmium.FileProcessor(str(self.path), osmium.osm.NODE) \
                .with_filter(osmium.filter.KeyFilter(*ADDRESS_KEYS))
            for n in processor:
                # osmium 对象只在本次迭代内有效，必须立即拷贝
                tags = {tag.k: tag.v for tag in n.tags if tag.k.startswith('addr:')}
                lat = lon = None
                if n.location.valid():
                    lat, lon = n.location.lat, n.location.lon
                timestamp = n.timestamp if n.timestamp.timestamp() > 0 else None
                count += 1
                yield node_to_record(n.id, tags, lat, lon, timestamp)
        except RuntimeError as e:
            raise SourceReadError(self.source.value, self.path, str(e)) from e

        logger.info(f"[{self.source.value}] 从 {self.path} 读取到 {count:,} 个地址节点")
