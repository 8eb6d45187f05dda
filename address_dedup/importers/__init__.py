#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/19 11:20
# @Author  : hejun
"""
数据源导入器
"""
from pathlib import Path
from typing import Union

from address_dedup.core.models import SourceTag
from address_dedup.importers.bano import BanoImporter
from address_dedup.importers.base import BaseImporter
from address_dedup.importers.openaddresses import OpenAddressesImporter
from address_dedup.importers.osm import OsmImporter

IMPORTERS = {
    SourceTag.OSM: OsmImporter,
    SourceTag.BANO: BanoImporter,
    SourceTag.OPENADDRESSES: OpenAddressesImporter,
}


def create_importer(source, path: Union[str, Path], **kwargs) -> BaseImporter:
    """按数据源标识创建导入器"""
    return IMPORTERS[SourceTag.parse(source)](path, **kwargs)


__all__ = [
    'BaseImporter',
    'BanoImporter',
    'OpenAddressesImporter',
    'OsmImporter',
    'IMPORTERS',
    'create_importer',
]
