#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/19 10:20
# @Author  : hejun
"""
OpenAddresses 导入器
列：LON,LAT,NUMBER,STREET,UNIT,CITY,DISTRICT,REGION,POSTCODE,ID,HASH
路径可以是单个CSV，也可以是包含多个CSV的目录
"""
from pathlib import Path
from typing import Iterator

from address_dedup.core.models import RawAddressRecord, RawFields, SourceTag
from address_dedup.importers.base import BaseImporter, clean_value, parse_coordinate, valid_position
from address_dedup.utils.file_utils import FileUtils
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAddressesImporter(BaseImporter):
    """OpenAddresses 导入器"""

    source = SourceTag.OPENADDRESSES

    REQUIRED_COLUMNS = ['LON', 'LAT', 'NUMBER', 'STREET']

    def iter_records(self) -> Iterator[RawAddressRecord]:
        files = FileUtils.list_csv_files(self.path)
        if self.path.is_dir():
            if not files:
                logger.warning(f"[{self.source.value}] 目录中没有CSV文件: {self.path}")
            else:
                logger.info(f"[{self.source.value}] 目录 {self.path} 中找到 {len(files)} 个CSV文件")

        for filepath in files:
            yield from self._read_file(filepath)

    def _source_id_prefix(self, filepath: Path) -> str:
        if self.path.is_dir():
            return filepath.relative_to(self.path).as_posix()
        return filepath.name

    def _read_file(self, filepath: Path) -> Iterator[RawAddressRecord]:
        prefix = self._source_id_prefix(filepath)
        folder = self.path.is_dir()
        line = 0
        for chunk in self.read_chunks(filepath):
            chunk.columns = [str(column).strip().upper() for column in chunk.columns]
            self.require_columns(chunk, self.REQUIRED_COLUMNS, self.source.value, filepath)

            for row in chunk.to_dict('records'):
                line += 1
                lat, lon = valid_position(parse_coordinate(row.get('LAT')), parse_coordinate(row.get('LON')))
                # ID 经常为空，依次回退到 HASH 和 文件:行号
                source_id = clean_value(row.get('ID')) or clean_value(row.get('HASH'))
                if source_id is None:
                    source_id = f"{prefix}:{line}"
                elif folder:
                    # ID 只在单个文件内唯一
                    source_id = f"{prefix}:{source_id}"
                yield RawAddressRecord(
                    source=self.source,
                    source_id=source_id,
                    lat=lat,
                    lon=lon,
                    raw_fields=RawFields(
                        house_number=clean_value(row.get('NUMBER')),
                        street=clean_value(row.get('STREET')),
                        city=clean_value(row.get('CITY')) or clean_value(row.get('DISTRICT')),
                        postcode=clean_value(row.get('POSTCODE')),
                    ),
                )

        if line == 0:
            logger.debug(f"[{self.source.value}] 文件没有数据行: {filepath}")
