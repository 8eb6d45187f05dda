#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/19 10:05
# @Author  : hejun
"""
BANO 导入器
无表头CSV：id,numero,voie,code_post,nom_comm,source,lat,lon
"""
from typing import Iterator

from address_dedup.core.models import RawAddressRecord, RawFields, SourceTag
from address_dedup.importers.base import BaseImporter, clean_value, parse_coordinate, valid_position


class BanoImporter(BaseImporter):
    """BANO（法国国家地址库）导入器"""

    source = SourceTag.BANO

    COLUMNS = ['id', 'numero', 'voie', 'code_post', 'nom_comm', 'source', 'lat', 'lon']

    def iter_records(self) -> Iterator[RawAddressRecord]:
        for chunk in self.read_chunks(self.path, header=None, names=self.COLUMNS, usecols=range(len(self.COLUMNS))):
            for row in chunk.itertuples(index=False):
                lat, lon = valid_position(parse_coordinate(row.lat), parse_coordinate(row.lon))
                yield RawAddressRecord(
                    source=self.source,
                    source_id=str(row.id).strip(),
                    lat=lat,
                    lon=lon,
                    raw_fields=RawFields(
                        house_number=clean_value(row.numero),
                        street=clean_value(row.voie),
                        city=clean_value(row.nom_comm),
                        postcode=clean_value(row.code_post),
                    ),
                )
