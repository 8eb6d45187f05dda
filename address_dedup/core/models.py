#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/18 10:10
# @Author  : hejun
"""
数据模型
原始记录 -> 标准化地址 -> 匹配得分 -> 重复簇 -> 规范地址
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class SourceTag(str, Enum):
    """数据源标识"""

    OSM = 'osm'
    BANO = 'bano'
    OPENADDRESSES = 'openaddresses'

    @classmethod
    def parse(cls, value) -> 'SourceTag':
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())

    def __str__(self) -> str:
        return self.value


# 候选对：两个记录下标，约定 left < right
CandidatePair = Tuple[int, int]


@dataclass(frozen=True)
class RawFields:
    """数据源提供的原始字段，由导入器映射到这四个固定字段"""

    house_number: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None

    def as_text(self) -> str:
        """拼接为一行自由文本，供自由文本解析器使用"""
        head = ' '.join(p for p in (self.house_number, self.street) if p)
        tail = ' '.join(p for p in (self.postcode, self.city) if p)
        return ', '.join(p for p in (head, tail) if p)


@dataclass(frozen=True)
class RawAddressRecord:
    """导入器产出的原始地址记录"""

    source: SourceTag
    source_id: str
    lat: Optional[float] = None
    lon: Optional[float] = None
    raw_fields: RawFields = field(default_factory=RawFields)
    observed_at: Optional[datetime] = None

    @property
    def has_geometry(self) -> bool:
        return self.lat is not None and self.lon is not None

    @property
    def qualified_id(self) -> str:
        return f"{self.source.value}:{self.source_id}"


@dataclass(frozen=True)
class NormalizedAddress:
    """
    标准化地址

    expansions 只用于匹配，不参与输出；始终包含 street_name 本身。
    """

    record: RawAddressRecord
    house_number: str = ''
    street_name: str = ''
    expansions: FrozenSet[str] = frozenset()
    city: str = ''
    postcode: str = ''

    def __post_init__(self):
        if self.street_name not in self.expansions:
            object.__setattr__(self, 'expansions', frozenset(self.expansions) | {self.street_name})

    @property
    def lat(self) -> Optional[float]:
        return self.record.lat

    @property
    def lon(self) -> Optional[float]:
        return self.record.lon

    @property
    def has_geometry(self) -> bool:
        return self.record.has_geometry

    @property
    def completeness(self) -> int:
        """非空字段个数（门牌号、街道、城市、邮编）"""
        return sum(1 for value in (self.house_number, self.street_name, self.city, self.postcode) if value)

    def identity(self) -> Tuple[str, str]:
        return self.record.source.value, self.record.source_id


@dataclass(frozen=True)
class MatchScore:
    """两条记录的匹配置信度，0-1"""

    left: int
    right: int
    value: float
    geometric: Optional[float] = None
    lexical: Optional[float] = None
    distance_m: Optional[float] = None

    @property
    def pair(self) -> CandidatePair:
        return (self.left, self.right) if self.left <= self.right else (self.right, self.left)


@dataclass(frozen=True)
class DuplicateCluster:
    """传递连通的重复记录集合，成员下标升序"""

    members: Tuple[int, ...]

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self):
        return iter(self.members)


@dataclass(frozen=True)
class CanonicalAddress:
    """每个重复簇输出一条规范地址"""

    house_number: str
    street_name: str
    city: str
    postcode: str
    lat: Optional[float]
    lon: Optional[float]
    source_ids: Tuple[str, ...]
    representative: str = ''

    def to_row(self, delimiter: str = ';') -> Dict[str, object]:
        return {
            'house_number': self.house_number,
            'street_name': self.street_name,
            'city': self.city,
            'postcode': self.postcode,
            'lat': self.lat,
            'lon': self.lon,
            'source_ids': delimiter.join(self.source_ids),
        }
