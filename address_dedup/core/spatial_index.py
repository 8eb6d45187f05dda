#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/18 14:02
# @Author  : hejun
"""
空间网格索引
按最大匹配距离划分经纬度网格，候选对只在本格及相邻格之间产生
"""
import math
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Set, Tuple

import numpy as np

from address_dedup.core.address_normalizer import fold_text
from address_dedup.core.models import CandidatePair, NormalizedAddress
from address_dedup.core.similarity_calculator import EARTH_RADIUS_M, haversine_distance_batch
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)

# 球面上每度纬度对应的米数，与haversine使用同一地球半径
METERS_PER_DEGREE = EARTH_RADIUS_M * math.pi / 180.0

# 超过该纬度的网格行不再按经度切分
POLAR_LATITUDE = 89.0

CellKey = Tuple[int, int]


class SpatialIndex:
    """
    经纬度网格索引

    行高固定为 cell_size_m 对应的纬度差；每一行的列宽按该行（向外扩一行）的最大纬度放大，
    保证距离不超过 max_distance_m 的两点要么同格，要么在相邻的8个格子里。
    经度不跨越 ±180 度回绕。
    """

    def __init__(self, max_distance_m: float = 300.0, cell_size_m: Optional[float] = None):
        if max_distance_m <= 0:
            raise ValueError(f"max_distance_m 必须为正数: {max_distance_m}")
        cell_size_m = cell_size_m or max_distance_m
        if cell_size_m < max_distance_m:
            raise ValueError("cell_size_m 不能小于 max_distance_m")

        self.max_distance_m = float(max_distance_m)
        self.cell_size_m = float(cell_size_m)
        self.row_height = self.cell_size_m / METERS_PER_DEGREE

        self.cells: Dict[CellKey, List[int]] = defaultdict(list)
        self.positions: Dict[int, Tuple[float, float]] = {}
        self._unlocated: List[int] = []
        self._column_widths: Dict[int, float] = {}

    def __len__(self) -> int:
        return len(self.positions)

    def _row(self, lat: float) -> int:
        return math.floor(lat / self.row_height)

    def _column_width(self, row: int) -> float:
        width = self._column_widths.get(row)
        if width is None:
            edge = max(abs(row * self.row_height), abs((row + 1) * self.row_height)) + self.row_height
            if edge >= POLAR_LATITUDE:
                width = 360.0
            else:
                # 留一点余量覆盖小角度近似误差
                width = self.row_height / math.cos(math.radians(edge)) * 1.001
            self._column_widths[row] = width
        return width

    def _column(self, row: int, lon: float) -> int:
        return math.floor(lon / self._column_width(row))

    def cell_of(self, lat: float, lon: float) -> CellKey:
        """坐标所在网格"""
        row = self._row(lat)
        return row, self._column(row, lon)

    def insert(self, index: int, lat: float, lon: float):
        """
        加入一条有坐标的记录

        Raises:
            ValueError: 坐标不合法或下标重复
        """
        if index in self.positions:
            raise ValueError(f"记录下标重复: {index}")
        if not (math.isfinite(lat) and math.isfinite(lon)) or abs(lat) > 90 or abs(lon) > 180:
            raise ValueError(f"非法坐标: ({lat}, {lon})")

        key = self.cell_of(lat, lon)
        self.cells[key].append(index)
        self.positions[index] = (lat, lon)

    def mark_unlocated(self, index: int):
        """记录没有坐标的记录，不参与空间比较"""
        self._unlocated.append(index)

    @property
    def unlocated(self) -> List[int]:
        return list(self._unlocated)

    def _neighbor_cells(self, lat: float, lon: float) -> Iterator[CellKey]:
        row = self._row(lat)
        for neighbor_row in (row - 1, row, row + 1):
            column = self._column(neighbor_row, lon)
            for dx in (-1, 0, 1):
                yield neighbor_row, column + dx

    def candidates_near(self, index: int) -> Iterator[int]:
        """
        本格及8个相邻格中的其他记录，每个下标最多出现一次

        Args:
            index: 已插入的记录下标
        """
        lat, lon = self.positions[index]
        seen: Set[int] = set()
        for key in self._neighbor_cells(lat, lon):
            for other in self.cells.get(key, ()):
                if other != index and other not in seen:
                    seen.add(other)
                    yield other

    def candidate_pairs(self) -> Iterator[CandidatePair]:
        """
        生成候选对 (i, j)，i < j，球面距离不超过 max_distance_m

        按网格与插入顺序遍历，结果确定。
        """
        for key in sorted(self.cells):
            for index in self.cells[key]:
                others = [other for other in self.candidates_near(index) if other > index]
                if not others:
                    continue

                lat, lon = self.positions[index]
                lats = np.array([self.positions[other][0] for other in others], dtype=np.float64)
                lons = np.array([self.positions[other][1] for other in others], dtype=np.float64)
                distances = haversine_distance_batch(lat, lon, lats, lons)

                for other, distance in zip(others, distances):
                    if distance <= self.max_distance_m:
                        yield index, other

    def get_stats(self) -> Dict[str, float]:
        """网格统计信息"""
        sizes = [len(members) for members in self.cells.values()]
        return {
            'located': len(self.positions),
            'unlocated': len(self._unlocated),
            'cells': len(self.cells),
            'max_cell_size': max(sizes) if sizes else 0,
            'mean_cell_size': float(np.mean(sizes)) if sizes else 0.0,
        }


class LexicalBlockIndex:
    """
    无坐标记录的文本分块

    按（邮编, 门牌号）和（城市, 门牌号）分块，只输出至少一端无坐标的候选对，
    有坐标记录之间的比较仍交给 SpatialIndex。
    """

    def __init__(self, max_block_size: int = 5000):
        self.max_block_size = max_block_size
        self.blocks: Dict[Tuple[str, str, str], List[int]] = defaultdict(list)
        self._unlocated: Set[int] = set()

    @staticmethod
    def block_keys(address: NormalizedAddress) -> List[Tuple[str, str, str]]:
        if not address.house_number:
            return []
        keys = []
        if address.postcode:
            keys.append(('postcode', address.postcode, address.house_number))
        if address.city:
            keys.append(('city', fold_text(address.city), address.house_number))
        return keys

    def insert(self, index: int, address: NormalizedAddress):
        for key in self.block_keys(address):
            self.blocks[key].append(index)
        if not address.has_geometry:
            self._unlocated.add(index)

    def candidate_pairs(self) -> Iterator[CandidatePair]:
        emitted: Set[CandidatePair] = set()
        for key in sorted(self.blocks):
            members = sorted(set(self.blocks[key]))
            if len(members) > self.max_block_size:
                logger.warning(f"文本分块过大，跳过: {key} ({len(members)} 条)")
                continue
            for position, first in enumerate(members):
                for second in members[position + 1:]:
                    if first not in self._unlocated and second not in self._unlocated:
                        continue
                    pair = (first, second)
                    if pair not in emitted:
                        emitted.add(pair)
                        yield pair
