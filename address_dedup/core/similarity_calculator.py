#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:16
# @Author  : hejun
"""
多维度相似度计算模块
结合街道/门牌号/城市/邮编文本相似度与球面距离
"""
import math
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import Levenshtein
import numpy as np
from jaro import jaro_winkler_metric
from numba import jit
from rapidfuzz import fuzz

from address_dedup.core.address_normalizer import fold_text
from address_dedup.core.models import CandidatePair, MatchScore, NormalizedAddress
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)

EARTH_RADIUS_M = 6371000.0

_LEADING_DIGITS = re.compile(r'^\d+')


def calculate_haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    计算两个坐标之间的球面距离（米）- Haversine公式

    Args:
        lat1, lon1: 第一个坐标
        lat2, lon2: 第二个坐标

    Returns:
        距离（米）
    """
    # 将角度转换为弧度
    lat1_rad, lon1_rad, lat2_rad, lon2_rad = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(math.sqrt(min(1.0, a)))
    return EARTH_RADIUS_M * c


@jit(nopython=True)
def haversine_distance_batch(lat: float, lon: float,
                             lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """
    一个点到一组点的球面距离（米，Numba加速）
    """
    n = len(lats)
    distances = np.zeros(n)
    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)
    cos_lat = math.cos(lat_rad)

    for i in range(n):
        other_lat = math.radians(lats[i])
        dlat = other_lat - lat_rad
        dlon = math.radians(lons[i]) - lon_rad
        a = math.sin(dlat / 2) ** 2 + cos_lat * math.cos(other_lat) * math.sin(dlon / 2) ** 2
        if a > 1.0:
            a = 1.0
        distances[i] = 2.0 * EARTH_RADIUS_M * math.asin(math.sqrt(a))

    return distances


def edit_similarity(text1: str, text2: str) -> float:
    """归一化编辑距离相似度"""
    max_len = max(len(text1), len(text2))
    if max_len == 0:
        return 0.0
    return 1.0 - Levenshtein.distance(text1, text2) / max_len


def combined_similarity(text1: str, text2: str) -> float:
    """综合文本相似度：Jaro-Winkler + 编辑距离 + 字符集合Jaccard"""
    jaro_score = jaro_winkler_metric(text1, text2)
    edit_score = edit_similarity(text1, text2)

    set1 = set(text1)
    set2 = set(text2)
    jaccard_score = len(set1 & set2) / len(set1 | set2) if (set1 or set2) else 0.0

    combined_score = 0.4 * jaro_score + 0.3 * edit_score + 0.3 * jaccard_score
    return min(1.0, max(0.0, combined_score))


class SimilarityScorer:
    """地址对相似度计算器"""

    LEXICAL_FIELDS = ('street', 'house_number', 'city', 'postcode')

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}

        # 几何/文本权重
        self.weights = self.config.get('weights', {
            'geometric': 0.4,
            'lexical': 0.6,
        })

        # 文本字段权重
        self.lexical_weights = self.config.get('lexical_weights', {
            'street': 0.4,
            'house_number': 0.4,
            'city': 0.1,
            'postcode': 0.1,
        })

        scoring = self.config.get('scoring', {})
        self.geo_floor = scoring.get('geo_floor', 0.05)
        self.decay_rate = scoring.get('decay_rate', 3.0)
        self.house_number_partial = scoring.get('house_number_partial', 0.5)
        self.street_metric = edit_similarity if scoring.get('street_metric', 'edit') == 'edit' else combined_similarity

        self.max_distance_m = self.config.get('spatial', {}).get('max_distance_m', 300.0)
        self._decay_tail = math.exp(-self.decay_rate)

    # ------------------------------------------------------------------
    # 几何
    # ------------------------------------------------------------------
    def geometric_similarity(self, distance_m: float) -> float:
        """
        距离 -> [0, 1]

        0米为1.0，恰好在最大距离处为 geo_floor，超出最大距离为0.0；中间按截断指数衰减。
        """
        if distance_m <= 0:
            return 1.0
        if distance_m > self.max_distance_m:
            return 0.0
        decay = math.exp(-self.decay_rate * distance_m / self.max_distance_m)
        normalized = (decay - self._decay_tail) / (1.0 - self._decay_tail)
        return min(1.0, max(self.geo_floor, self.geo_floor + (1.0 - self.geo_floor) * normalized))

    # ------------------------------------------------------------------
    # 文本
    # ------------------------------------------------------------------
    def street_similarity(self, expansions1: FrozenSet[str],
                          expansions2: FrozenSet[str]) -> Optional[float]:
        """两组街道变体的最佳相似度，任一为空返回None"""
        forms1 = sorted(value for value in expansions1 if value)
        forms2 = sorted(value for value in expansions2 if value)
        if not forms1 or not forms2:
            return None
        if set(forms1) & set(forms2):
            return 1.0

        best = 0.0
        for text1 in forms1:
            for text2 in forms2:
                # 固定参数顺序，保证对称
                first, second = (text1, text2) if text1 <= text2 else (text2, text1)
                best = max(best, self.street_metric(first, second))
                if best >= 1.0:
                    return 1.0
        return best

    def house_number_similarity(self, number1: str, number2: str) -> Optional[float]:
        """门牌号：完全一致1.0，数字部分一致给部分分，任一缺失返回None"""
        if not number1 or not number2:
            return None
        if number1 == number2:
            return 1.0
        digits1 = _LEADING_DIGITS.match(number1)
        digits2 = _LEADING_DIGITS.match(number2)
        if digits1 and digits2 and digits1.group(0) == digits2.group(0):
            return self.house_number_partial
        return 0.0

    @staticmethod
    def city_similarity(city1: str, city2: str) -> Optional[float]:
        """城市名词集合重叠度"""
        if not city1 or not city2:
            return None
        first, second = sorted((fold_text(city1), fold_text(city2)))
        return fuzz.token_set_ratio(first, second) / 100.0

    @staticmethod
    def postcode_similarity(postcode1: str, postcode2: str) -> Optional[float]:
        """邮编词元Jaccard"""
        if not postcode1 or not postcode2:
            return None
        tokens1 = set(postcode1.split())
        tokens2 = set(postcode2.split())
        if tokens1 == tokens2:
            return 1.0
        return len(tokens1 & tokens2) / len(tokens1 | tokens2)

    def lexical_similarity(self, address1: NormalizedAddress,
                           address2: NormalizedAddress) -> Optional[float]:
        """
        文本相似度

        空字段不参与加权（中性），剩余权重重新归一化；没有任何可比字段时返回None。
        """
        terms = {
            'street': self.street_similarity(address1.expansions, address2.expansions),
            'house_number': self.house_number_similarity(address1.house_number, address2.house_number),
            'city': self.city_similarity(address1.city, address2.city),
            'postcode': self.postcode_similarity(address1.postcode, address2.postcode),
        }
        return self._weighted_mean(
            (self.lexical_weights.get(name, 0.0), terms[name]) for name in self.LEXICAL_FIELDS
        )

    @staticmethod
    def _weighted_mean(terms: Iterable[Tuple[float, Optional[float]]]) -> Optional[float]:
        numerator = 0.0
        denominator = 0.0
        for weight, value in terms:
            if value is None or weight <= 0:
                continue
            numerator += weight * value
            denominator += weight
        if denominator <= 0:
            return None
        return numerator / denominator

    # ------------------------------------------------------------------
    # 综合
    # ------------------------------------------------------------------
    def score(self, address1: NormalizedAddress, address2: NormalizedAddress,
              left: int = -1, right: int = -1) -> MatchScore:
        """
        计算综合匹配得分

        Args:
            address1, address2: 标准化地址
            left, right: 两条记录在全量集合中的下标

        Returns:
            MatchScore，结果与参数顺序无关
        """
        # 按记录身份固定顺序
        if address2.identity() < address1.identity():
            address1, address2 = address2, address1
            left, right = right, left
        if left > right:
            left, right = right, left

        distance_m = None
        geometric = None
        if address1.has_geometry and address2.has_geometry:
            distance_m = calculate_haversine_distance(address1.lat, address1.lon, address2.lat, address2.lon)
            geometric = self.geometric_similarity(distance_m)

        lexical = self.lexical_similarity(address1, address2)

        value = self._weighted_mean([
            (self.weights.get('geometric', 0.0), geometric),
            (self.weights.get('lexical', 0.0), lexical),
        ])

        return MatchScore(
            left=left,
            right=right,
            value=0.0 if value is None else min(1.0, max(0.0, value)),
            geometric=geometric,
            lexical=lexical,
            distance_m=distance_m,
        )

    def score_pair(self, i: int, j: int, records: Sequence[NormalizedAddress]) -> MatchScore:
        return self.score(records[i], records[j], i, j)

    def score_batch(self, pairs: Iterable[CandidatePair],
                    records: Sequence[NormalizedAddress]) -> List[MatchScore]:
        """批量计算候选对得分"""
        return [self.score_pair(i, j, records) for i, j in pairs]
