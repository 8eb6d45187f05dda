#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/18 16:30
# @Author  : hejun
"""
规范地址选择
每个重复簇选出代表记录，缺失字段按同一排序从其他成员补齐
"""
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from address_dedup.core.exceptions import ConfigurationError
from address_dedup.core.models import CanonicalAddress, DuplicateCluster, NormalizedAddress, SourceTag
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)

FIELDS = ('house_number', 'street_name', 'city', 'postcode')


class Canonicalizer:
    """规范地址生成器"""

    def __init__(self, config: Dict[str, Any]):
        canonical = config.get('canonical', {})
        priority = canonical.get('source_priority')
        if not priority:
            raise ConfigurationError("canonical.source_priority 必须显式配置")

        self.source_rank = {SourceTag.parse(name): rank for rank, name in enumerate(priority)}
        geometry_source = canonical.get('geometry_source')
        self.geometry_source = SourceTag.parse(geometry_source) if geometry_source else None

    def rank_key(self, address: NormalizedAddress) -> Tuple:
        """
        排序键：数据源优先级 -> 字段完整度（高在前）-> 观测时间（新在前，缺失在后）-> 记录身份
        """
        observed_at = address.record.observed_at
        recency = -observed_at.timestamp() if observed_at is not None else math.inf
        return (
            self.source_rank.get(address.record.source, len(self.source_rank)),
            -address.completeness,
            recency,
            address.identity(),
        )

    def _coordinate(self, cluster: DuplicateCluster, ranked: List[NormalizedAddress],
                    records: Sequence[NormalizedAddress]) -> Tuple[Optional[float], Optional[float]]:
        if self.geometry_source is not None:
            for address in ranked:
                if address.record.source == self.geometry_source and address.has_geometry:
                    return address.lat, address.lon

        located = [records[i] for i in cluster.members if records[i].has_geometry]
        if not located:
            return None, None
        if len(located) == 1:
            return located[0].lat, located[0].lon

        # 没有权威来源时取质心
        coordinates = np.array([(address.lat, address.lon) for address in located], dtype=np.float64)
        lat, lon = coordinates.mean(axis=0)
        return float(lat), float(lon)

    def canonicalize(self, cluster: DuplicateCluster,
                     records: Sequence[NormalizedAddress]) -> CanonicalAddress:
        """
        生成规范地址

        Args:
            cluster: 重复簇
            records: 全量标准化地址（按下标访问）

        Returns:
            CanonicalAddress，相同输入总是得到相同结果
        """
        if not cluster.members:
            raise ValueError("重复簇不能为空")

        ranked = sorted((records[i] for i in cluster.members), key=self.rank_key)
        representative = ranked[0]

        values = {}
        for name in FIELDS:
            values[name] = next((getattr(address, name) for address in ranked if getattr(address, name)), '')

        lat, lon = self._coordinate(cluster, ranked, records)

        return CanonicalAddress(
            house_number=values['house_number'],
            street_name=values['street_name'],
            city=values['city'],
            postcode=values['postcode'],
            lat=lat,
            lon=lon,
            source_ids=tuple(sorted(address.record.qualified_id for address in ranked)),
            representative=representative.record.qualified_id,
        )

    def canonicalize_all(self, clusters: Sequence[DuplicateCluster],
                         records: Sequence[NormalizedAddress]) -> List[CanonicalAddress]:
        return [self.canonicalize(cluster, records) for cluster in clusters]
