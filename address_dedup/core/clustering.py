#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:15
# @Author  : hejun
"""
地址聚类模块
并查集合并超过阈值的匹配对，得到传递闭包意义下的重复簇
"""
import threading
from collections import defaultdict
from typing import Any, Dict, Iterable, List

import numpy as np

from address_dedup.core.models import CandidatePair, DuplicateCluster, MatchScore
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)


class UnionFind:
    """并查集（按秩合并 + 路径压缩）"""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        # 路径压缩
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: int, y: int) -> bool:
        """合并x、y所在集合，实际发生合并时返回True"""
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x == root_y:
            return False

        rank_x = self.rank[root_x]
        rank_y = self.rank[root_y]

        if rank_x < rank_y:
            self.parent[root_x] = root_y
        elif rank_x > rank_y:
            self.parent[root_y] = root_x
        else:
            self.parent[root_y] = root_x
            self.rank[root_x] += 1
        return True


class ClusterBuilder:
    """
    重复簇构建器

    多个打分线程可以并发调用 add()；最终划分与得分到达顺序无关。
    """

    def __init__(self, n_records: int, threshold: float = 0.8,
                 max_cluster_size: int = 5000, oversized_policy: str = 'keep'):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"合并阈值必须位于 [0, 1]: {threshold}")
        self.n_records = n_records
        self.threshold = threshold
        self.max_cluster_size = max_cluster_size
        self.oversized_policy = oversized_policy

        self._union_find = UnionFind(n_records)
        self._lock = threading.Lock()
        self.accepted_pairs = 0
        self.scored_pairs = 0

    @classmethod
    def from_config(cls, n_records: int, config: Dict[str, Any]) -> 'ClusterBuilder':
        clustering = config.get('clustering', {})
        return cls(
            n_records,
            threshold=clustering.get('merge_threshold', 0.8),
            max_cluster_size=clustering.get('max_cluster_size', 5000),
            oversized_policy=clustering.get('oversized_policy', 'keep'),
        )

    def add(self, score: MatchScore) -> bool:
        """
        加入一个匹配得分，超过阈值则合并

        Returns:
            是否被接受
        """
        accepted = score.value >= self.threshold
        with self._lock:
            self.scored_pairs += 1
            if accepted:
                self.accepted_pairs += 1
                self._union_find.union(*score.pair)
        return accepted

    def add_all(self, scores: Iterable[MatchScore]) -> int:
        accepted = 0
        for score in scores:
            if self.add(score):
                accepted += 1
        return accepted

    def absorb(self, pairs: Iterable[CandidatePair]):
        """合并另一个划分中已接受的配对"""
        with self._lock:
            for left, right in pairs:
                self._union_find.union(left, right)

    def accepted_partition(self) -> List[CandidatePair]:
        """以 (成员, 根) 对的形式导出当前划分，供 absorb() 使用"""
        with self._lock:
            return [
                (index, self._union_find.find(index))
                for index in range(self.n_records)
                if self._union_find.parent[index] != index
            ]

    def clusters(self) -> List[DuplicateCluster]:
        """
        生成最终重复簇

        成员升序，簇按最小成员排序；单条记录也是一个簇。
        """
        groups: Dict[int, List[int]] = defaultdict(list)
        with self._lock:
            for index in range(self.n_records):
                groups[self._union_find.find(index)].append(index)

        result: List[DuplicateCluster] = []
        oversized = 0
        for members in groups.values():
            if len(members) > self.max_cluster_size:
                oversized += 1
                logger.warning(
                    f"重复簇过大（{len(members)} 条，上限 {self.max_cluster_size}），"
                    f"可能是链式误合并，首条记录下标: {members[0]}"
                )
                if self.oversized_policy == 'split':
                    result.extend(DuplicateCluster((index,)) for index in members)
                    continue
            result.append(DuplicateCluster(tuple(members)))

        if oversized:
            logger.warning(f"共 {oversized} 个过大重复簇，处理策略: {self.oversized_policy}")

        result.sort(key=lambda cluster: cluster.members[0])
        return result

    @staticmethod
    def create_cluster_summary(clusters: List[DuplicateCluster]) -> Dict[str, Any]:
        """聚类统计"""
        if not clusters:
            return {'n_clusters': 0, 'n_duplicate_clusters': 0, 'n_merged_records': 0,
                    'max_cluster_size': 0, 'mean_cluster_size': 0.0}

        sizes = np.array([len(cluster) for cluster in clusters])
        duplicates = sizes[sizes > 1]
        return {
            'n_clusters': int(len(sizes)),
            'n_duplicate_clusters': int(len(duplicates)),
            'n_merged_records': int(duplicates.sum()) if len(duplicates) else 0,
            'max_cluster_size': int(sizes.max()),
            'mean_cluster_size': float(sizes.mean()),
        }
