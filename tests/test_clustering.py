#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
聚类测试
"""
import random
import threading

import pytest

from address_dedup.core.clustering import ClusterBuilder, UnionFind
from address_dedup.core.models import MatchScore


def members(clusters):
    return [cluster.members for cluster in clusters]


def sample_scores():
    return [
        MatchScore(0, 1, 0.95),
        MatchScore(1, 2, 0.85),
        MatchScore(3, 4, 0.79),
        MatchScore(5, 6, 0.80),
        MatchScore(6, 7, 0.10),
        MatchScore(8, 2, 0.99),
    ]


def test_union_find_merges_transitively():
    union_find = UnionFind(4)
    assert union_find.union(0, 1)
    assert union_find.union(1, 2)
    assert not union_find.union(0, 2)
    assert union_find.find(2) == union_find.find(0)
    assert union_find.find(3) == 3


def test_threshold_and_transitive_merge():
    builder = ClusterBuilder(10, threshold=0.8)
    builder.add_all(sample_scores())

    assert members(builder.clusters()) == [(0, 1, 2, 8), (3,), (4,), (5, 6), (7,), (9,)]
    assert builder.accepted_pairs == 4
    assert builder.scored_pairs == 6


def test_partition_is_independent_of_order():
    expected = None
    for seed in range(10):
        scores = sample_scores()
        random.Random(seed).shuffle(scores)
        # 左右互换也不影响结果
        scores = [MatchScore(s.right, s.left, s.value) if seed % 2 else s for s in scores]

        builder = ClusterBuilder(10, threshold=0.8)
        builder.add_all(scores)
        result = members(builder.clusters())
        if expected is None:
            expected = result
        assert result == expected


def test_concurrent_add_is_safe():
    n = 2000
    scores = [MatchScore(i, i + 1, 0.9) for i in range(0, n - 1, 2)]
    builder = ClusterBuilder(n, threshold=0.8)

    chunks = [scores[i::8] for i in range(8)]
    threads = [threading.Thread(target=builder.add_all, args=(chunk,)) for chunk in chunks]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    clusters = builder.clusters()
    assert len(clusters) == n // 2
    assert all(len(cluster) == 2 for cluster in clusters)
    assert builder.accepted_pairs == len(scores)


def test_absorb_merges_another_partition():
    first = ClusterBuilder(6, threshold=0.5)
    first.add(MatchScore(0, 1, 0.9))
    second = ClusterBuilder(6, threshold=0.5)
    second.add(MatchScore(1, 2, 0.9))
    second.add(MatchScore(4, 5, 0.9))

    first.absorb(second.accepted_partition())

    assert members(first.clusters()) == [(0, 1, 2), (3,), (4, 5)]


def test_oversized_cluster_is_split_when_configured(caplog):
    scores = [MatchScore(i, i + 1, 1.0) for i in range(5)]

    keep = ClusterBuilder(6, threshold=0.8, max_cluster_size=3, oversized_policy='keep')
    keep.add_all(scores)
    assert members(keep.clusters()) == [(0, 1, 2, 3, 4, 5)]
    assert '重复簇过大' in caplog.text

    split = ClusterBuilder(6, threshold=0.8, max_cluster_size=3, oversized_policy='split')
    split.add_all(scores)
    assert members(split.clusters()) == [(i,) for i in range(6)]


def test_invalid_threshold():
    with pytest.raises(ValueError):
        ClusterBuilder(3, threshold=1.5)


def test_cluster_summary():
    builder = ClusterBuilder(10, threshold=0.8)
    builder.add_all(sample_scores())
    summary = ClusterBuilder.create_cluster_summary(builder.clusters())

    assert summary['n_clusters'] == 6
    assert summary['n_duplicate_clusters'] == 2
    assert summary['n_merged_records'] == 6
    assert summary['max_cluster_size'] == 4
