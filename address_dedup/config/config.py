#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/18 10:20
# @Author  : hejun
"""
系统配置文件
"""
import copy
import json
import math
from pathlib import Path
from typing import Any, Dict, Optional, Union

from address_dedup.core.exceptions import ConfigurationError
from address_dedup.core.models import SourceTag
from address_dedup.utils.file_utils import FileUtils


class Config:
    """配置类"""

    # 算法参数
    ALGORITHM_CONFIG = {
        # 地址标准化
        'normalization': {
            'backend': 'rules',  # rules / libpostal
            'require_geometry': False,  # 缺少坐标的记录是否直接拒绝
            'require_house_number': False,  # 缺少门牌号的记录是否直接拒绝
            'max_expansions': 16,  # 每条街道最多保留的变体数
        },

        # 空间索引
        'spatial': {
            'max_distance_m': 300.0,  # 可能重复的最大距离（米）
            'cell_size_m': None,  # 网格大小，None表示与max_distance_m一致
        },

        # 几何/文本权重
        'weights': {
            'geometric': 0.4,
            'lexical': 0.6,
        },

        # 文本内部各字段权重
        'lexical_weights': {
            'street': 0.4,
            'house_number': 0.4,
            'city': 0.1,
            'postcode': 0.1,
        },

        # 打分参数
        'scoring': {
            'geo_floor': 0.05,  # 恰好位于最大距离处的几何得分
            'decay_rate': 3.0,  # 指数衰减速率
            'house_number_partial': 0.5,  # 门牌号数字相同、后缀不同
            'street_metric': 'edit',  # edit / combined
        },

        # 聚类参数
        'clustering': {
            'merge_threshold': 0.8,  # 合并阈值
            'no_geometry_policy': 'singleton',  # singleton / lexical
            'max_cluster_size': 5000,  # 超过该大小视为可疑的链式误合并
            'oversized_policy': 'keep',  # keep / split
        },

        # 规范地址选择
        'canonical': {
            # 官方数据 > 志愿者测绘 > 众包
            'source_priority': ['bano', 'osm', 'openaddresses'],
            'geometry_source': 'bano',  # 坐标最权威的数据源
        },

        # 性能参数
        'performance': {
            'n_jobs': None,  # None表示自动检测
            'batch_size': 2000,  # 每批记录/候选对数量
            'queue_size': 64,  # 候选对队列长度（批）
            'max_memory_gb': None,  # 内存告警阈值
            'show_progress': True,
        },
    }

    # 输入输出配置
    IO_CONFIG = {
        'output_encoding': 'utf-8',
        'source_ids_delimiter': ';',
        'csv_chunksize': 50000,
    }

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        """返回默认配置的深拷贝"""
        return copy.deepcopy(cls.ALGORITHM_CONFIG)


def merge_config(base: Dict[str, Any], updates: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """按节合并配置，返回新字典"""
    merged = copy.deepcopy(base)
    for key, value in (updates or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    加载配置：默认配置 <- JSON配置文件 <- 命令行覆盖

    Args:
        path: JSON配置文件路径
        overrides: 额外覆盖项

    Returns:
        校验通过的配置字典
    """
    config = Config.default_config()

    if path:
        try:
            user_config = FileUtils.read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"无法读取配置文件 {path}: {e}") from e
        if not isinstance(user_config, dict):
            raise ConfigurationError(f"配置文件顶层必须是对象: {path}")
        config = merge_config(config, user_config)

    config = merge_config(config, overrides)
    validate_config(config)
    return config


def _unit_interval(value, name: str):
    if not isinstance(value, (int, float)) or isinstance(value, bool) \
            or not math.isfinite(value) or not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} 必须位于 [0, 1]，当前值: {value!r}")


def _positive(value, name: str):
    if not isinstance(value, (int, float)) or isinstance(value, bool) \
            or not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} 必须为正数，当前值: {value!r}")


def _choice(value, name: str, choices):
    if value not in choices:
        raise ConfigurationError(f"{name} 必须是 {sorted(choices)} 之一，当前值: {value!r}")


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name)
    if not isinstance(section, dict):
        raise ConfigurationError(f"缺少配置节: {name}")
    return section


def validate_config(config: Dict[str, Any]) -> None:
    """校验配置，非法时抛出ConfigurationError"""
    normalization = _section(config, 'normalization')
    _choice(normalization.get('backend'), 'normalization.backend', {'rules', 'libpostal'})
    max_expansions = normalization.get('max_expansions')
    if not isinstance(max_expansions, int) or max_expansions < 1:
        raise ConfigurationError(f"normalization.max_expansions 必须为正整数，当前值: {max_expansions!r}")

    spatial = _section(config, 'spatial')
    _positive(spatial.get('max_distance_m'), 'spatial.max_distance_m')
    if spatial.get('cell_size_m') is not None:
        _positive(spatial['cell_size_m'], 'spatial.cell_size_m')
        if spatial['cell_size_m'] < spatial['max_distance_m']:
            raise ConfigurationError("spatial.cell_size_m 不能小于 spatial.max_distance_m")

    weights = _section(config, 'weights')
    for key in ('geometric', 'lexical'):
        _unit_interval(weights.get(key), f'weights.{key}')
    if weights['geometric'] + weights['lexical'] <= 0:
        raise ConfigurationError("weights.geometric 与 weights.lexical 不能同时为0")

    lexical_weights = _section(config, 'lexical_weights')
    for key in ('street', 'house_number', 'city', 'postcode'):
        _unit_interval(lexical_weights.get(key), f'lexical_weights.{key}')
    if sum(lexical_weights[key] for key in ('street', 'house_number', 'city', 'postcode')) <= 0:
        raise ConfigurationError("lexical_weights 不能全部为0")

    scoring = _section(config, 'scoring')
    _unit_interval(scoring.get('geo_floor'), 'scoring.geo_floor')
    _positive(scoring.get('decay_rate'), 'scoring.decay_rate')
    _unit_interval(scoring.get('house_number_partial'), 'scoring.house_number_partial')
    _choice(scoring.get('street_metric'), 'scoring.street_metric', {'edit', 'combined'})

    clustering = _section(config, 'clustering')
    _unit_interval(clustering.get('merge_threshold'), 'clustering.merge_threshold')
    _choice(clustering.get('no_geometry_policy'), 'clustering.no_geometry_policy', {'singleton', 'lexical'})
    max_cluster_size = clustering.get('max_cluster_size')
    if not isinstance(max_cluster_size, int) or max_cluster_size < 2:
        raise ConfigurationError(f"clustering.max_cluster_size 必须为不小于2的整数，当前值: {max_cluster_size!r}")
    _choice(clustering.get('oversized_policy'), 'clustering.oversized_policy', {'keep', 'split'})

    canonical = _section(config, 'canonical')
    priority = canonical.get('source_priority')
    if not isinstance(priority, (list, tuple)) or not priority:
        raise ConfigurationError("canonical.source_priority 必须显式配置为非空列表")
    try:
        parsed = [SourceTag.parse(name) for name in priority]
    except ValueError as e:
        raise ConfigurationError(f"canonical.source_priority 含未知数据源: {e}") from e
    if len(set(parsed)) != len(parsed):
        raise ConfigurationError("canonical.source_priority 存在重复数据源")
    if set(parsed) != set(SourceTag):
        missing = sorted(tag.value for tag in set(SourceTag) - set(parsed))
        raise ConfigurationError(f"canonical.source_priority 缺少数据源: {missing}")
    geometry_source = canonical.get('geometry_source')
    if geometry_source is not None:
        try:
            SourceTag.parse(geometry_source)
        except ValueError as e:
            raise ConfigurationError(f"canonical.geometry_source 未知: {geometry_source!r}") from e

    performance = _section(config, 'performance')
    n_jobs = performance.get('n_jobs')
    if n_jobs is not None and (not isinstance(n_jobs, int) or n_jobs < 1):
        raise ConfigurationError(f"performance.n_jobs 必须为正整数，当前值: {n_jobs!r}")
    for key in ('batch_size', 'queue_size'):
        value = performance.get(key)
        if not isinstance(value, int) or value < 1:
            raise ConfigurationError(f"performance.{key} 必须为正整数，当前值: {value!r}")
    if performance.get('max_memory_gb') is not None:
        _positive(performance['max_memory_gb'], 'performance.max_memory_gb')
