#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:35
# @Author  : hejun
"""
多源地址去重引擎
"""

from address_dedup.config.config import Config, load_config
from address_dedup.core.address_normalizer import AddressNormalizer
from address_dedup.core.canonicalizer import Canonicalizer
from address_dedup.core.clustering import ClusterBuilder
from address_dedup.core.exceptions import (ConfigurationError, DeduplicationError, NormalizationError,
                                           PipelineCancelled, SinkWriteError, SourceEmptyError, SourceReadError)
from address_dedup.core.models import (CanonicalAddress, DuplicateCluster, MatchScore, NormalizedAddress,
                                       RawAddressRecord, RawFields, SourceTag)
from address_dedup.core.pipeline import DeduplicationPipeline, RunSummary
from address_dedup.core.similarity_calculator import SimilarityScorer
from address_dedup.core.spatial_index import SpatialIndex

__version__ = '1.0.0'
__author__ = 'hejun'

__all__ = [
    'Config',
    'load_config',
    'AddressNormalizer',
    'Canonicalizer',
    'ClusterBuilder',
    'DeduplicationPipeline',
    'RunSummary',
    'SimilarityScorer',
    'SpatialIndex',
    'SourceTag',
    'RawFields',
    'RawAddressRecord',
    'NormalizedAddress',
    'MatchScore',
    'DuplicateCluster',
    'CanonicalAddress',
    'DeduplicationError',
    'ConfigurationError',
    'NormalizationError',
    'SourceReadError',
    'SourceEmptyError',
    'SinkWriteError',
    'PipelineCancelled',
]
