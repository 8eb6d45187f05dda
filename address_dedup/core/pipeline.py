#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/19 14:10
# @Author  : hejun
"""
去重流程编排
读取 -> 标准化 -> 建索引 -> 候选对打分（并行）-> 聚类 -> 规范地址 -> 原子写出
"""
import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from address_dedup.config.config import Config, validate_config
from address_dedup.core.address_normalizer import AddressNormalizer
from address_dedup.core.canonicalizer import Canonicalizer
from address_dedup.core.clustering import ClusterBuilder
from address_dedup.core.exceptions import ConfigurationError, NormalizationError, PipelineCancelled, SourceEmptyError
from address_dedup.core.models import (CandidatePair, CanonicalAddress, DuplicateCluster, NormalizedAddress,
                                       RawAddressRecord, SourceTag)
from address_dedup.core.similarity_calculator import SimilarityScorer
from address_dedup.core.spatial_index import LexicalBlockIndex, SpatialIndex
from address_dedup.importers import create_importer
from address_dedup.utils.file_utils import FileUtils
from address_dedup.utils.logger import get_logger
from address_dedup.utils.parallel_processor import ParallelProcessor, batched

logger = get_logger(__name__)

# 每个数据源最多以WARNING级别记录的标准化失败条数
MAX_LOGGED_ERRORS = 20

SourceSpec = Tuple[Union[SourceTag, str], Union[str, Path]]


@dataclass
class SourceStats:
    """单个数据源的读取统计"""

    source: str
    path: str
    read: int = 0
    normalized: int = 0
    skipped: int = 0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)

    def record_error(self, error: NormalizationError):
        self.skipped += 1
        self.errors_by_kind[error.kind] = self.errors_by_kind.get(error.kind, 0) + 1


@dataclass
class RunSummary:
    """一次运行的统计摘要"""

    sources: List[SourceStats] = field(default_factory=list)
    candidate_pairs: int = 0
    accepted_pairs: int = 0
    clusters: int = 0
    duplicate_clusters: int = 0
    output_rows: int = 0
    duration_s: float = 0.0
    output_path: Optional[str] = None

    @property
    def total_read(self) -> int:
        return sum(stats.read for stats in self.sources)

    @property
    def total_skipped(self) -> int:
        return sum(stats.skipped for stats in self.sources)

    def skipped_by_source(self) -> Dict[str, int]:
        result: Dict[str, int] = {}
        for stats in self.sources:
            result[stats.source] = result.get(stats.source, 0) + stats.skipped
        return result

    def log(self):
        """打印处理摘要"""
        logger.info("=" * 60)
        logger.info("处理完成!")
        logger.info("=" * 60)
        logger.info("📊 统计摘要:")
        for stats in self.sources:
            logger.info(
                f"   [{stats.source}] {stats.path}: 读取 {stats.read:,}，"
                f"标准化成功 {stats.normalized:,}，跳过 {stats.skipped:,}"
            )
            for kind, count in sorted(stats.errors_by_kind.items()):
                logger.info(f"       {kind} => {count:,}")
        logger.info(f"   候选对数量: {self.candidate_pairs:,}")
        logger.info(f"   合并对数量: {self.accepted_pairs:,}")
        logger.info(f"   重复簇数量: {self.clusters:,}（其中多成员簇 {self.duplicate_clusters:,}）")
        logger.info(f"   输出行数: {self.output_rows:,}")
        logger.info(f"   处理时间: {self.duration_s:.2f}秒")
        if self.duration_s > 0:
            logger.info(f"   处理速度: {self.total_read / self.duration_s:.1f} 地址/秒")
        if self.output_path:
            logger.info(f"📁 输出文件: {self.output_path}")
        logger.info("=" * 60)


class DeduplicationPipeline:
    """地址去重流程（主类）"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 importer_factory: Callable[..., Iterable[RawAddressRecord]] = create_importer):
        """
        初始化去重流程

        Args:
            config: 完整配置字典，None则使用默认配置
            importer_factory: (source, path, **kwargs) -> 记录序列

        Raises:
            ConfigurationError: 配置非法
        """
        self.config = config if config is not None else Config.default_config()
        validate_config(self.config)
        self.io_config = dict(Config.IO_CONFIG, **self.config.get('io', {}))
        self.importer_factory = importer_factory

        performance = self.config['performance']
        self.batch_size = performance['batch_size']
        self.processor = ParallelProcessor(
            n_jobs=performance.get('n_jobs'),
            max_memory_gb=performance.get('max_memory_gb'),
            queue_size=performance['queue_size'],
            show_progress=performance.get('show_progress', False),
        )

        self.normalizer = AddressNormalizer(self.config['normalization'])
        self.scorer = SimilarityScorer(self.config)
        self.canonicalizer = Canonicalizer(self.config)
        logger.debug(f"系统信息: {self.processor.get_system_info()}")

        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # 取消
    # ------------------------------------------------------------------
    def cancel(self):
        """发送停止信号：工作线程停止取任务并清空队列，本次运行不输出任何结果"""
        logger.warning("收到停止信号，正在中止...")
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def _check_cancelled(self):
        if self._stop.is_set():
            raise PipelineCancelled("运行已取消，结果已丢弃")

    # ------------------------------------------------------------------
    # 读取与标准化
    # ------------------------------------------------------------------
    def _watch(self, records: Iterable[RawAddressRecord],
               abort: Optional[threading.Event] = None) -> Iterator[RawAddressRecord]:
        """逐条检查停止信号"""
        for record in records:
            self._check_cancelled()
            if abort is not None and abort.is_set():
                raise PipelineCancelled("其他数据源读取失败，停止读取")
            yield record

    def _read_source(self, source: SourceTag, path,
                     abort: Optional[threading.Event] = None) -> Tuple[List[NormalizedAddress], SourceStats]:
        stats = SourceStats(source=source.value, path=str(path))
        importer = self.importer_factory(source, path, chunksize=self.io_config['csv_chunksize'])
        normalized: List[NormalizedAddress] = []

        logger.info(f"读取数据源 [{source.value}]: {path}")
        for chunk in batched(self._watch(importer, abort), self.batch_size):
            stats.read += len(chunk)
            for result in self.normalizer.batch_normalize(chunk, n_jobs=self.processor.n_jobs):
                if isinstance(result, NormalizationError):
                    stats.record_error(result)
                    if stats.skipped <= MAX_LOGGED_ERRORS:
                        logger.warning(f"标准化失败，跳过记录: {result}")
                    else:
                        logger.debug(f"标准化失败，跳过记录: {result}")
                else:
                    normalized.append(result)

        if stats.read == 0:
            raise SourceEmptyError(source.value, path)

        stats.normalized = len(normalized)
        if stats.skipped > MAX_LOGGED_ERRORS:
            logger.warning(f"[{source.value}] 另有 {stats.skipped - MAX_LOGGED_ERRORS:,} 条标准化失败记录未逐条显示")
        logger.info(f"   [{source.value}] 读取 {stats.read:,} 条，标准化成功 {stats.normalized:,} 条")
        return normalized, stats

    def load_records(self, sources: Sequence[SourceSpec]) -> Tuple[List[NormalizedAddress], List[SourceStats]]:
        """
        读取并标准化全部数据源

        数据源可以并发读取，结果总是按数据源给定顺序拼接，记录下标稳定。
        任一数据源致命失败时通知其余读取线程停止，并抛出第一个错误。
        """
        specs = [(SourceTag.parse(source), path) for source, path in sources]
        if not specs:
            raise ConfigurationError("至少需要一个数据源")

        max_workers = max(1, min(len(specs), self.processor.n_jobs))
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='address-dedup-reader') as executor:
            abort = threading.Event()
            futures = {executor.submit(self._read_source, source, path, abort): position
                       for position, (source, path) in enumerate(specs)}
            results: List[Any] = [None] * len(specs)
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except Exception:
                abort.set()
                for future in futures:
                    future.cancel()
                raise

        records: List[NormalizedAddress] = []
        stats: List[SourceStats] = []
        for normalized, source_stats in results:
            records.extend(normalized)
            stats.append(source_stats)
        return records, stats

    # ------------------------------------------------------------------
    # 候选对
    # ------------------------------------------------------------------
    def build_indexes(self, records: Sequence[NormalizedAddress]) -> Tuple[SpatialIndex, Optional[LexicalBlockIndex]]:
        """单线程建立空间索引（以及可选的无坐标记录文本分块）"""
        spatial_config = self.config['spatial']
        clustering_config = self.config['clustering']

        spatial_index = SpatialIndex(spatial_config['max_distance_m'], spatial_config.get('cell_size_m'))
        lexical_index = None
        if clustering_config['no_geometry_policy'] == 'lexical':
            lexical_index = LexicalBlockIndex(clustering_config['max_cluster_size'])

        for index, address in enumerate(records):
            if address.has_geometry:
                spatial_index.insert(index, address.lat, address.lon)
            else:
                spatial_index.mark_unlocated(index)
            if lexical_index is not None:
                lexical_index.insert(index, address)

        stats = spatial_index.get_stats()
        logger.info(
            f"空间索引: 有坐标 {stats['located']:,} 条，无坐标 {stats['unlocated']:,} 条，"
            f"网格 {stats['cells']:,} 个，最大网格 {stats['max_cell_size']:,} 条"
        )
        return spatial_index, lexical_index

    @staticmethod
    def iter_candidate_pairs(spatial_index: SpatialIndex,
                             lexical_index: Optional[LexicalBlockIndex] = None) -> Iterator[CandidatePair]:
        pairs: Iterator[CandidatePair] = spatial_index.candidate_pairs()
        if lexical_index is not None:
            pairs = itertools.chain(pairs, lexical_index.candidate_pairs())
        return pairs

    # ------------------------------------------------------------------
    # 打分与聚类
    # ------------------------------------------------------------------
    def deduplicate(self, records: Sequence[NormalizedAddress],
                    summary: Optional[RunSummary] = None) -> List[DuplicateCluster]:
        """
        对已标准化的记录去重，返回重复簇

        Raises:
            PipelineCancelled: 运行期间收到停止信号
        """
        summary = summary if summary is not None else RunSummary()
        spatial_index, lexical_index = self.build_indexes(records)
        self._check_cancelled()

        builder = ClusterBuilder.from_config(len(records), self.config)
        counter = itertools.count()

        def counted(pairs: Iterator[CandidatePair]) -> Iterator[CandidatePair]:
            for pair in pairs:
                next(counter)
                yield pair

        def score_batch(batch: List[CandidatePair]):
            builder.add_all(self.scorer.score_batch(batch, records))

        pairs = counted(self.iter_candidate_pairs(spatial_index, lexical_index))
        completed = self.processor.run_bounded(
            batched(pairs, self.batch_size), score_batch, self._stop, desc="候选对打分"
        )
        if not completed:
            raise PipelineCancelled("打分阶段被取消，部分聚类结果已丢弃")

        summary.candidate_pairs = next(counter)
        summary.accepted_pairs = builder.accepted_pairs
        logger.info(f"候选对 {summary.candidate_pairs:,} 个，合并 {summary.accepted_pairs:,} 个")

        clusters = builder.clusters()
        cluster_summary = ClusterBuilder.create_cluster_summary(clusters)
        summary.clusters = cluster_summary['n_clusters']
        summary.duplicate_clusters = cluster_summary['n_duplicate_clusters']
        return clusters

    def canonicalize(self, clusters: Sequence[DuplicateCluster],
                     records: Sequence[NormalizedAddress]) -> List[CanonicalAddress]:
        return self.canonicalizer.canonicalize_all(clusters, records)

    # ------------------------------------------------------------------
    # 完整流程
    # ------------------------------------------------------------------
    def run(self, sources: Sequence[SourceSpec], output_path: Union[str, Path]) -> RunSummary:
        """
        运行完整处理管道

        Args:
            sources: [(数据源标识, 路径), ...]
            output_path: 输出CSV路径（.gz结尾时压缩）

        Returns:
            RunSummary

        Raises:
            SourceReadError / SourceEmptyError: 数据源无法读取或为空
            SinkWriteError: 输出无法写入
            PipelineCancelled: 运行被取消，未写出任何文件
        """
        logger.info("=" * 60)
        logger.info("多源地址去重")
        logger.info(f"开始时间: {datetime.now()}")
        logger.info("=" * 60)

        start_time = time.time()
        summary = RunSummary(output_path=str(output_path))

        # 1. 读取并标准化
        records, summary.sources = self.load_records(sources)
        self._check_cancelled()

        # 2. 候选对打分与聚类
        clusters = self.deduplicate(records, summary)
        self._check_cancelled()

        # 3. 规范地址
        canonical = self.canonicalize(clusters, records)
        self._check_cancelled()

        # 4. 写出
        summary.output_rows = FileUtils.write_canonical_csv(
            canonical, output_path,
            encoding=self.io_config['output_encoding'],
            delimiter=self.io_config['source_ids_delimiter'],
        )

        summary.duration_s = time.time() - start_time
        summary.log()
        return summary
