#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:15
# @Author  : hejun
"""
并行处理模块
有界队列 + 工作线程，生产者被队列容量反压，支持停止信号
"""
import itertools
import multiprocessing as mp
import queue
import threading
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, TypeVar

import psutil
from tqdm import tqdm

from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

_SENTINEL = object()


def batched(iterable: Iterable[T], batch_size: int) -> Iterator[List[T]]:
    """按固定大小切分任意可迭代对象"""
    iterator = iter(iterable)
    while True:
        batch = list(itertools.islice(iterator, batch_size))
        if not batch:
            return
        yield batch


class ParallelProcessor:
    """并行处理器"""

    def __init__(self, n_jobs: Optional[int] = None,
                 max_memory_gb: Optional[float] = None,
                 queue_size: int = 64,
                 show_progress: bool = False):
        """
        初始化并行处理器

        Args:
            n_jobs: 并行任务数，None表示自动检测
            max_memory_gb: 内存告警阈值（GB），None表示不检查
            queue_size: 有界队列容量（批）
            show_progress: 是否显示进度条
        """
        if n_jobs is None:
            # 自动检测：使用CPU核心数-2，至少为1
            self.n_jobs = max(1, mp.cpu_count() - 2)
        else:
            self.n_jobs = max(1, n_jobs)

        self.max_memory_gb = max_memory_gb
        self.queue_size = max(1, queue_size)
        self.show_progress = show_progress

    def run_bounded(self,
                    batches: Iterable[T],
                    worker: Callable[[T], Any],
                    stop_event: Optional[threading.Event] = None,
                    desc: str = "Processing") -> bool:
        """
        生产者-消费者模式处理批次

        当前线程迭代 batches 并放入有界队列（队列满时阻塞），n_jobs 个工作线程取出并调用 worker。
        stop_event 被置位后生产者停止生产，工作线程只清空队列不再处理。
        任一工作线程抛出的第一个异常会停止整个运行并在当前线程重新抛出。

        Args:
            batches: 批次序列（可以是惰性生成器）
            worker: 批次处理函数
            stop_event: 停止信号
            desc: 进度描述

        Returns:
            True表示全部批次处理完成，False表示被停止信号中断
        """
        stop_event = stop_event or threading.Event()
        work_queue: queue.Queue = queue.Queue(maxsize=self.queue_size)
        errors: List[BaseException] = []
        error_lock = threading.Lock()
        progress = tqdm(desc=desc, unit='批', disable=not self.show_progress)

        def consume():
            while True:
                item = work_queue.get()
                try:
                    if item is _SENTINEL:
                        return
                    if stop_event.is_set():
                        continue
                    worker(item)
                    progress.update(1)
                except Exception as e:
                    with error_lock:
                        errors.append(e)
                    stop_event.set()
                finally:
                    work_queue.task_done()

        threads = [
            threading.Thread(target=consume, name=f"address-dedup-worker-{i}", daemon=True)
            for i in range(self.n_jobs)
        ]
        for thread in threads:
            thread.start()

        produced = 0
        try:
            for batch in batches:
                if stop_event.is_set():
                    break
                work_queue.put(batch)
                produced += 1
                if self.max_memory_gb and produced % 100 == 0:
                    self._check_memory_usage()
        finally:
            for _ in threads:
                work_queue.put(_SENTINEL)
            for thread in threads:
                thread.join()
            progress.close()

        if errors:
            raise errors[0]

        logger.debug(f"{desc}: 共 {produced} 批，工作线程 {self.n_jobs} 个")
        return not stop_event.is_set()

    def _check_memory_usage(self):
        """检查内存使用"""
        if self.max_memory_gb:
            memory_info = psutil.virtual_memory()
            used_gb = memory_info.used / (1024 ** 3)

            if used_gb > self.max_memory_gb * 0.9:  # 达到90%阈值
                logger.warning(f"内存使用过高: {used_gb:.1f}GB / {self.max_memory_gb:.1f}GB")

    def get_system_info(self) -> Dict[str, Any]:
        """获取系统信息"""
        memory = psutil.virtual_memory()
        cpu_count = mp.cpu_count()

        return {
            'cpu_count': cpu_count,
            'memory_total_gb': memory.total / (1024 ** 3),
            'memory_available_gb': memory.available / (1024 ** 3),
            'memory_used_percent': memory.percent,
            'n_jobs': self.n_jobs,
            'max_memory_gb': self.max_memory_gb
        }
