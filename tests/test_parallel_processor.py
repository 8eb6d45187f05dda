#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
并行处理测试
"""
import threading

import pytest

from address_dedup.utils.parallel_processor import ParallelProcessor, batched


def test_batched():
    assert list(batched(range(7), 3)) == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(batched([], 3)) == []


def test_auto_n_jobs_is_at_least_one():
    assert ParallelProcessor().n_jobs >= 1
    assert ParallelProcessor(n_jobs=0).n_jobs == 1


@pytest.mark.parametrize('n_jobs', [1, 4])
def test_run_bounded_processes_every_batch(n_jobs):
    processed = []
    lock = threading.Lock()

    def worker(batch):
        with lock:
            processed.extend(batch)

    processor = ParallelProcessor(n_jobs=n_jobs, queue_size=2)
    completed = processor.run_bounded(batched(range(1000), 7), worker)

    assert completed
    assert sorted(processed) == list(range(1000))


def test_worker_error_is_raised_in_caller():
    def worker(batch):
        if 13 in batch:
            raise RuntimeError('boom')

    processor = ParallelProcessor(n_jobs=3, queue_size=1)
    with pytest.raises(RuntimeError, match='boom'):
        processor.run_bounded(batched(range(100), 1), worker)


def test_stop_event_stops_producer_and_drains_queue():
    stop = threading.Event()
    produced = []
    processed = []

    def batches():
        for i in range(10000):
            produced.append(i)
            yield [i]

    def worker(batch):
        processed.extend(batch)
        if batch[0] == 5:
            stop.set()

    processor = ParallelProcessor(n_jobs=1, queue_size=2)
    completed = processor.run_bounded(batches(), worker, stop_event=stop)

    assert not completed
    # 有界队列限制了停止信号之后仍被生产的批次数
    assert len(produced) < 20
    assert len(processed) <= len(produced)


def test_system_info():
    info = ParallelProcessor(n_jobs=2).get_system_info()
    assert info['n_jobs'] == 2
    assert info['cpu_count'] >= 1
