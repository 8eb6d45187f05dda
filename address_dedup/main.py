#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:13
# @Author  : hejun
"""
主程序入口：多源地址去重
"""
import argparse
import logging
import signal
import sys
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from address_dedup.config.config import load_config
from address_dedup.core.exceptions import DeduplicationError
from address_dedup.core.models import SourceTag
from address_dedup.core.pipeline import DeduplicationPipeline
from address_dedup.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        prog='address-dedup',
        description='多源地址去重（OSM / BANO / OpenAddresses）',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
      使用示例:
      # 合并BANO与OSM
      address-dedup --bano data/bano-75.csv --osm data/paris.osm.pbf --output-csv out/paris.csv

      # 多个OpenAddresses目录，输出gzip
      address-dedup --openaddresses data/oa/fr --openaddresses data/oa/be --output-csv out/oa.csv.gz

      # 指定配置文件和阈值
      address-dedup --bano data/bano.csv --output-csv out.csv --config my_config.json --threshold 0.85
        """
    )

    parser.add_argument('--osm', action='append', default=[], metavar='PATH',
                        help='OSM数据文件（.osm.pbf），可重复')
    parser.add_argument('--bano', action='append', default=[], metavar='PATH',
                        help='BANO CSV文件，可重复')
    parser.add_argument('--openaddresses', action='append', default=[], metavar='PATH',
                        help='OpenAddresses CSV文件或目录，可重复')
    parser.add_argument('--output-csv', required=True, metavar='PATH',
                        help='输出CSV路径（.gz结尾时压缩）')
    parser.add_argument('--config',
                        help='配置文件路径（JSON格式）')
    parser.add_argument('--threshold', type=float,
                        help='合并阈值（默认: 0.8）')
    parser.add_argument('--max-distance', type=float, metavar='METERS',
                        help='最大匹配距离，米（默认: 300）')
    parser.add_argument('--jobs', type=int,
                        help='并行任务数（默认: CPU核心数-2）')
    parser.add_argument('--log-dir',
                        help='日志目录（默认不写日志文件）')
    parser.add_argument('--verbose', action='store_true',
                        help='输出调试日志')

    args = parser.parse_args(argv)
    if not (args.osm or args.bano or args.openaddresses):
        parser.error('至少需要一个数据源: --osm / --bano / --openaddresses')
    return args


def collect_sources(args: argparse.Namespace) -> List[Tuple[SourceTag, str]]:
    """按命令行顺序整理数据源：OSM、BANO、OpenAddresses"""
    sources = []
    sources.extend((SourceTag.OSM, path) for path in args.osm)
    sources.extend((SourceTag.BANO, path) for path in args.bano)
    sources.extend((SourceTag.OPENADDRESSES, path) for path in args.openaddresses)
    return sources


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """命令行参数 -> 配置覆盖项"""
    overrides: Dict[str, Any] = {}
    if args.threshold is not None:
        overrides['clustering'] = {'merge_threshold': args.threshold}
    if args.max_distance is not None:
        overrides['spatial'] = {'max_distance_m': args.max_distance}
    if args.jobs is not None:
        overrides['performance'] = {'n_jobs': args.jobs}
    return overrides


def _is_main_thread() -> bool:
    return threading.current_thread() is threading.main_thread()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """主函数，返回退出码"""
    args = parse_arguments(argv)

    log = setup_logging(log_dir=args.log_dir, level=logging.DEBUG if args.verbose else logging.INFO)

    logger.info("🚀 启动多源地址去重")
    sources = collect_sources(args)
    for source, path in sources:
        logger.info(f"数据源 [{source.value}]: {path}")
    logger.info(f"输出文件: {args.output_csv}")
    if log.get_log_file():
        logger.info(f"日志文件: {log.get_log_file()}")

    try:
        config = load_config(args.config, build_overrides(args))
        pipeline = DeduplicationPipeline(config)

        # 第一次Ctrl+C 发送停止信号，让工作线程清空队列后退出
        previous_handler = signal.getsignal(signal.SIGINT)

        def handle_interrupt(signum, frame):
            pipeline.cancel()
            signal.signal(signal.SIGINT, previous_handler)

        if _is_main_thread():
            signal.signal(signal.SIGINT, handle_interrupt)
        try:
            pipeline.run(sources, args.output_csv)
        finally:
            if _is_main_thread():
                signal.signal(signal.SIGINT, previous_handler)

    except DeduplicationError as e:
        logger.error(f"❌ 处理失败: {e}")
        return 1

    logger.info("✅ 处理完成")
    return 0


if __name__ == "__main__":
    sys.exit(main())
