# !/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:33
# @Author  : hejun
"""
日志记录工具
所有模块日志器都挂在 address_dedup 之下，一次 setup_logging 即可统一配置
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = 'address_dedup'


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器"""

    # ANSI颜色代码
    COLORS = {
        'DEBUG': '\033[36m',  # 青色
        'INFO': '\033[32m',  # 绿色
        'WARNING': '\033[33m',  # 黄色
        'ERROR': '\033[31m',  # 红色
        'CRITICAL': '\033[35m',  # 紫色
        'RESET': '\033[0m'  # 重置
    }

    def format(self, record):
        # 只给输出的副本上色，避免污染同一条记录在文件处理器中的内容
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname)
        if color:
            colored.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(colored)


class Logger:
    """日志记录器"""

    FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s - [%(lineno)d] %(message)s'
    DATEFMT = '%Y-%m-%d %H:%M:%S'

    def __init__(self, name: str = ROOT_LOGGER_NAME,
                 log_dir: Optional[str] = None,
                 level: int = logging.INFO,
                 console: bool = True):
        """
        初始化日志记录器

        Args:
            name: 日志记录器名称
            log_dir: 日志目录，None表示不保存到文件
            level: 日志级别
            console: 是否输出到控制台
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        # 只清理本模块添加的处理器，保留外部（如pytest）挂载的处理器
        for handler in list(self.logger.handlers):
            if getattr(handler, '_address_dedup', False):
                self.logger.removeHandler(handler)
                handler.close()

        if console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(ColoredFormatter(self.FORMAT, datefmt=self.DATEFMT))
            self._attach(console_handler)

        # 文件处理器
        self.log_file = None
        if log_dir:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_file = log_dir / f"{name}_{timestamp}.log"

            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(self.FORMAT, datefmt=self.DATEFMT))
            self._attach(file_handler)

            self.log_file = log_file

    def _attach(self, handler: logging.Handler):
        handler._address_dedup = True
        self.logger.addHandler(handler)

    def get_logger(self) -> logging.Logger:
        """获取日志记录器实例"""
        return self.logger

    def get_log_file(self) -> Optional[Path]:
        """获取日志文件路径"""
        return self.log_file


def get_logger(module_name: str) -> logging.Logger:
    """
    获取模块日志器

    模块本身不添加处理器，日志向上传递到 address_dedup 根日志器。
    """
    if module_name == ROOT_LOGGER_NAME or module_name.startswith(ROOT_LOGGER_NAME + '.'):
        return logging.getLogger(module_name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")


def setup_logging(name: str = ROOT_LOGGER_NAME,
                  log_dir: Optional[str] = None,
                  level: int = logging.INFO) -> Logger:
    """
    快速设置日志记录

    Args:
        name: 日志记录器名称
        log_dir: 日志目录
        level: 日志级别

    Returns:
        日志记录器实例
    """
    return Logger(name, log_dir, level)
