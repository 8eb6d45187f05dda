#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/18 10:02
# @Author  : hejun
"""
异常定义
单条记录错误可恢复，数据源/输出/配置错误为致命错误
"""
from typing import Optional


class DeduplicationError(Exception):
    """去重引擎异常基类"""


class ConfigurationError(DeduplicationError):
    """配置非法，在任何处理开始前抛出"""


class NormalizationError(DeduplicationError):
    """单条记录标准化失败（可恢复）"""

    UNPARSEABLE = 'unparseable'
    MISSING_GEOMETRY = 'missing_geometry'
    MISSING_HOUSE_NUMBER = 'missing_house_number'

    def __init__(self, kind: str, source: str = '', source_id: str = '',
                 detail: Optional[str] = None):
        self.kind = kind
        self.source = source
        self.source_id = source_id
        self.detail = detail
        message = f"[{source}:{source_id}] {kind}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SourceReadError(DeduplicationError):
    """数据源无法打开、读取或格式损坏"""

    def __init__(self, source: str, path, reason: str):
        self.source = source
        self.path = str(path)
        self.reason = reason
        super().__init__(f"数据源不可读 [{source}] {self.path}: {reason}")


class SourceEmptyError(SourceReadError):
    """数据源可读但没有任何记录"""

    def __init__(self, source: str, path):
        self.source = source
        self.path = str(path)
        self.reason = 'empty'
        DeduplicationError.__init__(self, f"数据源为空 [{source}] {self.path}: 未读取到任何地址记录")


class SinkWriteError(DeduplicationError):
    """输出文件无法创建或写入"""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"输出写入失败 {self.path}: {reason}")


class PipelineCancelled(DeduplicationError):
    """运行被中止，已计算的部分结果全部丢弃"""
