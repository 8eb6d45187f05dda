#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/19 09:40
# @Author  : hejun
"""
导入器基类
每个导入器都是可重复迭代的惰性记录序列：每次 __iter__ 都重新打开文件
"""
import math
from pathlib import Path
from typing import Iterator, List, Optional, Union

import pandas as pd

from address_dedup.core.exceptions import SourceReadError
from address_dedup.core.models import RawAddressRecord, SourceTag
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)


def parse_coordinate(value) -> Optional[float]:
    """坐标字符串 -> float，缺失、非数值或非有限值返回None"""
    if value is None:
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def clean_value(value) -> Optional[str]:
    # 行尾字段缺失时 pandas 仍会填 NaN
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    value = str(value).strip()
    return value or None


def valid_position(lat: Optional[float], lon: Optional[float]):
    """超出经纬度范围的坐标视为缺失"""
    if lat is None or lon is None or abs(lat) > 90 or abs(lon) > 180:
        return None, None
    return lat, lon


class BaseImporter:
    """导入器基类"""

    source: SourceTag = None

    def __init__(self, path: Union[str, Path], chunksize: int = 50000, encoding: str = 'utf-8'):
        self.path = Path(path)
        self.chunksize = chunksize
        self.encoding = encoding

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.path)!r})"

    def __iter__(self) -> Iterator[RawAddressRecord]:
        if not self.path.exists():
            raise SourceReadError(self.source.value, self.path, "文件不存在")
        return self.iter_records()

    def iter_records(self) -> Iterator[RawAddressRecord]:
        raise NotImplementedError

    def read_chunks(self, filepath: Path, **kwargs) -> Iterator[pd.DataFrame]:
        """
        分块读取CSV，所有列按字符串读取

        Raises:
            SourceReadError: 文件无法读取或格式损坏
        """
        try:
            reader = pd.read_csv(
                filepath,
                chunksize=self.chunksize,
                dtype=str,
                keep_default_na=False,
                encoding=self.encoding,
                compression='infer',
                **kwargs
            )
            with reader:
                for chunk in reader:
                    yield chunk
        except pd.errors.EmptyDataError:
            logger.warning(f"[{self.source.value}] 文件为空: {filepath}")
            return
        except (OSError, pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
            raise SourceReadError(self.source.value, filepath, str(e)) from e

    @staticmethod
    def require_columns(df: pd.DataFrame, columns: List[str], source: str, filepath: Path):
        missing = [column for column in columns if column not in df.columns]
        if missing:
            raise SourceReadError(source, filepath, f"缺少列: {missing}")
