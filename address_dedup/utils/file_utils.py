#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:32
# @Author  : hejun
"""
文件处理工具函数
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import pandas as pd

from address_dedup.core.exceptions import SinkWriteError
from address_dedup.core.models import CanonicalAddress

OUTPUT_COLUMNS = ['house_number', 'street_name', 'city', 'postcode', 'lat', 'lon', 'source_ids']


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


class FileUtils:
    """文件处理工具类"""

    @staticmethod
    def ensure_directory(path: Union[str, Path]) -> Path:
        """确保目录存在"""
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def read_json(filepath: Union[str, Path], encoding: str = 'utf-8') -> Any:
        """读取JSON文件"""
        with open(filepath, 'r', encoding=encoding) as f:
            return json.load(f)

    @staticmethod
    def list_csv_files(path: Union[str, Path]) -> List[Path]:
        """单个文件直接返回；目录则递归查找其中的CSV文件（排序后返回）"""
        path = Path(path)
        if path.is_dir():
            return sorted(p for p in path.rglob('*') if p.is_file() and p.name.lower().endswith(('.csv', '.csv.gz')))
        return [path]

    @staticmethod
    def canonical_dataframe(addresses: Iterable[CanonicalAddress], delimiter: str = ';') -> pd.DataFrame:
        """规范地址 -> 输出表"""
        rows = [address.to_row(delimiter) for address in addresses]
        return pd.DataFrame(rows, columns=OUTPUT_COLUMNS)

    @staticmethod
    def save_dataframe(df: pd.DataFrame, filepath: Union[str, Path],
                       encoding: str = 'utf-8', index: bool = False, **kwargs):
        """
        原子地保存DataFrame为CSV

        先写入同目录下的临时文件，成功后再重命名，目标文件要么完整要么不存在。
        路径以 .gz 结尾时写入gzip压缩的CSV。

        Raises:
            SinkWriteError: 无法创建或写入输出文件
        """
        filepath = Path(filepath)
        compression = 'gzip' if filepath.suffix.lower() == '.gz' else None

        try:
            FileUtils.ensure_directory(filepath.parent)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{filepath.name}.", suffix='.tmp', dir=filepath.parent)
        except OSError as e:
            raise SinkWriteError(str(filepath), str(e)) from e
        os.close(fd)

        try:
            # mkstemp 固定为 0600，按 umask 恢复普通文件权限
            os.chmod(tmp_name, 0o666 & ~_current_umask())
            df.to_csv(tmp_name, index=index, encoding=encoding, compression=compression, **kwargs)
            os.replace(tmp_name, filepath)
        except OSError as e:
            raise SinkWriteError(str(filepath), str(e)) from e
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)

    @staticmethod
    def write_canonical_csv(addresses: Iterable[CanonicalAddress], filepath: Union[str, Path],
                            encoding: str = 'utf-8', delimiter: str = ';') -> int:
        """写出规范地址CSV，返回行数"""
        df = FileUtils.canonical_dataframe(addresses, delimiter)
        FileUtils.save_dataframe(df, filepath, encoding=encoding)
        return len(df)

