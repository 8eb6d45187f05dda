#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# @Time    : 2025/12/5 15:17
# @Author  : hejun
"""
地址标准化模块
将原始记录转换为 NormalizedAddress，解析与变体扩展委托给可替换的解析后端（规则词典 / libpostal）
"""
import itertools
import re
import threading
import unicodedata
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from address_dedup.core.exceptions import ConfigurationError, NormalizationError
from address_dedup.core.models import NormalizedAddress, RawAddressRecord, RawFields
from address_dedup.utils.logger import get_logger

logger = get_logger(__name__)

_APOSTROPHES = re.compile(r"[’‘`´ʼ]")
_NOT_WORD = re.compile(r"[^\w\s'\-]")
_SPACES = re.compile(r'\s+')
_SEPARATORS = re.compile(r"['\-_]")


def clean_text(text: Optional[str]) -> str:
    """基础清洗：全角转半角、小写、去除标点，保留重音字符"""
    if text is None:
        return ''
    text = str(text)
    # 移除不可见字符
    text = ''.join(char for char in text if char.isprintable())
    text = unicodedata.normalize('NFKC', text)
    text = _APOSTROPHES.sub("'", text).lower()
    text = _NOT_WORD.sub(' ', text)
    text = _SPACES.sub(' ', text).strip()
    return text.strip("'- ")


def fold_text(text: str) -> str:
    """匹配用形式：去重音、连字符/撇号转空格"""
    decomposed = unicodedata.normalize('NFKD', text)
    text = ''.join(char for char in decomposed if not unicodedata.combining(char))
    text = _SEPARATORS.sub(' ', text)
    return _SPACES.sub(' ', text).strip()


class RuleBasedParser:
    """基于缩写词典和正则的解析后端"""

    name = 'rules'

    # 缩写 -> 全称（第一个为首选）
    ABBREVIATIONS = {
        # 法语道路类型
        'r': ('rue',),
        'av': ('avenue',),
        'ave': ('avenue',),
        'bd': ('boulevard',),
        'bld': ('boulevard',),
        'blvd': ('boulevard',),
        'pl': ('place',),
        'ch': ('chemin',),
        'chem': ('chemin',),
        'che': ('chemin',),
        'imp': ('impasse',),
        'all': ('allée',),
        'rte': ('route',),
        'sq': ('square',),
        'pass': ('passage',),
        'qu': ('quai',),
        'fg': ('faubourg',),
        'fbg': ('faubourg',),
        'crs': ('cours',),
        'res': ('résidence',),
        'lot': ('lotissement',),
        'ham': ('hameau',),
        'pte': ('porte',),
        'sen': ('sentier',),
        'mte': ('montée',),
        'prom': ('promenade',),
        'esp': ('esplanade',),
        'car': ('carrefour',),
        'rpt': ('rond-point',),
        'vla': ('villa',),
        # 称谓/圣人
        'st': ('saint', 'street'),
        'ste': ('sainte',),
        'dr': ('docteur', 'drive', 'doctor'),
        'gal': ('général',),
        'mal': ('maréchal',),
        'pdt': ('président',),
        'prof': ('professeur',),
        # 英语道路类型
        'rd': ('road',),
        'ln': ('lane',),
        'ct': ('court',),
        'hwy': ('highway',),
        'pkwy': ('parkway',),
        'cres': ('crescent',),
        'tce': ('terrace',),
        'mt': ('mount', 'mont'),
    }

    # 位于末尾时更可能是道路类型
    SUFFIX_PREFERRED = {
        'st': 'street',
        'dr': 'drive',
    }

    # 无门牌号标记
    NO_NUMBER_MARKERS = {'sn', 's n', 'snc', 'sans numero', 'sans numéro', 'n a'}

    def __init__(self):
        # 全称 -> 缩写（反向词典）
        self.reverse_abbreviations: Dict[str, List[str]] = {}
        for abbreviation, full_forms in self.ABBREVIATIONS.items():
            for full in full_forms:
                self.reverse_abbreviations.setdefault(full, []).append(abbreviation)

        # 地址组件正则
        self.patterns = {
            'leading_number': re.compile(r'^(\d+(?:\s?(?:bis|ter|quater)|[a-z])?)\b[\s,]*(.+)$'),
            'trailing_number': re.compile(r'^(.+?)[\s,]+(\d{1,3}(?:\s?[a-z])?)$'),
            'leading_postcode': re.compile(r'^(\d{4,5})\s+(.+)$'),
            'cedex': re.compile(r'\s+cedex(?:\s+\d+)?$'),
        }

    def parse(self, fields: RawFields) -> Dict[str, str]:
        """从结构化字段中提取门牌号、道路、城市、邮编"""
        house_number = clean_text(fields.house_number)
        street = clean_text(fields.street)
        city = clean_text(fields.city)
        postcode = clean_text(fields.postcode)

        # 门牌号混在街道里：“12 rue de la paix” / “hauptstraße 5”
        if not house_number and street:
            match = self.patterns['leading_number'].match(street)
            if match:
                house_number, street = match.group(1), match.group(2)
            else:
                match = self.patterns['trailing_number'].match(street)
                if match:
                    street, house_number = match.group(1), match.group(2)

        # 邮编混在城市里：“75002 paris”
        if not postcode and city:
            match = self.patterns['leading_postcode'].match(city)
            if match:
                postcode, city = match.group(1), match.group(2)

        if city:
            city = self.patterns['cedex'].sub('', city)

        return {
            'house_number': house_number,
            'street': street,
            'city': city,
            'postcode': postcode,
        }

    def _alternatives(self, token: str, is_last: bool) -> List[str]:
        """单个词的候选写法，首元素为规范写法"""
        full_forms = self.ABBREVIATIONS.get(token)
        if full_forms:
            primary = full_forms[0]
            if is_last and token in self.SUFFIX_PREFERRED:
                primary = self.SUFFIX_PREFERRED[token]
            others = [form for form in full_forms if form != primary]
            return [primary, token] + others

        alternatives = [token]
        alternatives.extend(self.reverse_abbreviations.get(token, []))
        return alternatives

    def canonical_street(self, street: str) -> str:
        tokens = street.split()
        return ' '.join(
            self._alternatives(token, i == len(tokens) - 1)[0]
            for i, token in enumerate(tokens)
        )

    def expand(self, street: str, max_expansions: int = 16) -> Set[str]:
        """生成街道名变体（缩写展开/缩写化）"""
        tokens = street.split()
        if not tokens:
            return set()
        choices = [self._alternatives(token, i == len(tokens) - 1) for i, token in enumerate(tokens)]
        expansions = set()
        for combination in itertools.islice(itertools.product(*choices), max_expansions):
            expansions.add(fold_text(' '.join(combination)))
        return expansions

    def normalize_house_number(self, value: str) -> str:
        value = value.strip()
        if value in self.NO_NUMBER_MARKERS:
            return ''
        value = value.replace(' ', '')
        if value in {'sn', '0'}:
            return ''
        return value


class LibpostalParser(RuleBasedParser):
    """libpostal 解析后端，门牌号等规则沿用规则后端"""

    name = 'libpostal'

    def __init__(self):
        super().__init__()
        try:
            from postal.expand import expand_address
            from postal.parser import parse_address
        except ImportError as e:
            raise ConfigurationError(
                "normalization.backend=libpostal 需要安装 postal 及 libpostal 数据: "
                "pip install 'address-dedup[libpostal]'"
            ) from e

        self._parse_address = parse_address
        self._expand_address = expand_address
        # libpostal 的全局模型状态不保证线程安全
        self._lock = threading.Lock()

    def parse(self, fields: RawFields) -> Dict[str, str]:
        text = fields.as_text()
        if not text.strip():
            return super().parse(fields)

        with self._lock:
            labelled = self._parse_address(text)

        components: Dict[str, str] = {}
        for value, label in labelled:
            components.setdefault(label, value)

        # libpostal 未识别的字段回退到导入器提供的结构化字段
        structured = super().parse(fields)
        return {
            'house_number': clean_text(components.get('house_number')) or structured['house_number'],
            'street': clean_text(components.get('road')) or structured['street'],
            'city': clean_text(components.get('city') or components.get('suburb')) or structured['city'],
            'postcode': clean_text(components.get('postcode')) or structured['postcode'],
        }

    def canonical_street(self, street: str) -> str:
        return street

    def expand(self, street: str, max_expansions: int = 16) -> Set[str]:
        if not street:
            return set()
        with self._lock:
            expansions = self._expand_address(street)
        return {fold_text(value) for value in itertools.islice(expansions, max_expansions)}


PARSER_BACKENDS = {
    'rules': RuleBasedParser,
    'libpostal': LibpostalParser,
}


@lru_cache(maxsize=None)
def acquire_parser(backend: str = 'rules') -> RuleBasedParser:
    """
    获取进程内共享的解析后端

    后端在首次调用时初始化一次（libpostal 加载模型较重），之后所有工作线程只读共享。
    """
    if backend not in PARSER_BACKENDS:
        raise ConfigurationError(f"未知的标准化后端: {backend}")
    logger.info(f"初始化地址解析后端: {backend}")
    return PARSER_BACKENDS[backend]()


class AddressNormalizer:
    """地址标准化适配器"""

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}
        self.require_geometry = self.config.get('require_geometry', False)
        self.require_house_number = self.config.get('require_house_number', False)
        self.max_expansions = self.config.get('max_expansions', 16)
        self.parser = acquire_parser(self.config.get('backend', 'rules'))

    def normalize(self, record: RawAddressRecord) -> NormalizedAddress:
        """
        标准化单条记录

        Args:
            record: 原始地址记录

        Returns:
            标准化地址

        Raises:
            NormalizationError: 无法解析 / 缺少必需坐标 / 缺少必需门牌号
        """
        source = record.source.value
        if self.require_geometry and not record.has_geometry:
            raise NormalizationError(NormalizationError.MISSING_GEOMETRY, source, record.source_id)

        components = self.parser.parse(record.raw_fields)
        house_number = self.parser.normalize_house_number(components['house_number'])
        street = components['street']
        city = components['city']
        postcode = components['postcode'].upper()

        if not any((house_number, street, city, postcode)):
            raise NormalizationError(
                NormalizationError.UNPARSEABLE, source, record.source_id,
                detail=repr(record.raw_fields.as_text())[:80],
            )

        if self.require_house_number and not house_number:
            raise NormalizationError(NormalizationError.MISSING_HOUSE_NUMBER, source, record.source_id)

        street_name = self.parser.canonical_street(street) if street else ''
        expansions = self.parser.expand(street, self.max_expansions) if street else set()
        if street_name:
            expansions.add(fold_text(street_name))

        return NormalizedAddress(
            record=record,
            house_number=house_number,
            street_name=street_name,
            expansions=frozenset(expansions),
            city=city,
            postcode=postcode,
        )

    def try_normalize(self, record: RawAddressRecord) -> Union[NormalizedAddress, NormalizationError]:
        """标准化单条记录，失败时返回异常对象而不是抛出"""
        try:
            return self.normalize(record)
        except NormalizationError as e:
            return e

    def batch_normalize(self, records: Sequence[RawAddressRecord],
                        n_jobs: int = 1) -> List[Union[NormalizedAddress, NormalizationError]]:
        """批量标准化地址，结果与输入一一对应"""
        if n_jobs == 1 or len(records) < 2:
            return [self.try_normalize(record) for record in records]

        from joblib import Parallel, delayed

        return Parallel(n_jobs=n_jobs, prefer='threads')(
            delayed(self.try_normalize)(record)
            for record in records
        )
