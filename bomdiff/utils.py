# -*- coding: utf-8 -*-
"""
通用工具函数模块 v1.0
包含：单元格规整、关键列清洗、数量数值化、自然排序、表头定位与重排

要点：
    - 富对象（日期、公式、嵌入对象）统一规整为空字符串
    - 关键列去除零宽字符、BOM、软连字符及所有空白
    - 数量解析失败一律按 0 处理
"""

import math
import re
import unicodedata
from typing import Any, List, Sequence, Tuple, Union

from .config import HEADER_TOKENS

Number = Union[int, float]

_INVISIBLE_RE = re.compile(r'[\u200b-\u200d\ufeff\u00ad]')
_WHITESPACE_RE = re.compile(r'[\s\u00a0]+')
_QTY_NOISE_RE = re.compile(r'[,\s\u00a0]')
_DIGITS_RE = re.compile(r'(\d+)')


# ============================================================
# 单元格规整
# ============================================================
def normalize_cell_value(value: Any) -> str:
    """
    将任意来源的单元格值规整为字符串

    处理规则：
    1. None → 空字符串
    2. 字符串原样返回
    3. 布尔值 → TRUE / FALSE
    4. 数值 → 字符串（整数值浮点去掉 .0，NaN/inf 视为空）
    5. 其他对象（日期、公式、富文本对象等）→ 空字符串

    Args:
        value: 原始单元格值

    Returns:
        规整后的字符串
    """
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return ''
        if value == int(value):
            return str(int(value))
        return repr(value)
    return ''


def safe_string(value: Any) -> str:
    """None 转空串，其余转 str"""
    return '' if value is None else str(value)


def normalize_key(value: Any) -> str:
    """
    关键列规整：去不可见字符与全部空白

    删除 U+200B..U+200D、U+FEFF、U+00AD，以及包含 NBSP 在内的所有空白字符。
    """
    s = safe_string(value)
    s = _INVISIBLE_RE.sub('', s)
    return _WHITESPACE_RE.sub('', s)


def to_number(value: Any) -> Number:
    """
    数量转数字：去除千分位逗号与空白后解析，失败返回 0

    Args:
        value: 数量单元格值（数值或字符串）

    Returns:
        有限数值；整数值以 int 返回
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        n = float(value)
    else:
        text = _QTY_NOISE_RE.sub('', str(value))
        if not text:
            return 0
        try:
            n = float(text)
        except ValueError:
            return 0
    if not math.isfinite(n):
        return 0
    return int(n) if n.is_integer() else n


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ''


# ============================================================
# 自然排序
# ============================================================
def _fold(text: str) -> str:
    # 忽略大小写与重音
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def natural_key(value: Any) -> Tuple[Tuple[Any, ...], str]:
    """
    自然排序键：数字段按数值比较，其余按大小写、重音不敏感的文本比较

    分段元组中偶数位恒为文本段、奇数位恒为数字段，任意两个键可直接比较；
    数值相同的前导零写法（PN01 与 PN1）再按折叠后的原文排序。
    """
    folded = _fold(safe_string(value).strip())
    parts = _DIGITS_RE.split(folded)
    return tuple(int(p) if i % 2 else p for i, p in enumerate(parts)), folded


def natural_compare(a: Any, b: Any) -> int:
    """比较函数版本：a<b 返回 -1，相等 0，a>b 返回 1"""
    ka, kb = natural_key(a), natural_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def natural_sorted(values: Sequence[Any]) -> List[Any]:
    return sorted(values, key=natural_key)


# ============================================================
# 表头定位与重排
# ============================================================
def first_non_empty_cell(row: Sequence[Any]) -> str:
    for cell in row:
        text = safe_string(cell).strip()
        if text:
            return text
    return ''


def find_header_row(grid: Sequence[Sequence[Any]], keywords: Sequence[str] = HEADER_TOKENS) -> int:
    """
    查找表头行

    从上到下查找第一个"首个非空单元格包含关键词"的行。

    Args:
        grid: 二维数组格式的原始数据
        keywords: 表头关键词

    Returns:
        表头行索引，未找到返回 -1
    """
    for row_index, row in enumerate(grid):
        if not row:
            continue
        first = first_non_empty_cell(row)
        if first and any(keyword in first for keyword in keywords):
            return row_index
    return -1


def extract_headers(header_row: Sequence[Any]) -> List[Tuple[int, str]]:
    """
    提取表头：丢弃空白表头，同名表头只保留第一列

    Returns:
        [(列索引, 表头名), ...]
    """
    result: List[Tuple[int, str]] = []
    seen = set()
    for col_index, cell in enumerate(header_row):
        name = safe_string(cell).strip()
        if not name or name in seen:
            continue
        seen.add(name)
        result.append((col_index, name))
    return result


def reorder_headers(headers: Sequence[str], preferred: Sequence[str]) -> List[str]:
    """将 preferred 中存在的列提前，其他列保持原有顺序"""
    present = set(headers)
    front = [h for h in preferred if h in present]
    front_set = set(front)
    return front + [h for h in headers if h not in front_set]
