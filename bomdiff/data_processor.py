# -*- coding: utf-8 -*-
"""
核心业务逻辑模块 v1.0

职责：
    clean_table / clean_bom    : 零件号规整、回填、导线折叠、同键聚合（数量累加）
    compare_tables / compare_bom_files: 双向两轮比对（未找到/供应商匹配/数量不同/数量相同）
    compare_wires              : 导线类零件本表/对表数量清单（仅用于导出汇总）
    count_classifications      : 分类统计

约定：
    - 原始行内容从不修改；清洗只在本次调用的原始表副本上打"已合并"标记
    - 比对为纯函数，返回带分类的副本，行顺序与内容不变
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from .config import (
    COLUMN_NAMES,
    MERGED_TAG,
    WIRE_TYPES,
    Classification,
    FileStatus,
)
from .file_reader import BOMDocument, CanonicalTable, CellValue, TableRow
from .utils import Number, natural_key, normalize_key, safe_string, to_number

logger = logging.getLogger(__name__)

COL_PN = COLUMN_NAMES.PART_NUMBER
COL_SUPPN = COLUMN_NAMES.SUPPLIER_PART_NUMBER
COL_QTY = COLUMN_NAMES.QUANTITY
COL_TYPE = COLUMN_NAMES.TYPE


# ============================================================
# 结果数据结构
# ============================================================
@dataclass
class WireDifference:
    """单个导线零件号在两表中的数量"""
    part_number: str
    type: str
    own_quantity: Number
    other_quantity: Number

    @property
    def difference(self) -> Number:
        return self.own_quantity - self.other_quantity


@dataclass
class ComparisonStats:
    not_found: int = 0
    cross_matched: int = 0
    quantity_mismatch: int = 0
    quantity_match: int = 0
    total: int = 0


@dataclass
class _Group:
    data: Dict[str, CellValue]
    qty: Number


# ============================================================
# 清洗（聚合）
# ============================================================
def aggregation_key(row: Dict[str, CellValue]) -> str:
    """
    计算聚合键并回写到工作记录

    1. 零件号为空、供应商零件号不为空 → 零件号 = [供应商零件号]
    2. 零件号、供应商零件号去不可见字符与空白
    3. 数量数值化（缺列按 0）
    4. 类型属于导线且零件号至少 3 段 → 只保留前两段
    """
    pn_raw = safe_string(row.get(COL_PN))
    spn_raw = safe_string(row.get(COL_SUPPN))
    if not pn_raw and spn_raw:
        row[COL_PN] = f'[{spn_raw}]'

    if COL_PN in row:
        row[COL_PN] = normalize_key(row[COL_PN])
    if COL_SUPPN in row:
        row[COL_SUPPN] = normalize_key(row[COL_SUPPN])
    row[COL_QTY] = to_number(row[COL_QTY]) if COL_QTY in row else 0

    # 类型取清洗时的原值，不做大小写/空白处理
    pn = safe_string(row.get(COL_PN))
    if pn and safe_string(row.get(COL_TYPE)) in WIRE_TYPES:
        parts = pn.split('-')
        if len(parts) >= 3:
            pn = f'{parts[0]}-{parts[1]}'
    row[COL_PN] = pn
    return pn


def clean_table(raw: CanonicalTable) -> Tuple[CanonicalTable, CanonicalTable]:
    """
    清洗入口

    Args:
        raw: 解析得到的原始表（不会被修改）

    Returns:
        (清洗后的表, 带合并标记的原始表副本)
    """
    headers = list(raw.headers)
    marked = raw.copy()

    if not headers or not marked.rows:
        return CanonicalTable(headers=headers, rows=[]), marked

    has_qty = COL_QTY in headers
    groups: Dict[str, _Group] = {}

    for src in marked.rows:
        # 工作记录：只取表头内的列
        work: Dict[str, CellValue] = {h: src.data[h] for h in headers if h in src.data}
        key = aggregation_key(work)
        qty = work[COL_QTY]

        group = groups.get(key)
        if group is None:
            base = {h: work[h] for h in headers if h in work}
            if has_qty:
                base[COL_QTY] = qty
            groups[key] = _Group(data=base, qty=qty)
            src.merged_away = False
        else:
            group.qty += qty
            if has_qty:
                group.data[COL_QTY] = group.qty
            src.merged_away = True
            src.highlight = MERGED_TAG

    rows = [TableRow(data=g.data, index=0) for g in groups.values()]
    rows.sort(key=lambda r: natural_key(r.data.get(COL_PN)))
    for i, r in enumerate(rows):
        r.index = i

    merged = sum(1 for r in marked.rows if r.merged_away)
    logger.info('[清洗] %d 行 → %d 行（合并 %d 行）', marked.row_count, len(rows), merged)
    return CanonicalTable(headers=headers, rows=rows), marked


def clean_bom(doc: BOMDocument) -> BOMDocument:
    """对 BOMDocument 执行清洗，返回新文档；异常记录到文档状态"""
    if doc.status == FileStatus.ERROR:
        return doc
    try:
        cleaned, marked = clean_table(doc.original)
    except Exception as e:
        logger.warning('[清洗] %s 清洗失败: %s', doc.name, e)
        return BOMDocument(name=doc.name, status=FileStatus.ERROR, error_msg=str(e),
                           original=doc.original, cleaned=doc.cleaned)
    return BOMDocument(name=doc.name, status=FileStatus.SUCCESS, error_msg='',
                       original=marked, cleaned=cleaned)


# ============================================================
# 比对
# ============================================================
def _pn(row: TableRow) -> str:
    return safe_string(row.data.get(COL_PN)).strip()


def _spn(row: TableRow) -> str:
    return safe_string(row.data.get(COL_SUPPN)).strip()


def build_pn_index(rows: List[TableRow]) -> Dict[str, TableRow]:
    """零件号 → 行；空零件号不入索引"""
    index: Dict[str, TableRow] = {}
    for r in rows:
        pn = _pn(r)
        if pn:
            index[pn] = r
    return index


def classify_by_pn(row: TableRow, other_by_pn: Dict[str, TableRow]) -> Classification:
    pn = _pn(row)
    other = other_by_pn.get(pn) if pn else None
    if other is None:
        return Classification.NOT_FOUND
    q1 = to_number(row.data.get(COL_QTY))
    q2 = to_number(other.data.get(COL_QTY))
    return Classification.QUANTITY_MATCH if q1 == q2 else Classification.QUANTITY_MISMATCH


def not_found_supplier_set(rows: List[TableRow]) -> Set[str]:
    return {_spn(r) for r in rows if r.classification is Classification.NOT_FOUND and _spn(r)}


def compare_tables(left: CanonicalTable, right: CanonicalTable) -> Tuple[CanonicalTable, CanonicalTable]:
    """
    两表双向比对（纯函数）

    第一轮：按零件号互查：找不到=未找到；找到且数量相等=数量相同；否则=数量不同
    第二轮：仍为"未找到"的行，若供应商零件号出现在对侧"未找到"行的供应商零件号集合中
           → 供应商匹配

    索引与集合均为哈希查找，整体 O(n + m)。
    """
    L = left.copy()
    R = right.copy()

    left_by_pn = build_pn_index(L.rows)
    right_by_pn = build_pn_index(R.rows)

    for r in L.rows:
        r.classification = classify_by_pn(r, right_by_pn)
    for r in R.rows:
        r.classification = classify_by_pn(r, left_by_pn)

    # 两侧集合都在第二轮改色前收集
    left_red = not_found_supplier_set(L.rows)
    right_red = not_found_supplier_set(R.rows)

    for rows, other_red in ((L.rows, right_red), (R.rows, left_red)):
        for r in rows:
            if r.classification is Classification.NOT_FOUND and _spn(r) in other_red:
                r.classification = Classification.CROSS_MATCHED

    return L, R


def compare_bom_files(left: BOMDocument, right: BOMDocument) -> Tuple[BOMDocument, BOMDocument]:
    """比对两个文档的 cleaned 表，返回带分类的文档副本"""
    L = left.copy()
    R = right.copy()
    L.cleaned, R.cleaned = compare_tables(left.cleaned, right.cleaned)

    ls, rs = count_classifications(L.cleaned), count_classifications(R.cleaned)
    logger.info('[对比] %s: 未找到 %d / 供应商匹配 %d / 数量不同 %d / 数量相同 %d',
                L.name, ls.not_found, ls.cross_matched, ls.quantity_mismatch, ls.quantity_match)
    logger.info('[对比] %s: 未找到 %d / 供应商匹配 %d / 数量不同 %d / 数量相同 %d',
                R.name, rs.not_found, rs.cross_matched, rs.quantity_mismatch, rs.quantity_match)
    return L, R


def is_compared(doc: Optional[BOMDocument]) -> bool:
    """是否已有行带对比分类"""
    if doc is None:
        return False
    return any(r.classification is not Classification.UNCLASSIFIED for r in doc.cleaned.rows)


def count_classifications(table: CanonicalTable) -> ComparisonStats:
    stats = ComparisonStats(total=table.row_count)
    for r in table.rows:
        if r.classification is Classification.NOT_FOUND:
            stats.not_found += 1
        elif r.classification is Classification.CROSS_MATCHED:
            stats.cross_matched += 1
        elif r.classification is Classification.QUANTITY_MISMATCH:
            stats.quantity_mismatch += 1
        elif r.classification is Classification.QUANTITY_MATCH:
            stats.quantity_match += 1
    return stats


# ============================================================
# 导线长度对比
# ============================================================
def _type_value(row: TableRow) -> str:
    if COL_TYPE in row.data:
        return safe_string(row.data[COL_TYPE]).strip()
    return safe_string(row.data.get(COLUMN_NAMES.TYPE_FALLBACK)).strip()


def _wire_rows(table: CanonicalTable) -> List[Tuple[str, str, Number]]:
    out = []
    for r in table.rows:
        tp = _type_value(r)
        if tp not in WIRE_TYPES:
            continue
        pn = _pn(r)
        if not pn:
            continue
        out.append((pn, tp, to_number(r.data.get(COL_QTY))))
    return out


def compare_wires(left: BOMDocument, right: BOMDocument) -> Tuple[List[WireDifference], List[WireDifference]]:
    """
    导线清单：分别以左/右表导线行为基准，对表数量按同零件号查找（无则 0）

    过滤条件：类型（或 TYPE）属于导线类型且零件号非空；逐行输出，按零件号自然排序。
    """
    left_rows = _wire_rows(left.cleaned)
    right_rows = _wire_rows(right.cleaned)

    left_qty = {pn: q for pn, _, q in left_rows}
    right_qty = {pn: q for pn, _, q in right_rows}

    left_list = [WireDifference(pn, tp, q, right_qty.get(pn, 0)) for pn, tp, q in left_rows]
    right_list = [WireDifference(pn, tp, q, left_qty.get(pn, 0)) for pn, tp, q in right_rows]

    left_list.sort(key=lambda w: natural_key(w.part_number))
    right_list.sort(key=lambda w: natural_key(w.part_number))
    return left_list, right_list
