# -*- coding: utf-8 -*-
"""
UI 辅助模块 v1.0

职责：
    1. ensure_document_loaded: 上传文件 → 解析 → 清洗 → 缓存到 session_state
    2. table_to_dataframe    : 统一表格 → DataFrame（预览/筛选用）
    3. style_table           : 按对比分类 / 合并标记给整行上色
    4. render_document_card / render_stats: 文件状态与分类统计
    5. render_parse_results: 左右两栏解析结果（原始/清洗切换）
"""

from typing import List, Optional

import pandas as pd
import streamlit as st

from .config import COLUMN_NAMES, MERGED_TAG, Classification
from .data_processor import ComparisonStats, clean_bom
from .exporter import CLASSIFICATION_FILLS, CLASSIFICATION_TEXT, COLORS
from .file_reader import BOMDocument, CanonicalTable, TableRow, parse_bom_auto

SUPPORTED_TYPES = ['html', 'htm', 'xlsx', 'xlsm', 'xls', 'csv', 'tsv']


# ============================================================
# 文件缓存（避免每次重绘重复解析）
# ============================================================
def ensure_document_loaded(uploaded_file, cache_key: str) -> Optional[BOMDocument]:
    """若文件为新上传，则解析 + 清洗并缓存"""
    doc_key = f'{cache_key}_doc'
    fp_key = f'{cache_key}_fp'

    if uploaded_file is None:
        st.session_state.pop(doc_key, None)
        st.session_state.pop(fp_key, None)
        return None

    fp = f'{uploaded_file.name}_{uploaded_file.size}'

    if st.session_state.get(fp_key) != fp:
        with st.spinner(f'📖 正在解析 **{uploaded_file.name}** …'):
            doc = clean_bom(parse_bom_auto(uploaded_file.getvalue(), uploaded_file.name))
        st.session_state[doc_key] = doc
        st.session_state[fp_key] = fp
        st.session_state['compared'] = None

    return st.session_state.get(doc_key)


# ============================================================
# DataFrame 视图
# ============================================================
def table_to_dataframe(table: CanonicalTable, with_tag: bool = False) -> pd.DataFrame:
    """按表头顺序展开行数据；with_tag 时追加"对比标记"列"""
    columns: List[str] = list(table.headers)
    records = []
    for r in table.rows:
        rec = {h: r.data.get(h, '') for h in columns}
        if with_tag:
            rec[COLUMN_NAMES.COMPARE_TAG] = CLASSIFICATION_TEXT.get(r.classification, '')
        records.append(rec)
    if with_tag:
        columns.append(COLUMN_NAMES.COMPARE_TAG)
    return pd.DataFrame(records, columns=columns)


def row_background(row: TableRow) -> str:
    """整行底色 CSS：合并标记优先，其次对比分类"""
    if row.highlight == MERGED_TAG:
        return f'background-color:{COLORS.PURPLE}'
    fill = CLASSIFICATION_FILLS.get(row.classification)
    return f'background-color:{fill}' if fill else ''


def style_table(table: CanonicalTable, with_tag: bool = False):
    df = table_to_dataframe(table, with_tag=with_tag)
    css = [row_background(r) for r in table.rows]

    def _hl(series: pd.Series) -> List[str]:
        return [css[series.name]] * len(series)

    return df.style.apply(_hl, axis=1)


# ============================================================
# 渲染
# ============================================================
def render_document_card(doc: BOMDocument) -> None:
    if not doc.ok:
        st.error(f'❌ {doc.name} 解析失败: {doc.error_msg}')
        return
    merged = sum(1 for r in doc.original.rows if r.merged_away)
    st.markdown(
        f'**{doc.name}**: 原始 {doc.original.row_count} 行 → 清洗后 **{doc.rows}** 行'
        f'（合并 {merged} 行）| {doc.cleaned.column_count} 列'
    )
    if doc.original.row_count == 0:
        st.warning('⚠️ 未找到包含"零件号"的表头行，文件无数据')


def render_stats(title: str, stats: ComparisonStats) -> None:
    st.markdown(
        f'**{title}**: 共 {stats.total} 行 '
        f'| {CLASSIFICATION_TEXT[Classification.NOT_FOUND]}: {stats.not_found} '
        f'| {CLASSIFICATION_TEXT[Classification.CROSS_MATCHED]}: {stats.cross_matched} '
        f'| {CLASSIFICATION_TEXT[Classification.QUANTITY_MISMATCH]}: {stats.quantity_mismatch} '
        f'| {CLASSIFICATION_TEXT[Classification.QUANTITY_MATCH]}: {stats.quantity_match}'
    )


def render_parse_results(left_doc: Optional[BOMDocument], right_doc: Optional[BOMDocument]) -> None:
    """左右两栏解析结果；控件按左右侧区分，同名文件也不会冲突"""
    info_cols = st.columns([1, 1])
    for side, col, doc in zip(('left', 'right'), info_cols, (left_doc, right_doc)):
        with col:
            if doc is None:
                continue
            render_document_card(doc)
            if doc.ok:
                show_raw = st.checkbox('显示原始表（紫色为被合并的行）', key=f'raw_{side}')
                table = doc.original if show_raw else doc.cleaned
                st.dataframe(style_table(table), use_container_width=True, height=320)
