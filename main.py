# -*- coding: utf-8 -*-
"""
BOM 对比工具 v1.0

交互流程：
    1. 上传左右两个 BOM（HTML / XLSX / XLS / CSV）
    2. 自动解析 + 清洗（同零件号合并、数量累加）
    3. 点击"开始对比" → 着色结果
    4. 下载 Excel 报告
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

import streamlit as st

sys.path.insert(0, str(Path(__file__).parent))

from bomdiff.config import FileStatus
from bomdiff.data_processor import compare_bom_files, count_classifications
from bomdiff.exporter import export_bom_pair_to_xlsx
from bomdiff.ui_helper import (
    SUPPORTED_TYPES,
    ensure_document_loaded,
    render_parse_results,
    render_stats,
    style_table,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


# ============================================================
# 页面 & 样式
# ============================================================
st.set_page_config(page_title='BOM 对比工具 v1.0', page_icon='📋', layout='wide',
                   initial_sidebar_state='expanded')

st.markdown("""
<style>
.main .block-container{padding-top:1.5rem;padding-bottom:1.5rem}
.main-title{font-size:2rem;font-weight:700;text-align:center;padding:0.8rem 0;
  background:linear-gradient(135deg,#667eea,#764ba2);-webkit-background-clip:text;
  -webkit-text-fill-color:transparent;background-clip:text}
[data-testid="stSidebar"]{background:linear-gradient(180deg,#f8f9fc,#e8ecf3)}
</style>
""", unsafe_allow_html=True)


# ============================================================
# Session State 初始化
# ============================================================
if 'compared' not in st.session_state:
    st.session_state['compared'] = None


# ============================================================
# 侧边栏
# ============================================================
with st.sidebar:
    with st.expander('📖 使用说明', expanded=True):
        st.markdown("""
**操作步骤：**
1. 上传左右两个 BOM 文件
2. 检查解析与清洗结果
3. 点击 **开始对比**
4. 查看结果 → 下载报告

**四种对比标记：**
- 🟥 未找到：对表无此零件号
- 🟧 供应商匹配：零件号不同，但供应商零件号互相命中
- 🟦 数量不同
- 🟩 数量相同
        """)


# ============================================================
# 标题 & 文件上传
# ============================================================
st.markdown('<h1 class="main-title">🔍 BOM 对比工具 v1.0</h1>', unsafe_allow_html=True)
st.markdown('### 📁 文件上传')

col_up = st.columns([1, 1])
with col_up[0]:
    left_up = st.file_uploader('📤 左表', type=SUPPORTED_TYPES, key='up_left')
with col_up[1]:
    right_up = st.file_uploader('📤 右表', type=SUPPORTED_TYPES, key='up_right')

left_doc = ensure_document_loaded(left_up, 'left')
right_doc = ensure_document_loaded(right_up, 'right')

if left_doc or right_doc:
    st.markdown('---')
    st.markdown('### 📋 解析结果')
    render_parse_results(left_doc, right_doc)


# ============================================================
# 开始对比
# ============================================================
st.markdown('<br>', unsafe_allow_html=True)
_, btn_col, _ = st.columns([1, 2, 1])
with btn_col:
    do_compare = st.button('🚀 开始对比', use_container_width=True, type='primary')

if do_compare:
    if left_doc is None or right_doc is None:
        st.error('❌ 请先上传左右两个文件')
        st.stop()
    if not (left_doc.ok and right_doc.ok):
        st.error('❌ 存在解析失败的文件，请检查后重新上传')
        st.stop()
    st.session_state['compared'] = compare_bom_files(left_doc, right_doc)


# ============================================================
# 结果展示
# ============================================================
compared = st.session_state.get('compared')
if compared:
    cmp_left, cmp_right = compared
    st.markdown('---')
    st.markdown('### 📊 对比结果')
    tabs = st.tabs([f'📋 {cmp_left.name}', f'📋 {cmp_right.name}'])
    for t, doc in zip(tabs, compared):
        with t:
            render_stats(doc.name, count_classifications(doc.cleaned))
            st.dataframe(style_table(doc.cleaned, with_tag=True), use_container_width=True, height=400)


# ============================================================
# 导出
# ============================================================
export_left, export_right = compared if compared else (left_doc, right_doc)
if export_right is not None and not export_right.ok:
    export_right = None
if export_left is not None and export_left.ok:
    st.markdown('---')
    st.markdown('### 💾 导出报告')
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    base = '_'.join(Path(d.name).stem for d in (export_left, export_right) if d is not None)
    result = export_bom_pair_to_xlsx(export_left, export_right, f'{base}_{stamp}')
    if result.status == FileStatus.SUCCESS:
        st.download_button('📥 下载 Excel 报告', result.content, result.file_name,
                           mime=result.mime, type='primary')
    else:
        st.error(f'❌ 生成报告失败: {result.error_msg}')


# ============================================================
# 页脚
# ============================================================
st.markdown('---')
st.markdown('<p style="text-align:center;color:#888;font-size:.75rem">'
            'BOM 对比工具 v1.0 | 多格式解析 · 同号合并 · 双向对比</p>',
            unsafe_allow_html=True)
