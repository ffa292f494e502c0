# -*- coding: utf-8 -*-
"""
Excel 导出模块 v1.0

导出规则：
    - 单表：原样数据（不着色），含表头、筛选、边框、自适应列宽
    - 两表未对比：两张原样工作表
    - 两表已对比：
        * 左右两张着色工作表，新增"对比标记"列，按分类优先级 + 零件号自然排序
        * "对比结果"汇总页：图例、左右小计及着色视图、导线长度差值（左右各一块）

颜色、图例文字与排序优先级只在本模块定义，比对逻辑不依赖它们。
"""

import io
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import xlsxwriter

from .config import COLUMN_NAMES, Classification, FileStatus
from .data_processor import compare_wires, count_classifications, is_compared
from .file_reader import BOMDocument, TableRow
from .utils import natural_key, safe_string

logger = logging.getLogger(__name__)

XLSX_MIME = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


# ============================================================
# 颜色（RGB，与界面保持一致的 Tailwind 50 色阶）
# ============================================================
class COLORS:
    LIGHT_RED = '#FEF2F2'     # red-50
    ORANGE = '#FFF7ED'        # orange-50
    LIGHT_BLUE = '#EFF6FF'    # blue-50
    LIGHT_GREEN = '#F0FDF4'   # green-50
    PURPLE = '#F5F3FF'        # purple-50，原始表中被合并的行
    GRAY = '#F5F5F5'          # gray-100
    LIGHT_GRAY = '#F9FAFB'    # gray-50


CLASSIFICATION_FILLS: Dict[Classification, Optional[str]] = {
    Classification.NOT_FOUND: COLORS.LIGHT_RED,
    Classification.CROSS_MATCHED: COLORS.ORANGE,
    Classification.QUANTITY_MISMATCH: COLORS.LIGHT_BLUE,
    Classification.QUANTITY_MATCH: COLORS.LIGHT_GREEN,
    Classification.UNCLASSIFIED: None,
}

CLASSIFICATION_PRIORITY: Dict[Classification, int] = {
    Classification.NOT_FOUND: 0,
    Classification.CROSS_MATCHED: 1,
    Classification.QUANTITY_MISMATCH: 2,
    Classification.QUANTITY_MATCH: 3,
    Classification.UNCLASSIFIED: 4,
}

CLASSIFICATION_TEXT: Dict[Classification, str] = {
    Classification.NOT_FOUND: '未找到',
    Classification.CROSS_MATCHED: '供应商匹配',
    Classification.QUANTITY_MISMATCH: '数量不同',
    Classification.QUANTITY_MATCH: '数量相同',
    Classification.UNCLASSIFIED: '',
}

LEGEND: List[Tuple[str, str]] = [
    ('零件号不存在', COLORS.LIGHT_RED),
    ('虽无零件号，但供应商零件号匹配', COLORS.ORANGE),
    ('数量不同', COLORS.LIGHT_BLUE),
    ('完全一致', COLORS.LIGHT_GREEN),
]

SUMMARY_SHEET = '对比结果'
VIEW_HEADERS = [
    COLUMN_NAMES.PART_NUMBER,
    COLUMN_NAMES.SUPPLIER_PART_NUMBER,
    COLUMN_NAMES.TYPE,
    COLUMN_NAMES.QUANTITY,
]
DIFF_HEADERS = ['零件号', '类型', '本表数量', '对表数量', '差值']

_SHEET_NAME_BAD = re.compile(r'[\\/:*?\[\]]')
_FILE_BASE_BAD = re.compile(r'[^\w-]+')
_MAX_SHEET_NAME = 31


@dataclass
class ExportResult:
    status: str
    error_msg: str = ''
    file_name: str = ''
    content: bytes = b''
    mime: str = XLSX_MIME


# ============================================================
# 排序与命名
# ============================================================
def classification_priority(classification: Classification) -> int:
    return CLASSIFICATION_PRIORITY.get(classification, 4)


def sort_by_classification_then_pn(rows: Sequence[TableRow], pn_key: str = COLUMN_NAMES.PART_NUMBER) -> List[TableRow]:
    """分类优先级在前，同类内按零件号自然排序"""
    return sorted(rows, key=lambda r: (classification_priority(r.classification),
                                       natural_key(r.data.get(pn_key))))


def sanitize_sheet_name(name: str, used_names: Set[str]) -> str:
    """替换非法字符、截断到 31 字符，重名追加 _n"""
    cleaned = _SHEET_NAME_BAD.sub('_', safe_string(name))[:_MAX_SHEET_NAME] or 'Sheet'
    candidate = cleaned
    counter = 1
    # Excel 工作表名不区分大小写
    used_lower = {n.lower() for n in used_names}
    while candidate.lower() in used_lower:
        suffix = f'_{counter}'
        candidate = cleaned[:_MAX_SHEET_NAME - len(suffix)] + suffix
        counter += 1
    used_names.add(candidate)
    return candidate


def sanitize_file_base(name: str) -> str:
    base = re.sub(r'\.[^.]+$', '', safe_string(name))
    return _FILE_BASE_BAD.sub('_', base) or 'BOM'


# ============================================================
# 格式缓存
# ============================================================
class _Formats:
    """xlsxwriter 的格式对象需在写入时确定，按 (底色, 边框) 缓存"""

    def __init__(self, wb: xlsxwriter.Workbook):
        self._wb = wb
        self._cache: Dict[Tuple[Optional[str], bool], Any] = {}

    def get(self, fill: Optional[str] = None, border: bool = False):
        key = (fill, border)
        if key not in self._cache:
            props: Dict[str, Any] = {'valign': 'vcenter'}
            if fill:
                props.update(pattern=1, bg_color=fill)
            if border:
                props['border'] = 1
            self._cache[key] = self._wb.add_format(props)
        return self._cache[key]


class _Widths:
    """记录每列最长文本，收尾时统一设置列宽"""

    def __init__(self, min_width: int = 10, max_width: int = 40):
        self.min_width = min_width
        self.max_width = max_width
        self._max_len: Dict[int, int] = {}

    def track(self, col: int, value: Any) -> None:
        length = len(safe_string(value))
        if length > self._max_len.get(col, 0):
            self._max_len[col] = length

    def apply(self, ws) -> None:
        for col, length in self._max_len.items():
            ws.set_column(col, col, min(self.max_width, max(self.min_width, length + 2)))


def _write(ws, widths: _Widths, row: int, col: int, value: Any, fmt=None) -> None:
    """按值类型写入，避免以 = 开头的文本被当成公式"""
    if value is None or value == '':
        ws.write_blank(row, col, None, fmt)
    elif isinstance(value, bool):
        ws.write_boolean(row, col, value, fmt)
    elif isinstance(value, (int, float)):
        ws.write_number(row, col, value, fmt)
    else:
        ws.write_string(row, col, safe_string(value), fmt)
    widths.track(col, value)


# ============================================================
# 工作表
# ============================================================
def _add_table_sheet(wb, fmts: _Formats, used: Set[str], doc: BOMDocument, colored: bool) -> None:
    base_headers = list(doc.cleaned.headers)
    headers = base_headers + [COLUMN_NAMES.COMPARE_TAG] if colored else base_headers
    rows = sort_by_classification_then_pn(doc.cleaned.rows) if colored else doc.cleaned.rows

    ws = wb.add_worksheet(sanitize_sheet_name(doc.name or 'Sheet', used))
    widths = _Widths()
    has_rows = bool(rows)

    for ci, h in enumerate(headers):
        _write(ws, widths, 0, ci, h, fmts.get(border=has_rows))

    for ri, r in enumerate(rows, start=1):
        values: List[Any] = [r.data.get(h) for h in base_headers]
        if colored:
            values.append(CLASSIFICATION_TEXT.get(r.classification, ''))
        fill = CLASSIFICATION_FILLS.get(r.classification) if colored else None
        fmt = fmts.get(fill=fill, border=True)
        for ci, v in enumerate(values):
            _write(ws, widths, ri, ci, v, fmt)

    if headers:
        ws.autofilter(0, 0, 0, len(headers) - 1)
    widths.apply(ws)


def _write_counts(ws, fmts: _Formats, widths: _Widths, col: int, doc: BOMDocument) -> None:
    stats = count_classifications(doc.cleaned)
    _write(ws, widths, 0, col, doc.name, fmts.get(fill=COLORS.GRAY, border=True))
    # 顺序：红 蓝 橙 绿
    counts = [
        (stats.not_found, COLORS.LIGHT_RED),
        (stats.quantity_mismatch, COLORS.LIGHT_BLUE),
        (stats.cross_matched, COLORS.ORANGE),
        (stats.quantity_match, COLORS.LIGHT_GREEN),
    ]
    for i, (value, fill) in enumerate(counts):
        _write(ws, widths, 1, col + i, value, fmts.get(fill=fill, border=True))
    for i in range(1, len(counts)):
        ws.write_blank(0, col + i, None, fmts.get(border=True))


def _write_side_view(ws, fmts: _Formats, widths: _Widths, col: int, doc: BOMDocument) -> None:
    for i, h in enumerate(VIEW_HEADERS):
        _write(ws, widths, 2, col + i, h, fmts.get(border=True))
    for ri, r in enumerate(sort_by_classification_then_pn(doc.cleaned.rows), start=3):
        fmt = fmts.get(fill=CLASSIFICATION_FILLS.get(r.classification), border=True)
        for i, h in enumerate(VIEW_HEADERS):
            _write(ws, widths, ri, col + i, r.data.get(h), fmt)


def _write_wire_block(ws, fmts: _Formats, widths: _Widths, start_row: int, col: int,
                      title: str, diffs) -> int:
    """写一块导线差值，返回块后的下一个可用行"""
    _write(ws, widths, start_row, col, title, fmts.get(border=True))
    header_row = start_row + 2
    for i, h in enumerate(DIFF_HEADERS):
        _write(ws, widths, header_row, col + i, h, fmts.get(border=True))
    for i, w in enumerate(diffs, start=header_row + 1):
        plain = fmts.get(border=True)
        _write(ws, widths, i, col, w.part_number, plain)
        _write(ws, widths, i, col + 1, w.type, plain)
        _write(ws, widths, i, col + 2, w.own_quantity, plain)
        _write(ws, widths, i, col + 3, w.other_quantity, plain)
        diff = w.difference
        fill = COLORS.LIGHT_GREEN if diff > 0 else COLORS.LIGHT_RED if diff < 0 else None
        _write(ws, widths, i, col + 4, diff, fmts.get(fill=fill, border=True))
    return header_row + 1 + len(diffs)


def _add_summary_sheet(wb, fmts: _Formats, used: Set[str], left: BOMDocument, right: BOMDocument) -> None:
    ws = wb.add_worksheet(sanitize_sheet_name(SUMMARY_SHEET, used))
    widths = _Widths()

    # 图例 A 列
    _write(ws, widths, 0, 0, '图例', fmts.get(fill=COLORS.LIGHT_GRAY, border=True))
    for i, (text, fill) in enumerate(LEGEND, start=2):
        _write(ws, widths, i, 0, text, fmts.get(fill=fill, border=True))

    # 左侧 C~F，右侧 H~K
    _write_counts(ws, fmts, widths, 2, left)
    _write_side_view(ws, fmts, widths, 2, left)
    _write_counts(ws, fmts, widths, 7, right)
    _write_side_view(ws, fmts, widths, 7, right)

    # 导线长度差值 M 列起，左右两块间隔一行
    left_wires, right_wires = compare_wires(left, right)
    next_row = _write_wire_block(ws, fmts, widths, 0, 12, '导线长度差值（左表）', left_wires)
    _write_wire_block(ws, fmts, widths, next_row + 1, 12, '导线长度差值（右表）', right_wires)

    widths.apply(ws)


# ============================================================
# 导出主函数
# ============================================================
def build_workbook(left: BOMDocument, right: Optional[BOMDocument] = None) -> bytes:
    """按对比状态组织工作表，返回 xlsx 字节"""
    buf = io.BytesIO()
    wb = xlsxwriter.Workbook(buf, {'in_memory': True})
    fmts = _Formats(wb)
    used: Set[str] = set()

    if right is None:
        _add_table_sheet(wb, fmts, used, left, colored=False)
    elif not (is_compared(left) or is_compared(right)):
        _add_table_sheet(wb, fmts, used, left, colored=False)
        _add_table_sheet(wb, fmts, used, right, colored=False)
    else:
        _add_table_sheet(wb, fmts, used, left, colored=True)
        _add_table_sheet(wb, fmts, used, right, colored=True)
        _add_summary_sheet(wb, fmts, used, left, right)

    wb.close()
    return buf.getvalue()


def export_bom_pair_to_xlsx(
    left: BOMDocument,
    right: Optional[BOMDocument] = None,
    file_name: Optional[str] = None,
) -> ExportResult:
    """
    导出一个或两个 BOMDocument 为 .xlsx

    Returns:
        ExportResult：成功时 content 为工作簿字节；失败时 status=error 并带错误信息
    """
    default_name = f"{left.name or 'Left'}{'_' + right.name if right else ''}"
    out_name = f'{sanitize_file_base(file_name or default_name)}.xlsx'
    try:
        content = build_workbook(left, right)
    except Exception as e:
        logger.warning('[导出] %s 导出失败: %s', out_name, e)
        return ExportResult(status=FileStatus.ERROR, error_msg=str(e), file_name=out_name)

    logger.info('[导出] %s: %d 字节', out_name, len(content))
    return ExportResult(status=FileStatus.SUCCESS, file_name=out_name, content=content)
