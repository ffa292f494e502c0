# -*- coding: utf-8 -*-
"""
文件读取模块 v1.0（多格式归一化版）

核心函数：
    parse_html     : HTML 表格导出（含伪装成 .xls 的 HTML）
    parse_xlsx     : XLSX（openpyxl）
    parse_xls      : 旧版 XLS（xlrd）
    parse_csv      : CSV / TSV（chardet 识别编码）
    parse_bom_auto : 按扩展名选择解析器，无扩展名时按内容探测

所有解析器输出同一个 BOMDocument；解码异常被捕获为 status=error 的空文档，
不会向外抛出。
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import chardet

from .config import (
    EXTENSION_FORMATS,
    HTML_MARKERS,
    OLE_MAGIC,
    PRIORITY_COLUMNS,
    REPEATED_HEADER_MARKERS,
    SNIFF_LENGTH,
    Classification,
    FileStatus,
)
from .utils import (
    extract_headers,
    find_header_row,
    is_blank,
    normalize_cell_value,
    reorder_headers,
    safe_string,
)

logger = logging.getLogger(__name__)

CellValue = Union[str, int, float]
Grid = List[List[str]]
Source = Union[str, bytes, bytearray, io.IOBase, Any]


# ============================================================
# 数据结构
# ============================================================
@dataclass
class TableRow:
    """表格行：data 以列名为键；merged_away/highlight 仅在原始表上有意义"""
    data: Dict[str, CellValue]
    index: int
    classification: Classification = Classification.UNCLASSIFIED
    merged_away: bool = False
    highlight: str = ''

    def copy(self) -> 'TableRow':
        return TableRow(
            data=dict(self.data),
            index=self.index,
            classification=self.classification,
            merged_away=self.merged_away,
            highlight=self.highlight,
        )


@dataclass
class CanonicalTable:
    """统一表格：headers 顺序即导出列顺序"""
    headers: List[str] = field(default_factory=list)
    rows: List[TableRow] = field(default_factory=list)
    import_time: datetime = field(default_factory=datetime.now)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def copy(self) -> 'CanonicalTable':
        return CanonicalTable(
            headers=list(self.headers),
            rows=[r.copy() for r in self.rows],
            import_time=self.import_time,
        )

    def validate(self) -> None:
        """表头唯一，且每行的键都属于表头"""
        if len(set(self.headers)) != len(self.headers):
            dups = sorted({h for h in self.headers if self.headers.count(h) > 1})
            raise ValueError(f"重复表头: {', '.join(dups)}")
        allowed = set(self.headers)
        for row in self.rows:
            extra = [k for k in row.data if k not in allowed]
            if extra:
                raise ValueError(f"第 {row.index} 行包含未知列: {', '.join(extra)}")


@dataclass
class BOMDocument:
    """BOM 文件对象：original 为解析所得原始表，cleaned 为清洗/对比所用表"""
    name: str
    status: str = FileStatus.PENDING
    error_msg: str = ''
    original: CanonicalTable = field(default_factory=CanonicalTable)
    cleaned: CanonicalTable = field(default_factory=CanonicalTable)

    @property
    def rows(self) -> int:
        return len(self.cleaned.rows)

    @property
    def ok(self) -> bool:
        return self.status == FileStatus.SUCCESS

    def copy(self) -> 'BOMDocument':
        original = self.original.copy()
        cleaned = original if self.cleaned is self.original else self.cleaned.copy()
        return BOMDocument(
            name=self.name,
            status=self.status,
            error_msg=self.error_msg,
            original=original,
            cleaned=cleaned,
        )


def error_document(file_name: str, error: Union[BaseException, str]) -> BOMDocument:
    """解析失败：返回空表 + 错误信息"""
    empty = CanonicalTable()
    return BOMDocument(
        name=file_name,
        status=FileStatus.ERROR,
        error_msg=str(error),
        original=empty,
        cleaned=empty,
    )


# ============================================================
# 输入规整
# ============================================================
def ensure_binary(source: Source) -> bytes:
    """str / bytes / 文件对象 → bytes"""
    if isinstance(source, bytes):
        return source
    if isinstance(source, bytearray):
        return bytes(source)
    if isinstance(source, str):
        return source.encode('utf-8')
    if hasattr(source, 'getvalue'):
        return bytes(source.getvalue())
    if hasattr(source, 'read'):
        if hasattr(source, 'seek'):
            source.seek(0)
        data = source.read()
        return data.encode('utf-8') if isinstance(data, str) else bytes(data)
    raise TypeError(f'不支持的数据类型: {type(source).__name__}')


def detect_encoding(raw: bytes) -> str:
    """先看 BOM，再用 chardet 识别；识别不了按 UTF-8"""
    if raw.startswith(b'\xef\xbb\xbf'):
        return 'utf-8-sig'
    if raw.startswith((b'\xff\xfe', b'\xfe\xff')):
        return 'utf-16'
    result = chardet.detect(raw[:10000])
    encoding = result.get('encoding') or 'utf-8'
    lowered = encoding.lower()
    if 'utf-8' in lowered or 'utf8' in lowered or lowered == 'ascii':
        return 'utf-8'
    # GB2312 识别结果按超集 GB18030 解码，避免生僻字失败
    if lowered in ('gb2312', 'gbk'):
        return 'gb18030'
    return encoding


def ensure_text(source: Source) -> str:
    """str 原样返回，二进制按识别出的编码解码"""
    if isinstance(source, str):
        return source
    raw = ensure_binary(source)
    return raw.decode(detect_encoding(raw))


def looks_like_html(text: str) -> bool:
    head = text.lstrip('\ufeff').strip()[:SNIFF_LENGTH].lower()
    return head.startswith(HTML_MARKERS[:2]) or HTML_MARKERS[2] in head


def _sniff_binary_html(raw: bytes) -> bool:
    head = raw[:SNIFF_LENGTH * 4]
    try:
        text = head.decode(detect_encoding(head), errors='ignore')
    except LookupError:
        text = head.decode('utf-8', errors='ignore')
    return looks_like_html(text)


# ============================================================
# 网格 → 统一表格
# ============================================================
def _is_repeated_header(row: TableRow, first_header: str) -> bool:
    value = safe_string(row.data.get(first_header, '')).strip()
    return value in REPEATED_HEADER_MARKERS or value == first_header


def build_table(grids: Sequence[Grid]) -> CanonicalTable:
    """
    合并多个网格为单一表格

    * 每个网格独立定位表头；找不到表头的网格直接跳过
    * 表头按首次出现顺序去重合并
    * 仅在已识别列上判断空行
    * 丢弃分表重复出现的表头行，最后连续编号并前置关键列
    """
    merged_headers: List[str] = []
    merged_rows: List[TableRow] = []

    for grid_no, grid in enumerate(grids):
        header_idx = find_header_row(grid)
        if header_idx == -1:
            logger.debug('[解析] 第 %d 个表未找到表头，跳过', grid_no + 1)
            continue

        columns = extract_headers(grid[header_idx])
        for _, name in columns:
            if name not in merged_headers:
                merged_headers.append(name)

        for raw_row in grid[header_idx + 1:]:
            cells = [raw_row[ci] if ci < len(raw_row) else '' for ci, _ in columns]
            if all(is_blank(c) for c in cells):
                continue
            data: Dict[str, CellValue] = {
                name: cell for (_, name), cell in zip(columns, cells)
            }
            merged_rows.append(TableRow(data=data, index=0))

    if merged_headers:
        first_header = merged_headers[0]
        kept = [r for r in merged_rows if not _is_repeated_header(r, first_header)]
        if len(kept) != len(merged_rows):
            logger.debug('[解析] 丢弃重复表头行 %d 行', len(merged_rows) - len(kept))
        merged_rows = kept

    for i, row in enumerate(merged_rows):
        row.index = i

    table = CanonicalTable(
        headers=reorder_headers(merged_headers, PRIORITY_COLUMNS),
        rows=merged_rows,
    )
    table.validate()
    return table


def _ingest(file_name: str, fmt: str, decode: Callable[[], List[Grid]]) -> BOMDocument:
    """统一外壳：解码 → 合并 → 成功文档；任何异常转为错误文档"""
    try:
        grids = decode()
        table = build_table(grids)
    except Exception as e:
        logger.warning('[解析] %s 解析失败 (%s): %s', file_name, fmt, e)
        return error_document(file_name, e)

    logger.info('[解析] %s (%s): %d 个表, %d 列, %d 行',
                file_name, fmt, len(grids), table.column_count, table.row_count)
    return BOMDocument(
        name=file_name,
        status=FileStatus.SUCCESS,
        error_msg='',
        original=table,
        cleaned=table,   # 尚未清洗，保持一致
    )


# ============================================================
# 各格式解码
# ============================================================
def _html_cell_text(cell) -> str:
    return ' '.join(cell.get_text().split())


def _html_span(cell, attr: str) -> int:
    try:
        return max(int(cell.get(attr, '1')), 1)
    except ValueError:
        return 1


def _take_spanned(row: List[str], spans: Dict[int, int]) -> None:
    """被上方 rowspan 占据的列补空，直到遇到空闲列"""
    while spans.get(len(row), 0) > 0:
        spans[len(row)] -= 1
        row.append('')


def _html_grids(text: str) -> List[Grid]:
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(text, 'lxml')
    grids: List[Grid] = []
    for table in soup.find_all('table'):
        grid: Grid = []
        # 列索引 → rowspan 剩余行数
        spans: Dict[int, int] = {}
        for tr in table.find_all('tr'):
            # 嵌套表格的行归属内层表
            if tr.find_parent('table') is not table:
                continue
            row: List[str] = []
            for cell in tr.find_all(['td', 'th'], recursive=False):
                _take_spanned(row, spans)
                rowspan = _html_span(cell, 'rowspan')
                # 合并单元格只保留左上角的值，其余位置占位，保持列对齐
                for offset in range(_html_span(cell, 'colspan')):
                    if rowspan > 1:
                        spans[len(row)] = rowspan - 1
                    row.append('' if offset else _html_cell_text(cell))
            _take_spanned(row, spans)
            for col in sorted(c for c, n in spans.items() if n > 0 and c >= len(row)):
                row.extend([''] * (col - len(row)))
                spans[col] -= 1
                row.append('')
            grid.append(row)
        grids.append(grid)
    return grids


def _xlsx_grids(raw: bytes) -> List[Grid]:
    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(raw), read_only=True, data_only=False)
    try:
        grids: List[Grid] = []
        for ws in wb.worksheets:
            grid: Grid = []
            for row in ws.iter_rows():
                # 公式单元格视为不透明值
                grid.append([
                    '' if getattr(c, 'data_type', None) == 'f' else normalize_cell_value(c.value)
                    for c in row
                ])
            grids.append(grid)
        return grids
    finally:
        wb.close()


def _xls_cell_value(cell) -> str:
    import xlrd

    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK,
                      xlrd.XL_CELL_ERROR, xlrd.XL_CELL_DATE):
        return ''
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return normalize_cell_value(bool(cell.value))
    return normalize_cell_value(cell.value)


def _xls_grids(raw: bytes) -> List[Grid]:
    import xlrd

    book = xlrd.open_workbook(file_contents=raw, on_demand=True)
    try:
        grids: List[Grid] = []
        for sheet_index in range(book.nsheets):
            sheet = book.sheet_by_index(sheet_index)
            grids.append([
                [_xls_cell_value(c) for c in sheet.row(r)]
                for r in range(sheet.nrows)
            ])
        return grids
    finally:
        book.release_resources()


def _detect_delimiter(text: str, file_name: str) -> str:
    if file_name.lower().endswith('.tsv'):
        return '\t'
    sample = text[:2048]
    try:
        return csv.Sniffer().sniff(sample, delimiters=',;\t').delimiter
    except csv.Error:
        first_line = sample.splitlines()[0] if sample else ''
        counts = {d: first_line.count(d) for d in (',', ';', '\t')}
        best = max(counts, key=counts.get)
        return best if counts[best] else ','


def _csv_grids(text: str, file_name: str) -> List[Grid]:
    text = text.lstrip('\ufeff')
    delimiter = _detect_delimiter(text, file_name)
    reader = csv.reader(io.StringIO(text, newline=''), delimiter=delimiter)
    # CSV 只有一个网格
    return [[[normalize_cell_value(c) for c in row] for row in reader]]


# ============================================================
# 对外解析接口
# ============================================================
def parse_html(source: Source, file_name: str) -> BOMDocument:
    """解析 HTML 表格：每个 <table> 视为一个网格"""
    return _ingest(file_name, 'html', lambda: _html_grids(ensure_text(source)))


def parse_xlsx(source: Source, file_name: str) -> BOMDocument:
    """解析 XLSX：每个工作表视为一个网格"""
    return _ingest(file_name, 'xlsx', lambda: _xlsx_grids(ensure_binary(source)))


def parse_xls(source: Source, file_name: str) -> BOMDocument:
    """解析旧版 XLS：每个工作表视为一个网格"""
    return _ingest(file_name, 'xls', lambda: _xls_grids(ensure_binary(source)))


def parse_csv(source: Source, file_name: str) -> BOMDocument:
    """解析 CSV/TSV：单一网格"""
    return _ingest(file_name, 'csv', lambda: _csv_grids(ensure_text(source), file_name))


def file_extension(file_name: str) -> str:
    name = (file_name or '').rsplit('/', 1)[-1]
    return name.rsplit('.', 1)[-1].lower() if '.' in name else ''


def parse_bom_auto(source: Source, file_name: str) -> BOMDocument:
    """
    统一入口：根据文件扩展名自动选择解析器

    * .xls（字节或文本）若实际是 HTML 导出，转交 HTML 解析，否则按 XLS 解析
    * 无扩展名或不认识的扩展名：文本按 HTML/CSV 探测；
      二进制先探测 HTML，再依次尝试 XLSX、XLS、CSV
    """
    fmt = EXTENSION_FORMATS.get(file_extension(file_name))

    if fmt == 'html':
        return parse_html(source, file_name)
    if fmt == 'csv':
        return parse_csv(source, file_name)
    if fmt == 'xlsx':
        return parse_xlsx(source, file_name)

    # .xls 文本同样走二进制探测：HTML 导出转 HTML，否则按 XLS 解析
    if isinstance(source, str) and fmt != 'xls':
        if looks_like_html(source):
            return parse_html(source, file_name)
        return parse_csv(source, file_name)

    try:
        raw = ensure_binary(source)
    except Exception as e:
        logger.warning('[解析] %s 读取失败: %s', file_name, e)
        return error_document(file_name, e)

    if _sniff_binary_html(raw):
        logger.info('[解析] %s 内容为 HTML，按 HTML 解析', file_name)
        return parse_html(raw, file_name)
    if fmt == 'xls':
        return parse_xls(raw, file_name)

    attempts: List[Callable[[Source, str], BOMDocument]]
    if raw.startswith(OLE_MAGIC):
        attempts = [parse_xls, parse_xlsx]
    else:
        attempts = [parse_xlsx, parse_xls]
    # 含 NUL 字节的内容不当作文本
    if b'\x00' not in raw[:4096]:
        attempts.append(parse_csv)

    doc: Optional[BOMDocument] = None
    for attempt in attempts:
        doc = attempt(raw, file_name)
        if doc.ok:
            return doc
        logger.debug('[解析] %s 尝试 %s 失败: %s', file_name, attempt.__name__, doc.error_msg)
    return doc
