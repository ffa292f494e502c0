# -*- coding: utf-8 -*-
"""
BOM 对比工具 模块包 v1.0
"""

from .config import (
    COLUMN_NAMES,
    HEADER_TOKENS,
    PRIORITY_COLUMNS,
    WIRE_TYPES,
    MERGED_TAG,
    FileStatus,
    Classification,
)

from .file_reader import (
    TableRow,
    CanonicalTable,
    BOMDocument,
    build_table,
    parse_html,
    parse_xlsx,
    parse_xls,
    parse_csv,
    parse_bom_auto,
)

from .data_processor import (
    WireDifference,
    ComparisonStats,
    clean_table,
    clean_bom,
    compare_tables,
    compare_bom_files,
    compare_wires,
    count_classifications,
)

from .exporter import (
    ExportResult,
    build_workbook,
    export_bom_pair_to_xlsx,
    sort_by_classification_then_pn,
)

from .utils import (
    normalize_cell_value,
    normalize_key,
    to_number,
    natural_key,
    natural_compare,
    natural_sorted,
    find_header_row,
)

__all__ = [
    # config
    'COLUMN_NAMES', 'HEADER_TOKENS', 'PRIORITY_COLUMNS', 'WIRE_TYPES', 'MERGED_TAG',
    'FileStatus', 'Classification',
    # file_reader
    'TableRow', 'CanonicalTable', 'BOMDocument', 'build_table',
    'parse_html', 'parse_xlsx', 'parse_xls', 'parse_csv', 'parse_bom_auto',
    # data_processor
    'WireDifference', 'ComparisonStats',
    'clean_table', 'clean_bom', 'compare_tables', 'compare_bom_files',
    'compare_wires', 'count_classifications',
    # exporter
    'ExportResult', 'build_workbook', 'export_bom_pair_to_xlsx',
    'sort_by_classification_then_pn',
    # utils
    'normalize_cell_value', 'normalize_key', 'to_number',
    'natural_key', 'natural_compare', 'natural_sorted', 'find_header_row',
]
