# -*- coding: utf-8 -*-
"""
全局配置模块 v1.0

只保留：列名、表头关键词、导线类型、文件状态、对比分类、格式识别常量。
颜色与图例文字只属于导出层（见 exporter.py），这里不出现任何展示常量。
"""

from enum import Enum
from typing import Dict, List


# ============================================================
# 列名（中文 BOM 导出的固定列）
# ============================================================
class COLUMN_NAMES:
    PART_NUMBER = '零件号'
    SUPPLIER_PART_NUMBER = '供应商零件号'
    CUSTOMER_PART_NUMBER = '客户零件号'
    QUANTITY = '数量'
    TYPE = '类型'
    TYPE_FALLBACK = 'TYPE'
    PART_REVISION = '零件版本'
    SUPPLIER_NAME = '供应商名称'
    COLOR = '颜色'
    MATERIAL = '材料'
    UOM = '度量单位'
    COMPARE_TAG = '对比标记'    # 仅在导出带对比的文件时使用


# 表头识别关键词：首个非空单元格包含其一即为表头行
HEADER_TOKENS: List[str] = [
    COLUMN_NAMES.PART_NUMBER,
    COLUMN_NAMES.SUPPLIER_PART_NUMBER,
    COLUMN_NAMES.CUSTOMER_PART_NUMBER,
]

# 关键列前置顺序
PRIORITY_COLUMNS: List[str] = [
    COLUMN_NAMES.PART_NUMBER,
    COLUMN_NAMES.SUPPLIER_PART_NUMBER,
    COLUMN_NAMES.TYPE,
    COLUMN_NAMES.QUANTITY,
]

# 导线类零件：清洗时折叠零件号，导出时计算长度差值
WIRE_TYPES = frozenset(['WIRE', '线束', '导线'])

# 分表合并后重复出现的表头/标题行（首列取值）
REPEATED_HEADER_MARKERS = frozenset(['Design'])

# 原始行被合并时的标记
MERGED_TAG = 'merged'


# ============================================================
# 文件状态
# ============================================================
class FileStatus:
    PENDING = 'pending'
    SUCCESS = 'success'
    ERROR = 'error'


# ============================================================
# 对比分类
# ============================================================
class Classification(Enum):
    UNCLASSIFIED = 'unclassified'
    NOT_FOUND = 'not_found'                  # 对表中无此零件号
    CROSS_MATCHED = 'cross_matched'          # 零件号不存在，但供应商零件号互相命中
    QUANTITY_MISMATCH = 'quantity_mismatch'  # 零件号存在，数量不同
    QUANTITY_MATCH = 'quantity_match'        # 零件号存在，数量相同


# ============================================================
# 格式识别
# ============================================================
EXTENSION_FORMATS: Dict[str, str] = {
    'html': 'html',
    'htm': 'html',
    'xlsx': 'xlsx',
    'xlsm': 'xlsx',
    'xls': 'xls',
    'csv': 'csv',
    'tsv': 'csv',
}

HTML_MARKERS = ('<!doctype', '<html', '<table')
SNIFF_LENGTH = 200

OLE_MAGIC = b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1'
