"""Tests for cleaning (aggregation), two-way reconciliation and wire differencing."""

from typing import Dict, List

import pytest

from bomdiff.config import MERGED_TAG, Classification, FileStatus
from bomdiff.data_processor import (
    ComparisonStats,
    aggregation_key,
    clean_bom,
    clean_table,
    compare_bom_files,
    compare_tables,
    compare_wires,
    count_classifications,
    is_compared,
)
from bomdiff.file_reader import BOMDocument, CanonicalTable, TableRow, error_document
from bomdiff.utils import to_number

HEADERS = ['零件号', '供应商零件号', '类型', '数量']


def _table(rows: List[Dict[str, object]], headers: List[str] = HEADERS) -> CanonicalTable:
    """Build a table whose rows carry every header (missing ones as '')."""
    return CanonicalTable(
        headers=list(headers),
        rows=[TableRow(data={h: r.get(h, '') for h in headers}, index=i) for i, r in enumerate(rows)],
    )


def _doc(name: str, table: CanonicalTable) -> BOMDocument:
    return BOMDocument(name=name, status=FileStatus.SUCCESS, original=table, cleaned=table)


def _by_pn(table: CanonicalTable) -> Dict[str, TableRow]:
    return {r.data['零件号']: r for r in table.rows}


# =============================================================================
# cleaning
# =============================================================================

def test_clean_backfills_key_and_folds_wire_parts() -> None:
    raw = _table([
        {'零件号': '', '供应商零件号': 'S1', '数量': '5'},
        {'零件号': 'A-1-1', '数量': '3', '类型': 'WIRE'},
        {'零件号': 'A-1-2', '数量': '4', '类型': 'WIRE'},
    ])

    cleaned, marked = clean_table(raw)

    rows = _by_pn(cleaned)
    assert set(rows) == {'[S1]', 'A-1'}
    assert rows['[S1]'].data['数量'] == 5
    assert rows['A-1'].data['数量'] == 7
    assert [r.index for r in cleaned.rows] == [0, 1]
    assert cleaned.headers == HEADERS

    assert [r.merged_away for r in marked.rows] == [False, False, True]
    assert marked.rows[2].highlight == MERGED_TAG
    # 原始表本身不被修改
    assert all(not r.merged_away for r in raw.rows)
    assert raw.rows[1].data['零件号'] == 'A-1-1'


def test_clean_empty_table_returns_empty_table() -> None:
    cleaned, marked = clean_table(CanonicalTable())
    assert cleaned.row_count == 0
    assert marked.row_count == 0

    cleaned, _ = clean_table(_table([]))
    assert cleaned.row_count == 0
    assert cleaned.headers == HEADERS


def test_clean_normalizes_keys_and_sums_quantities() -> None:
    zwsp = chr(0x200B)
    raw = _table([
        {'零件号': f' PN{zwsp}10 ', '数量': '1,000'},
        {'零件号': 'PN10', '数量': 'abc'},
        {'零件号': 'PN2', '数量': '2.5'},
        {'零件号': 'PN1', '数量': ''},
    ])

    cleaned, _ = clean_table(raw)

    assert [r.data['零件号'] for r in cleaned.rows] == ['PN1', 'PN2', 'PN10']
    assert _by_pn(cleaned)['PN10'].data['数量'] == 1000
    assert _by_pn(cleaned)['PN2'].data['数量'] == 2.5
    assert _by_pn(cleaned)['PN1'].data['数量'] == 0


def test_clean_conserves_total_quantity() -> None:
    raw = _table([
        {'零件号': 'A', '数量': '2'},
        {'零件号': 'B', '数量': '3'},
        {'零件号': 'A', '数量': '4'},
        {'零件号': 'C-1-1', '类型': '线束', '数量': '1'},
        {'零件号': 'C-1-9', '类型': '线束', '数量': '6'},
    ])

    cleaned, _ = clean_table(raw)

    assert sum(to_number(r.data['数量']) for r in raw.rows) == 16
    assert sum(r.data['数量'] for r in cleaned.rows) == 16
    assert cleaned.row_count == 3


def test_clean_is_idempotent() -> None:
    raw = _table([
        {'零件号': '', '供应商零件号': 'S1', '数量': '5'},
        {'零件号': 'A-1-1', '数量': '3', '类型': 'WIRE'},
        {'零件号': 'A-1-2', '数量': '4', '类型': 'WIRE'},
        {'零件号': 'B', '数量': '1'},
    ])

    once, _ = clean_table(raw)
    twice, marked = clean_table(once)

    assert [r.data for r in twice.rows] == [r.data for r in once.rows]
    assert not any(r.merged_away for r in marked.rows)


def test_wire_type_matching_is_literal() -> None:
    raw = _table([
        {'零件号': 'W-1-1', '类型': 'wire', '数量': '1'},
        {'零件号': 'W-1-2', '类型': 'wire', '数量': '1'},
        {'零件号': 'W-2', '类型': 'WIRE', '数量': '1'},
    ])

    cleaned, _ = clean_table(raw)

    assert set(_by_pn(cleaned)) == {'W-1-1', 'W-1-2', 'W-2'}


def test_clean_without_quantity_column_keeps_headers() -> None:
    raw = _table([{'零件号': 'A'}, {'零件号': 'A'}], headers=['零件号'])

    cleaned, marked = clean_table(raw)

    assert cleaned.row_count == 1
    assert cleaned.rows[0].data == {'零件号': 'A'}
    assert marked.rows[1].merged_away


def test_aggregation_key_writes_back() -> None:
    work = {'零件号': '', '供应商零件号': ' S 1 ', '数量': '2'}
    assert aggregation_key(work) == '[S1]'
    assert work == {'零件号': '[S1]', '供应商零件号': 'S1', '数量': 2}


def test_clean_bom_passes_error_documents_through() -> None:
    bad = error_document('bad.xlsx', 'boom')
    assert clean_bom(bad) is bad


def test_clean_bom_returns_new_document() -> None:
    table = _table([{'零件号': 'A', '数量': '1'}, {'零件号': 'A', '数量': '2'}])
    doc = _doc('left.csv', table)

    cleaned = clean_bom(doc)

    assert cleaned.ok
    assert cleaned.rows == 1
    assert cleaned.original.rows[1].merged_away
    assert cleaned.original is not cleaned.cleaned
    assert doc.cleaned is table
    assert not table.rows[1].merged_away


# =============================================================================
# reconciliation
# =============================================================================

def _cleaned(rows: List[Dict[str, object]]) -> CanonicalTable:
    return clean_table(_table(rows))[0]


@pytest.mark.parametrize(
    ('right_qty', 'expected'),
    [
        (2, Classification.QUANTITY_MATCH),
        ('2.0', Classification.QUANTITY_MATCH),
        (5, Classification.QUANTITY_MISMATCH),
    ],
)
def test_compare_quantity_classification(right_qty, expected) -> None:
    left = _table([{'零件号': 'X', '数量': 2}])
    right = _table([{'零件号': 'X', '数量': right_qty}])

    L, R = compare_tables(left, right)

    assert L.rows[0].classification is expected
    assert R.rows[0].classification is expected


def test_compare_against_empty_side_is_not_found() -> None:
    L, R = compare_tables(_cleaned([{'零件号': 'X', '数量': '2'}]), _cleaned([]))
    assert L.rows[0].classification is Classification.NOT_FOUND
    assert R.row_count == 0


def test_compare_cross_matches_on_supplier_part_number() -> None:
    left = _cleaned([{'零件号': 'L1', '供应商零件号': 'S9', '数量': '1'}])
    right = _cleaned([{'零件号': 'R1', '供应商零件号': 'S9', '数量': '3'}])

    L, R = compare_tables(left, right)

    assert L.rows[0].classification is Classification.CROSS_MATCHED
    assert R.rows[0].classification is Classification.CROSS_MATCHED


def test_cross_match_requires_other_row_to_be_not_found() -> None:
    left = _cleaned([
        {'零件号': 'L1', '供应商零件号': 'S9', '数量': '1'},
        {'零件号': 'R1', '供应商零件号': 'S8', '数量': '1'},
    ])
    right = _cleaned([{'零件号': 'R1', '供应商零件号': 'S9', '数量': '1'}])

    L, R = compare_tables(left, right)

    assert _by_pn(L)['L1'].classification is Classification.NOT_FOUND
    assert _by_pn(L)['R1'].classification is Classification.QUANTITY_MATCH
    assert R.rows[0].classification is Classification.QUANTITY_MATCH


def test_blank_keys_are_never_found_or_cross_matched() -> None:
    left = _table([{'零件号': '', '供应商零件号': '', '数量': '1'}])
    right = _table([{'零件号': '', '供应商零件号': '', '数量': '1'}])

    L, R = compare_tables(left, right)

    assert L.rows[0].classification is Classification.NOT_FOUND
    assert R.rows[0].classification is Classification.NOT_FOUND


def test_compare_tables_is_pure_and_keeps_row_order() -> None:
    left = _cleaned([{'零件号': 'B', '数量': '1'}, {'零件号': 'A', '数量': '1'}, {'零件号': 'C', '数量': '1'}])
    right = _cleaned([{'零件号': 'A', '数量': '2'}])
    before = [r.data.copy() for r in left.rows]

    L, _ = compare_tables(left, right)

    assert [r.data for r in L.rows] == before
    assert [r.data['零件号'] for r in L.rows] == [r.data['零件号'] for r in left.rows]
    assert all(r.classification is Classification.UNCLASSIFIED for r in left.rows)
    assert all(r.classification is Classification.UNCLASSIFIED for r in right.rows)
    assert all(r.classification is not Classification.UNCLASSIFIED for r in L.rows)


def test_compare_bom_files_and_stats() -> None:
    left = clean_bom(_doc('left.csv', _table([
        {'零件号': 'A', '数量': '1'},
        {'零件号': 'B', '数量': '2'},
        {'零件号': 'L1', '供应商零件号': 'S1', '数量': '1'},
        {'零件号': 'Z', '数量': '1'},
    ])))
    right = clean_bom(_doc('right.csv', _table([
        {'零件号': 'A', '数量': '1'},
        {'零件号': 'B', '数量': '3'},
        {'零件号': 'R1', '供应商零件号': 'S1', '数量': '1'},
    ])))

    L, R = compare_bom_files(left, right)

    assert not is_compared(left)
    assert is_compared(L) and is_compared(R)
    assert count_classifications(L.cleaned) == ComparisonStats(
        not_found=1, cross_matched=1, quantity_mismatch=1, quantity_match=1, total=4)
    assert count_classifications(R.cleaned) == ComparisonStats(
        not_found=0, cross_matched=1, quantity_mismatch=1, quantity_match=1, total=3)
    assert L.name == 'left.csv'
    assert L.original.row_count == 4


def test_is_compared_handles_none() -> None:
    assert not is_compared(None)


# =============================================================================
# wire differencing
# =============================================================================

def test_compare_wires_reports_both_sides() -> None:
    left = _doc('left', _table([
        {'零件号': 'W-10', '类型': 'WIRE', '数量': 10},
        {'零件号': 'P-1', '类型': 'PART', '数量': 1},
        {'零件号': 'W-2', '类型': '导线', '数量': 5},
    ]))
    right = _doc('right', _table(
        [
            {'零件号': 'W-10', 'TYPE': 'WIRE', '数量': 7},
            {'零件号': 'W-3', 'TYPE': ' 线束 ', '数量': 4},
            {'零件号': '', 'TYPE': 'WIRE', '数量': 4},
        ],
        headers=['零件号', 'TYPE', '数量'],
    ))

    left_list, right_list = compare_wires(left, right)

    assert [(w.part_number, w.own_quantity, w.other_quantity, w.difference) for w in left_list] == [
        ('W-2', 5, 0, 5),
        ('W-10', 10, 7, 3),
    ]
    assert [(w.part_number, w.type, w.difference) for w in right_list] == [
        ('W-3', '线束', 4),
        ('W-10', 'WIRE', -3),
    ]
