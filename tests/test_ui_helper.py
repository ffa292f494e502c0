"""Tests for the DataFrame view helpers used by the Streamlit pages."""

from bomdiff.config import MERGED_TAG, Classification
from bomdiff.file_reader import CanonicalTable, TableRow
from bomdiff.ui_helper import row_background, table_to_dataframe


def _table() -> CanonicalTable:
    return CanonicalTable(
        headers=['零件号', '数量'],
        rows=[
            TableRow(data={'零件号': 'A', '数量': 1}, index=0, classification=Classification.NOT_FOUND),
            TableRow(data={'零件号': 'B'}, index=1, classification=Classification.QUANTITY_MATCH),
        ],
    )


def test_table_to_dataframe_follows_header_order() -> None:
    df = table_to_dataframe(_table())

    assert list(df.columns) == ['零件号', '数量']
    assert df['零件号'].tolist() == ['A', 'B']
    assert df.loc[1, '数量'] == ''


def test_table_to_dataframe_appends_tag_column() -> None:
    df = table_to_dataframe(_table(), with_tag=True)

    assert list(df.columns) == ['零件号', '数量', '对比标记']
    assert df['对比标记'].tolist() == ['未找到', '数量相同']


def test_row_background_prefers_merged_marker() -> None:
    merged = TableRow(data={}, index=0, classification=Classification.NOT_FOUND,
                      merged_away=True, highlight=MERGED_TAG)
    plain = TableRow(data={}, index=1)
    cross = TableRow(data={}, index=2, classification=Classification.CROSS_MATCHED)

    assert row_background(merged) == 'background-color:#F5F3FF'
    assert row_background(plain) == ''
    assert row_background(cross) == 'background-color:#FFF7ED'


def test_parse_results_panel_handles_same_file_names() -> None:
    from streamlit.testing.v1 import AppTest

    def app():
        from bomdiff.data_processor import clean_bom
        from bomdiff.file_reader import parse_csv
        from bomdiff.ui_helper import render_parse_results

        left = clean_bom(parse_csv('零件号,数量\nA,1\nA,2\n', 'bom.csv'))
        right = clean_bom(parse_csv('零件号,数量\nB,1\nB,2\n', 'bom.csv'))
        render_parse_results(left, right)

    at = AppTest.from_function(app).run(timeout=30)

    assert not at.exception
    assert [cb.key for cb in at.checkbox] == ['raw_left', 'raw_right']
