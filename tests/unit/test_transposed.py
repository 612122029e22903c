from __future__ import annotations

from datetime import date, datetime

from metrics_ingest.excel.reader import Sheet
from metrics_ingest.excel.transposed import iter_week_columns, read_column, scan_transposed
from metrics_ingest.models.cell import CellError
from metrics_ingest.models.records import RowMapping

MAPPINGS = (
    RowMapping(4, "revenue"),
    RowMapping(5, "jobs", "integer"),
)


def _sheet(header_row: list, revenue_row: list, jobs_row: list) -> Sheet:
    return Sheet.from_rows(
        "Weekly Report",
        [
            [],
            [],
            ["", "", *header_row],
            ["Revenue", "", *revenue_row],
            ["Jobs", "", *jobs_row],
        ],
    )


def test_scan_one_record_per_dated_column():
    sheet = _sheet(
        [datetime(2024, 1, 6), datetime(2024, 1, 13), "Total"],
        [100, 200, 300],
        [2.5, 3.4, 6],
    )
    weeks = scan_transposed(sheet, 3, 3, MAPPINGS)
    assert [w.week_date for w in weeks] == [date(2024, 1, 6), date(2024, 1, 13)]
    assert weeks[0].values == {"revenue": 100, "jobs": 3}
    assert weeks[1].values == {"revenue": 200, "jobs": 3}


def test_scan_snaps_headers_and_merges_same_week():
    # Saturday and the following Sunday both map to 2024-01-06
    sheet = _sheet([date(2024, 1, 6), date(2024, 1, 7)], [100, 999], [1, 9])
    weeks = scan_transposed(sheet, 3, 3, MAPPINGS)
    assert len(weeks) == 1
    assert weeks[0].week_date == date(2024, 1, 6)
    assert weeks[0].values["revenue"] == 100
    assert any("already read" in w and "Weekly Report!D3" in w for w in weeks[0].warnings)


def test_scan_skips_columns_without_data():
    sheet = _sheet([date(2024, 1, 6), date(2024, 1, 13)], [100, None], [1, None])
    weeks = scan_transposed(sheet, 3, 3, MAPPINGS)
    assert [w.week_date for w in weeks] == [date(2024, 1, 6)]


def test_empty_column_does_not_shadow_later_duplicate():
    sheet = _sheet([date(2024, 1, 6), date(2024, 1, 7)], [None, 50], [None, 1])
    weeks = scan_transposed(sheet, 3, 3, MAPPINGS)
    assert len(weeks) == 1
    assert weeks[0].values["revenue"] == 50
    assert weeks[0].warnings == []


def test_errors_are_zero_with_warning():
    sheet = _sheet([date(2024, 1, 6)], [CellError("#REF!")], [4])
    weeks = scan_transposed(sheet, 3, 3, MAPPINGS)
    assert weeks[0].values["revenue"] == 0
    assert any("Weekly Report!C4" in w for w in weeks[0].warnings)


def test_iter_week_columns_ignores_non_dates():
    sheet = _sheet(["Notes", date(2024, 1, 10), 42], [], [])
    assert [(c, d) for c, d, _ in iter_week_columns(sheet, 3, 3)] == [(4, date(2024, 1, 13))]


def test_read_column_keeps_missing_as_none():
    sheet = _sheet([date(2024, 1, 6)], [None], ["7.5"])
    warnings: list[str] = []
    assert read_column(sheet, 3, MAPPINGS, warnings) == {"revenue": None, "jobs": 8}
    assert warnings == []
