from __future__ import annotations

import re

import pytest

from metrics_ingest.models.upload import ImportResult, UploadStatus
from metrics_ingest.services.summary import format_elapsed, render_summary_line, render_workbook_summary_line

SUMMARY_PATTERN = re.compile(
    r"^upload=(\d+) table=([a-z_]+) status=([a-z_]+) processed=(\d+) inserted=(\d+) "
    r"updated=(\d+) skipped=(\d+) failed=(\d+) elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def _result(**kwargs) -> ImportResult:
    values = dict(upload_id=12, status=UploadStatus.COMPLETED, target_table="leads_weekly")
    values.update(kwargs)
    return ImportResult(**values)


def test_render_summary_line():
    line = render_summary_line(
        _result(rows_processed=8, inserted=5, updated=3, rows_failed=1, elapsed_seconds=0.42)
    )
    assert line == (
        "upload=12 table=leads_weekly status=completed processed=8 inserted=5 updated=3 "
        "skipped=0 failed=1 elapsed_sec=0.42"
    )
    assert SUMMARY_PATTERN.match(line)


def test_render_summary_line_failed_import():
    line = render_summary_line(_result(status=UploadStatus.FAILED, rows_failed=4))
    match = SUMMARY_PATTERN.match(line)
    assert match.group(3) == "failed"
    assert match.group(8) == "4"


def test_render_workbook_summary_line():
    results = [
        _result(rows_processed=10, inserted=10),
        _result(target_table="phone_weekly", rows_processed=3, updated=3, rows_skipped=1),
        _result(target_table="revenue_weekly", status=UploadStatus.FAILED, rows_failed=6),
    ]
    assert render_workbook_summary_line(results, 3.1) == (
        "tables=3 completed=2 failed=1 processed=13 inserted=10 updated=3 skipped=1 elapsed_sec=3.1"
    )


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0"), (2.0, "2"), (0.42, "0.42"), (1.5, "1.5"), (0.001234, "0.001234"), (12.346, "12.35")],
)
def test_format_elapsed(seconds: float, expected: str):
    assert format_elapsed(seconds) == expected
