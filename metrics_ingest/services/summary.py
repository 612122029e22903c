from __future__ import annotations

from collections.abc import Sequence

from ..models.upload import ImportResult

"""SUMMARY line rendering.

The returned text excludes the ``SUMMARY`` label, which the log formatter adds:

    upload=12 table=leads_weekly status=completed processed=8 inserted=5 updated=3 skipped=0 failed=1 elapsed_sec=0.42
    tables=11 completed=10 failed=1 processed=412 inserted=400 updated=12 skipped=0 elapsed_sec=3.1
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
    "render_workbook_summary_line",
]


def format_elapsed(seconds: float) -> str:
    """Seconds without scientific notation; whole numbers without a fraction."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.2f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult) -> str:
    return (
        f"upload={result.upload_id} "
        f"table={result.target_table} "
        f"status={result.status.value} "
        f"processed={result.rows_processed} "
        f"inserted={result.inserted} "
        f"updated={result.updated} "
        f"skipped={result.rows_skipped} "
        f"failed={result.rows_failed} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )


def render_workbook_summary_line(results: Sequence[ImportResult], elapsed_seconds: float) -> str:
    completed = sum(1 for r in results if r.succeeded)
    return (
        f"tables={len(results)} "
        f"completed={completed} "
        f"failed={len(results) - completed} "
        f"processed={sum(r.rows_processed for r in results)} "
        f"inserted={sum(r.inserted for r in results)} "
        f"updated={sum(r.updated for r in results)} "
        f"skipped={sum(r.rows_skipped for r in results)} "
        f"elapsed_sec={format_elapsed(elapsed_seconds)}"
    )
