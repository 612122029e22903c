from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import date

from ..models.records import ParsedWeek, RowMapping
from ..numbers import round_half_up
from ..services.weeks import to_saturday
from .reader import Sheet

"""Transposed-sheet scanning.

Report sheets run weeks across columns: one header row holds a date per
column and each metric sits on its own row. Columns whose header is not a date
(totals, notes, blanks) are skipped, header dates are snapped to Saturday and
columns with no data at all are dropped as "not filled in yet".
"""

__all__ = [
    "iter_week_columns",
    "read_column",
    "scan_transposed",
]


def iter_week_columns(sheet: Sheet, date_row: int, start_col: int) -> Iterator[tuple[int, date, list[str]]]:
    """Yield ``(col, week_date, warnings)`` for every column with a date header."""
    for col in range(start_col, sheet.max_column + 1):
        header = sheet.extract(date_row, col)
        if not isinstance(header.value, date):
            continue
        warnings = [header.warning] if header.warning else []
        yield col, to_saturday(header.value), warnings


def read_column(
    sheet: Sheet, col: int, mappings: Sequence[RowMapping], warnings: list[str]
) -> dict[str, float | int | None]:
    """Read every mapped row at ``col`` numerically, appending cell warnings."""
    values: dict[str, float | int | None] = {}
    for mapping in mappings:
        extraction = sheet.numeric(mapping.row, col)
        if extraction.warning:
            warnings.append(extraction.warning)
        value = extraction.value
        if value is not None and mapping.type == "integer":
            value = round_half_up(value)
        values[mapping.field] = value
    return values


def scan_transposed(
    sheet: Sheet, date_row: int, start_col: int, mappings: Sequence[RowMapping]
) -> list[ParsedWeek]:
    """Produce one ParsedWeek per dated column that holds any data.

    If two filled columns snap to the same Saturday the first one wins and the
    later column is reported as a warning on it.
    """
    weeks: dict[date, ParsedWeek] = {}
    for col, week_date, warnings in iter_week_columns(sheet, date_row, start_col):
        parsed = ParsedWeek(week_date=week_date, values=read_column(sheet, col, mappings, warnings), warnings=warnings)
        if not parsed.has_data():
            continue
        if week_date in weeks:
            weeks[week_date].warnings.append(
                f"{sheet.ref(date_row, col)}: week {week_date.isoformat()} already read from an earlier column, skipped"
            )
            continue
        weeks[week_date] = parsed
    return list(weeks.values())
