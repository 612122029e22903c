from __future__ import annotations

from datetime import date

from ...models.records import ParsedWeek
from ..reader import Workbook

"""Parser for the "Finance This Week" sheet.

The sheet is an e-mail style narrative, not a table, so values are read from
fixed coordinates. It has no dates of its own: the caller supplies the week
(normally the latest week of the Weekly Report).
"""

__all__ = [
    "SHEET_NAME",
    "parse_cash_position",
]

SHEET_NAME = "Finance This Week"
VALUE_COL = 2

ANZ_EVERYDAY_ROW = 8
NAB_EVERYDAY_ROW = 10
RECEIVABLES_ROW = 22

# field -> (row, col)
FIXED_CELLS: dict[str, tuple[int, int]] = {
    "tax_savings": (11, VALUE_COL),
    "capital_account": (12, VALUE_COL),
    "credit_cards": (17, VALUE_COL),
    "total_cash_available": (18, VALUE_COL),
    "total_receivables": (RECEIVABLES_ROW, 2),
    "current_receivables": (RECEIVABLES_ROW, 3),
    "over_30_days": (RECEIVABLES_ROW, 4),
    "over_60_days": (RECEIVABLES_ROW, 5),
    "over_90_days": (RECEIVABLES_ROW, 6),
    "total_payables": (25, VALUE_COL),
}


def parse_cash_position(workbook: Workbook, week_date: date) -> ParsedWeek | None:
    """Read the cash position snapshot; None when the sheet is missing or empty."""
    sheet = workbook.sheet(SHEET_NAME)
    if sheet is None:
        return None
    warnings: list[str] = []

    def read(row: int, col: int = VALUE_COL) -> float | int | None:
        extraction = sheet.numeric(row, col)
        if extraction.warning:
            warnings.append(extraction.warning)
        return extraction.value

    anz = read(ANZ_EVERYDAY_ROW)
    nab = read(NAB_EVERYDAY_ROW)
    everyday = (anz or 0) + (nab or 0) if anz is not None or nab is not None else None

    values: dict[str, float | int | None] = {"everyday_account": everyday}
    for field_name, (row, col) in FIXED_CELLS.items():
        values[field_name] = read(row, col)

    week = ParsedWeek(week_date=week_date, values=values, warnings=warnings)
    if not week.has_data():
        return None
    return week
