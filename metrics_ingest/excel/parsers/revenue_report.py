from __future__ import annotations

from datetime import date

from ...models.records import StructuralRecord
from ...services.weeks import to_saturday
from ..reader import Workbook

"""Parser for the "Weekly Revenue Report" sheet.

Unlike the other report sheets this one is a conventional table: one row per
week with the week ending in column A and one column per revenue category.
"""

__all__ = [
    "SHEET_NAME",
    "CATEGORY_COLUMNS",
    "parse_revenue_report",
]

SHEET_NAME = "Weekly Revenue Report"
FIRST_DATA_ROW = 2
DATE_COL = 1

# column -> revenue category; the columns in between are not imported
CATEGORY_COLUMNS: dict[int, str] = {
    2: "class_1a",
    3: "class_10a_sheds",
    4: "class_10b_pools",
    5: "inspections",
    6: "retrospective",
    7: "class_2_9_commercial",
    8: "planning_1_10",
    28: "access_labour_hire",
}


def parse_revenue_report(workbook: Workbook) -> list[StructuralRecord]:
    sheet = workbook.sheet(SHEET_NAME)
    if sheet is None:
        return []
    records: list[StructuralRecord] = []
    for row in range(FIRST_DATA_ROW, sheet.max_row + 1):
        header = sheet.extract(row, DATE_COL)
        if not isinstance(header.value, date):
            continue
        week_date = to_saturday(header.value)
        for col, category in CATEGORY_COLUMNS.items():
            extraction = sheet.numeric(row, col)
            if extraction.value is None:
                continue
            warnings = [extraction.warning] if extraction.warning else []
            records.append(
                StructuralRecord(week_date, "category", category, {"amount": extraction.value}, warnings)
            )
    return records
