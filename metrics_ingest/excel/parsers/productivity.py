from __future__ import annotations

from dataclasses import dataclass

from ...models.records import RowMapping, StructuralRecord
from ..labels import is_productivity_count_label, section_role
from ..reader import Sheet, Workbook
from ..transposed import scan_transposed

"""Parser for the "Productivity" sheet.

Staff are listed in three-row groups (jobs count, revenue, inspections). The
count row is recognised by a column A label ending in ``#`` with the clean
staff name in column B. Section headers ("Certifiers (sign off user)",
"Cadets") set the role of the staff listed below them. Weeks start at column
D; column C holds an average.
"""

__all__ = [
    "SHEET_NAME",
    "ProductivityGroup",
    "find_productivity_groups",
    "parse_productivity",
]

SHEET_NAME = "Productivity"
DATE_ROW = 3
START_COL = 4
LABEL_COL = 1
NAME_COL = 2
FIRST_ROW = 4
DEFAULT_ROLE = "other"


@dataclass(frozen=True)
class ProductivityGroup:
    staff_name: str
    role: str
    count_row: int

    def mappings(self) -> tuple[RowMapping, ...]:
        return (
            RowMapping(self.count_row, "jobs_completed", "integer"),
            RowMapping(self.count_row + 1, "revenue_generated"),
            RowMapping(self.count_row + 2, "inspections_completed", "integer"),
        )


def find_productivity_groups(sheet: Sheet) -> list[ProductivityGroup]:
    groups: list[ProductivityGroup] = []
    role = DEFAULT_ROLE
    row = FIRST_ROW
    while row <= sheet.max_row:
        label = sheet.label(row, LABEL_COL)
        header_role = section_role(label)
        if header_role is not None:
            role = header_role
            row += 1
            continue
        name = sheet.label(row, NAME_COL)
        if name and is_productivity_count_label(label):
            groups.append(ProductivityGroup(name, role, row))
            row += 3
            continue
        row += 1
    return groups


def parse_productivity(workbook: Workbook) -> list[StructuralRecord]:
    sheet = workbook.sheet(SHEET_NAME)
    if sheet is None:
        return []
    records: list[StructuralRecord] = []
    for group in find_productivity_groups(sheet):
        for week in scan_transposed(sheet, DATE_ROW, START_COL, group.mappings()):
            records.append(
                StructuralRecord(
                    week.week_date,
                    "staff_name",
                    group.staff_name,
                    week.values,
                    week.warnings,
                    attributes={"role": group.role},
                )
            )
    return records
