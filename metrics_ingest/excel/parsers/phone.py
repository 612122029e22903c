from __future__ import annotations

from dataclasses import dataclass

from ...models.records import RowMapping, StructuralRecord
from ..labels import is_phone_group, is_phone_non_name
from ..reader import Sheet, Workbook
from ..transposed import scan_transposed

"""Parser for the "Phone (2)" sheet.

Each staff member is a name row in column A followed by Inbound, Outbound and
Missed rows. "Phone (2)" is used rather than "Phone", whose cells are mostly
broken formulas.
"""

__all__ = [
    "SHEET_NAME",
    "StaffGroup",
    "find_staff_groups",
    "parse_phone",
]

SHEET_NAME = "Phone (2)"
DATE_ROW = 3
START_COL = 3
LABEL_COL = 1
FIRST_ROW = 4


@dataclass(frozen=True)
class StaffGroup:
    staff_name: str
    name_row: int

    def mappings(self) -> tuple[RowMapping, ...]:
        return (
            RowMapping(self.name_row + 1, "inbound_calls", "integer"),
            RowMapping(self.name_row + 2, "outbound_calls", "integer"),
            RowMapping(self.name_row + 3, "missed_calls", "integer"),
        )


def find_staff_groups(sheet: Sheet) -> list[StaffGroup]:
    groups: list[StaffGroup] = []
    row = FIRST_ROW
    while row <= sheet.max_row - 2:
        label = sheet.label(row, LABEL_COL)
        if label and not is_phone_non_name(label):
            following = [sheet.label(row + offset, LABEL_COL) for offset in (1, 2, 3)]
            if is_phone_group(following):
                groups.append(StaffGroup(label, row))
                row += 4
                continue
        row += 1
    return groups


def parse_phone(workbook: Workbook) -> list[StructuralRecord]:
    sheet = workbook.sheet(SHEET_NAME)
    if sheet is None:
        return []
    records: list[StructuralRecord] = []
    for group in find_staff_groups(sheet):
        for week in scan_transposed(sheet, DATE_ROW, START_COL, group.mappings()):
            records.append(StructuralRecord(week.week_date, "staff_name", group.staff_name, week.values, week.warnings))
    return records
