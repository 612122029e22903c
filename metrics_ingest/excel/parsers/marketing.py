from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ...models.records import RowMapping, StructuralRecord
from ..labels import marketing_metric, match_platform
from ..reader import Sheet, Workbook
from ..transposed import iter_week_columns, read_column

"""Parser for the "Marketing Weekly APP" and "Marketing Weekly BA" sheets.

Both sheets list ad platforms as four-row groups (impressions, clicks, cost,
conversions). Records from the two sheets are merged per (week, platform)
with null-aware sums, as are two columns of one sheet that fall in the same
week. CTR and CPC are derived after the merge so they reflect the combined
totals.
"""

__all__ = [
    "SHEET_NAMES",
    "PlatformGroup",
    "find_platform_groups",
    "parse_marketing",
    "sum_nullable",
]

SHEET_NAMES = ("Marketing Weekly APP", "Marketing Weekly BA")
DATE_ROW = 3
START_COL = 3
LABEL_COL = 1
FIRST_ROW = 4
GROUP_SPAN = 4
SUMMED_FIELDS = ("impressions", "clicks", "cost", "conversions")


@dataclass(frozen=True)
class PlatformGroup:
    platform: str
    impressions_row: int
    clicks_row: int
    cost_row: int
    conversions_row: int

    def mappings(self) -> tuple[RowMapping, ...]:
        return (
            RowMapping(self.impressions_row, "impressions", "integer"),
            RowMapping(self.clicks_row, "clicks", "integer"),
            RowMapping(self.cost_row, "cost"),
            RowMapping(self.conversions_row, "conversions", "integer"),
        )


def find_platform_groups(sheet: Sheet) -> list[PlatformGroup]:
    """Locate platform groups; the first group found for a platform wins."""
    groups: list[PlatformGroup] = []
    seen: set[str] = set()
    row = FIRST_ROW
    while row <= sheet.max_row - 3:
        platform = match_platform(sheet.label(row, LABEL_COL))
        if platform is None:
            row += 1
            continue
        located: dict[str, int] = {}
        for offset in range(GROUP_SPAN):
            metric = marketing_metric(sheet.label(row + offset, LABEL_COL))
            if metric is not None:
                located[metric] = row + offset
        if "impressions" not in located and "clicks" not in located:
            row += 1
            continue
        if platform not in seen:
            seen.add(platform)
            groups.append(
                PlatformGroup(
                    platform=platform,
                    impressions_row=located.get("impressions", row),
                    clicks_row=located.get("clicks", row + 1),
                    cost_row=located.get("cost", row + 2),
                    conversions_row=located.get("conversions", row + 3),
                )
            )
        row += GROUP_SPAN
    return groups


def sum_nullable(a: float | int | None, b: float | int | None) -> float | int | None:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


def _ratio(numerator: float | int | None, denominator: float | int | None) -> float | None:
    if numerator is None or denominator is None or denominator <= 0:
        return None
    return numerator / denominator


def parse_marketing(workbook: Workbook) -> list[StructuralRecord]:
    merged: dict[tuple[date, str], StructuralRecord] = {}
    for name in SHEET_NAMES:
        sheet = workbook.sheet(name)
        if sheet is None:
            continue
        for group in find_platform_groups(sheet):
            # columns snapping to the same Saturday add up, like the two sheets do
            for col, week_date, warnings in iter_week_columns(sheet, DATE_ROW, START_COL):
                values = read_column(sheet, col, group.mappings(), warnings)
                if all(v is None for v in values.values()):
                    continue
                key = (week_date, group.platform)
                existing = merged.get(key)
                if existing is None:
                    merged[key] = StructuralRecord(week_date, "platform", group.platform, values, warnings)
                    continue
                for field_name in SUMMED_FIELDS:
                    existing.values[field_name] = sum_nullable(existing.values[field_name], values[field_name])
                existing.warnings.extend(warnings)

    for record in merged.values():
        values = record.values
        values["ctr"] = _ratio(values["clicks"], values["impressions"])
        values["cpc"] = _ratio(values["cost"], values["clicks"])
    return list(merged.values())
