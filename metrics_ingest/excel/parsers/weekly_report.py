from __future__ import annotations

from dataclasses import dataclass, field

from ...models.records import ParsedWeek, RowMapping, StructuralRecord
from ..reader import Sheet, Workbook
from ..transposed import scan_transposed

"""Parser for the "Weekly Report" sheet.

The sheet stacks six blocks on fixed rows, weeks across columns from C with
dates on row 3:

- financial P&L (rows 4-10)
- projects per type (rows 18-31)
- sales per type (rows 35-50)
- leads per source (rows 55-66, count + cost per lead)
- Google reviews (row 70)
- invoiced actuals per region (rows 74-98; the target rows above each actual
  are managed elsewhere and are not imported)
"""

__all__ = [
    "SHEET_NAME",
    "WeeklyReport",
    "parse_weekly_report",
]

SHEET_NAME = "Weekly Report"
DATE_ROW = 3
START_COL = 3

FINANCIAL_ROWS = (
    RowMapping(4, "total_trading_income"),
    RowMapping(5, "total_cost_of_sales"),
    RowMapping(6, "gross_profit"),
    RowMapping(7, "other_income"),
    RowMapping(8, "operating_expenses"),
    RowMapping(9, "wages_and_salaries"),
    RowMapping(10, "net_profit"),
)

PROJECT_BLOCKS: dict[str, tuple[RowMapping, ...]] = {
    "residential": (
        RowMapping(18, "hyperflo_count", "integer"),
        RowMapping(19, "xero_invoiced_amount"),
        RowMapping(21, "new_business_percentage"),
    ),
    "commercial": (
        RowMapping(26, "hyperflo_count", "integer"),
        RowMapping(27, "xero_invoiced_amount"),
    ),
    "retrospective": (
        RowMapping(30, "hyperflo_count", "integer"),
        RowMapping(31, "xero_invoiced_amount"),
    ),
}


def _sales_block(first_row: int) -> tuple[RowMapping, ...]:
    return (
        RowMapping(first_row, "quotes_issued_count", "integer"),
        RowMapping(first_row + 1, "quotes_issued_value"),
        RowMapping(first_row + 2, "quotes_won_count", "integer"),
        RowMapping(first_row + 3, "quotes_won_value"),
    )


SALES_BLOCKS: dict[str, tuple[RowMapping, ...]] = {
    "residential": _sales_block(35),
    "commercial": _sales_block(41),
    "retrospective": _sales_block(47),
}

# source -> (lead count row, cost per lead row)
LEAD_ROWS: dict[str, tuple[int, int]] = {
    "google": (55, 56),
    "seo": (57, 58),
    "meta": (59, 60),
    "bing": (61, 62),
    "tiktok": (63, 64),
    "other": (65, 66),
}

REVIEW_ROWS = (RowMapping(70, "review_count", "integer"),)

# region -> actual invoiced row
TEAM_ACTUAL_ROWS: dict[str, int] = {
    "cairns": 74,
    "mackay": 77,
    "nq_commercial": 80,
    "seq_residential": 83,
    "seq_commercial": 86,
    "town_planning": 89,
    "townsville": 92,
    "wide_bay": 95,
    "all_in_access": 98,
}


@dataclass
class WeeklyReport:
    financial: list[ParsedWeek] = field(default_factory=list)
    projects: list[StructuralRecord] = field(default_factory=list)
    sales: list[StructuralRecord] = field(default_factory=list)
    leads: list[StructuralRecord] = field(default_factory=list)
    google_reviews: list[ParsedWeek] = field(default_factory=list)
    team_performance: list[StructuralRecord] = field(default_factory=list)


def _grouped(sheet: Sheet, group_field: str, blocks: dict[str, tuple[RowMapping, ...]]) -> list[StructuralRecord]:
    records: list[StructuralRecord] = []
    for key, mappings in blocks.items():
        for week in scan_transposed(sheet, DATE_ROW, START_COL, mappings):
            records.append(StructuralRecord(week.week_date, group_field, key, week.values, week.warnings))
    return records


def _leads(sheet: Sheet) -> list[StructuralRecord]:
    records: list[StructuralRecord] = []
    for source, (count_row, cost_row) in LEAD_ROWS.items():
        mappings = (RowMapping(count_row, "lead_count"), RowMapping(cost_row, "cost_per_lead"))
        for week in scan_transposed(sheet, DATE_ROW, START_COL, mappings):
            count = week.values["lead_count"]
            cost_per_lead = week.values["cost_per_lead"]
            total_cost = count * cost_per_lead if count is not None and cost_per_lead is not None else None
            values = {"lead_count": count, "cost_per_lead": cost_per_lead, "total_cost": total_cost}
            records.append(StructuralRecord(week.week_date, "source", source, values, week.warnings))
    return records


def parse_weekly_report(workbook: Workbook) -> WeeklyReport:
    sheet = workbook.sheet(SHEET_NAME)
    if sheet is None:
        return WeeklyReport()
    team_blocks = {region: (RowMapping(row, "actual_invoiced"),) for region, row in TEAM_ACTUAL_ROWS.items()}
    return WeeklyReport(
        financial=scan_transposed(sheet, DATE_ROW, START_COL, FINANCIAL_ROWS),
        projects=_grouped(sheet, "project_type", PROJECT_BLOCKS),
        sales=_grouped(sheet, "sales_type", SALES_BLOCKS),
        leads=_leads(sheet),
        google_reviews=scan_transposed(sheet, DATE_ROW, START_COL, REVIEW_ROWS),
        team_performance=_grouped(sheet, "region", team_blocks),
    )
