from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from metrics_ingest.excel.parsers import (
    parse_cash_position,
    parse_marketing,
    parse_phone,
    parse_productivity,
    parse_revenue_report,
    parse_weekly_report,
)
from metrics_ingest.excel.parsers.marketing import find_platform_groups, sum_nullable
from metrics_ingest.excel.parsers.phone import find_staff_groups
from metrics_ingest.excel.reader import Sheet, Workbook
from metrics_ingest.models.cell import Formula

WEEK1 = date(2024, 1, 6)
WEEK2 = date(2024, 1, 13)


def grid(name: str, cells: dict[tuple[int, int], Any]) -> Sheet:
    max_row = max(r for r, _ in cells)
    max_col = max(c for _, c in cells)
    rows = [[cells.get((r, c)) for c in range(1, max_col + 1)] for r in range(1, max_row + 1)]
    return Sheet.from_rows(name, rows)


def workbook(*sheets: Sheet) -> Workbook:
    return Workbook.from_sheets(sheets)


class TestWeeklyReport:
    def _sheet(self) -> Sheet:
        cells: dict[tuple[int, int], Any] = {(3, 3): WEEK1, (3, 4): WEEK2}
        for offset, value in enumerate([1000, 400, 600, 50, 200, 150, 300]):
            cells[(4 + offset, 3)] = value
        cells.update({(18, 3): 5, (19, 3): 12000, (21, 3): 0.4, (26, 3): 2})
        cells.update({(35, 3): 7, (36, 3): 35000, (37, 3): 3, (38, 3): 15000})
        cells.update({(55, 3): 10, (56, 3): 25.5})
        cells.update({(70, 3): 3, (70, 4): 4})
        cells.update({(74, 3): 5000})
        return grid("Weekly Report", cells)

    def test_all_blocks(self):
        report = parse_weekly_report(workbook(self._sheet()))

        assert len(report.financial) == 1
        financial = report.financial[0]
        assert financial.week_date == WEEK1
        assert financial.values["total_trading_income"] == 1000
        assert financial.values["net_profit"] == 300

        projects = {r.group_key: r for r in report.projects}
        assert set(projects) == {"residential", "commercial"}
        assert projects["residential"].values == {
            "hyperflo_count": 5,
            "xero_invoiced_amount": 12000,
            "new_business_percentage": 0.4,
        }
        assert projects["commercial"].values["xero_invoiced_amount"] is None
        assert projects["commercial"].to_row()["project_type"] == "commercial"

        assert [(r.group_key, r.values["quotes_won_value"]) for r in report.sales] == [("residential", 15000)]

        assert len(report.leads) == 1
        lead = report.leads[0]
        assert lead.group_key == "google"
        assert lead.values["total_cost"] == pytest.approx(255.0)

        assert [(w.week_date, w.values["review_count"]) for w in report.google_reviews] == [(WEEK1, 3), (WEEK2, 4)]

        assert [(r.group_key, r.values["actual_invoiced"]) for r in report.team_performance] == [("cairns", 5000)]

    def test_missing_sheet_gives_empty_report(self):
        report = parse_weekly_report(workbook())
        assert report.financial == []
        assert report.team_performance == []


class TestCashPosition:
    def test_reads_fixed_cells(self):
        sheet = grid(
            "Finance This Week",
            {
                (8, 2): 1000,
                (10, 2): 500,
                (11, 2): 200,
                (18, 2): 1700,
                (22, 2): 900,
                (22, 3): 600,
                (22, 4): 200,
                (22, 6): 100,
                (25, 2): "$350.00",
            },
        )
        week = parse_cash_position(workbook(sheet), WEEK2)
        assert week is not None
        assert week.week_date == WEEK2
        assert week.values["everyday_account"] == 1500
        assert week.values["tax_savings"] == 200
        assert week.values["capital_account"] is None
        assert week.values["total_receivables"] == 900
        assert week.values["over_60_days"] is None
        assert week.values["over_90_days"] == 100
        assert week.values["total_payables"] == 350.0

    def test_everyday_account_from_one_bank(self):
        sheet = grid("Finance This Week", {(10, 2): 250})
        assert parse_cash_position(workbook(sheet), WEEK1).values["everyday_account"] == 250

    def test_uncached_formula_warns(self):
        sheet = grid("Finance This Week", {(8, 2): Formula("='Bank'!B2"), (10, 2): 10})
        week = parse_cash_position(workbook(sheet), WEEK1)
        assert week.values["everyday_account"] == 10
        assert any("Finance This Week!B8" in w for w in week.warnings)

    def test_missing_or_empty_sheet(self):
        assert parse_cash_position(workbook(), WEEK1) is None
        empty = grid("Finance This Week", {(1, 1): "Cash position"})
        assert parse_cash_position(workbook(empty), WEEK1) is None


class TestRevenueReport:
    def test_one_record_per_filled_category(self):
        sheet = grid(
            "Weekly Revenue Report",
            {
                (1, 1): "Week Ending",
                (2, 1): date(2024, 1, 8),
                (2, 2): 100,
                (2, 9): 999,  # not an imported column
                (2, 28): 50,
                (3, 1): "Total",
                (3, 2): 100,
            },
        )
        records = parse_revenue_report(workbook(sheet))
        assert [(r.week_date, r.group_key, r.values["amount"]) for r in records] == [
            (WEEK1, "class_1a", 100),
            (WEEK1, "access_labour_hire", 50),
        ]
        assert records[0].to_row() == {"week_ending": WEEK1, "category": "class_1a", "amount": 100}

    def test_missing_sheet(self):
        assert parse_revenue_report(workbook()) == []


class TestPhone:
    def _sheet(self) -> Sheet:
        return grid(
            "Phone (2)",
            {
                (3, 3): WEEK1,
                (4, 1): "Jane Citizen",
                (5, 1): "Inbound",
                (5, 3): 10,
                (6, 1): "Outbound",
                (6, 3): 5,
                (7, 1): "Missed",
                (7, 3): 2,
                (8, 1): "Team Total",
                (8, 3): 17,
                (9, 1): "Bob Smith",
                (10, 1): "Inbound",
                (10, 3): 1.6,
                (11, 1): "Outbound",
                (12, 1): "Missed",
            },
        )

    def test_staff_groups(self):
        groups = find_staff_groups(self._sheet())
        assert [(g.staff_name, g.name_row) for g in groups] == [("Jane Citizen", 4), ("Bob Smith", 9)]

    def test_records(self):
        records = parse_phone(workbook(self._sheet()))
        by_name = {r.group_key: r for r in records}
        assert by_name["Jane Citizen"].values == {"inbound_calls": 10, "outbound_calls": 5, "missed_calls": 2}
        assert by_name["Bob Smith"].values == {"inbound_calls": 2, "outbound_calls": None, "missed_calls": None}
        assert by_name["Bob Smith"].to_row()["staff_name"] == "Bob Smith"

    def test_only_phone_two_is_read(self):
        sheet = self._sheet()
        sheet.name = "Phone"
        assert parse_phone(workbook(sheet)) == []


class TestProductivity:
    def test_groups_with_roles(self):
        sheet = grid(
            "Productivity",
            {
                (3, 3): "Average",
                (3, 4): WEEK1,
                (4, 1): "Certifiers (sign off user)",
                (5, 1): "Jane #",
                (5, 2): "Jane Citizen",
                (5, 3): 99,
                (5, 4): 3,
                (6, 4): 4500.5,
                (7, 4): 2,
                (8, 1): "Cadets",
                (9, 1): "Tom #",
                (9, 2): "Tom Young",
                (9, 4): 1,
                (12, 1): "Vacant #",
            },
        )
        records = parse_productivity(workbook(sheet))
        assert [(r.group_key, r.attributes["role"]) for r in records] == [
            ("Jane Citizen", "certifier"),
            ("Tom Young", "cadet"),
        ]
        assert records[0].values == {"jobs_completed": 3, "revenue_generated": 4500.5, "inspections_completed": 2}
        assert records[1].values["revenue_generated"] is None
        assert records[1].to_row()["role"] == "cadet"

    def test_staff_before_any_section_is_other(self):
        sheet = grid("Productivity", {(3, 4): WEEK1, (4, 1): "A #", (4, 2): "Ann", (4, 4): 1})
        assert parse_productivity(workbook(sheet))[0].attributes == {"role": "other"}


class TestMarketing:
    def _sheet(self, name: str, rows: dict[str, list[Any]]) -> Sheet:
        cells: dict[tuple[int, int], Any] = {(3, 3): WEEK1}
        row = 4
        for platform, values in rows.items():
            for metric, value in zip(("Impressions", "Clicks", "Cost", "Conversions"), values, strict=True):
                cells[(row, 1)] = f"{platform} {metric}"
                if value is not None:
                    cells[(row, 3)] = value
                row += 1
        return grid(name, cells)

    def test_platform_groups(self):
        sheet = self._sheet("Marketing Weekly APP", {"Google Ads": [1, 1, 1, 1], "Meta": [1, 1, 1, 1]})
        groups = find_platform_groups(sheet)
        assert [(g.platform, g.impressions_row, g.conversions_row) for g in groups] == [
            ("google_ads", 4, 7),
            ("meta_ads", 8, 11),
        ]

    def test_sheets_merged_and_ratios_derived(self):
        app = self._sheet("Marketing Weekly APP", {"Google Ads": [1000, 50, 100, 5]})
        ba = self._sheet("Marketing Weekly BA", {"Google Ads": [500, 25, 50, None], "Meta": [200, 0, 30, None]})
        records = {r.group_key: r for r in parse_marketing(workbook(app, ba))}

        google = records["google_ads"].values
        assert google["impressions"] == 1500
        assert google["clicks"] == 75
        assert google["cost"] == 150
        assert google["conversions"] == 5
        assert google["ctr"] == pytest.approx(0.05)
        assert google["cpc"] == pytest.approx(2.0)

        meta = records["meta_ads"].values
        assert meta["ctr"] == 0.0
        assert meta["cpc"] is None
        assert meta["conversions"] is None

    def test_same_week_columns_in_one_sheet_are_summed(self):
        # the Friday before WEEK1 snaps onto it
        cells: dict[tuple[int, int], Any] = {(3, 3): WEEK1, (3, 4): date(2024, 1, 5)}
        for row, metric in enumerate(("Impressions", "Clicks", "Cost", "Conversions"), start=4):
            cells[(row, 1)] = f"Google Ads {metric}"
        cells.update({(4, 3): 1000, (5, 3): 50, (6, 3): 100, (4, 4): 400, (5, 4): 10, (6, 4): 20})
        records = parse_marketing(workbook(grid("Marketing Weekly APP", cells)))

        assert [r.week_date for r in records] == [WEEK1]
        google = records[0].values
        assert (google["impressions"], google["clicks"], google["cost"]) == (1400, 60, 120)
        assert google["conversions"] is None
        assert google["cpc"] == pytest.approx(2.0)

    def test_sum_nullable(self):
        assert sum_nullable(None, None) is None
        assert sum_nullable(None, 2) == 2
        assert sum_nullable(1.5, 2) == 3.5
