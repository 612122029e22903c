from __future__ import annotations

from datetime import datetime
from pathlib import Path

import openpyxl

"""Small reporting workbook written with openpyxl for end-to-end tests.

Contents:
- Weekly Report: two weeks of P&L (the second income cell is a formula
  without a cached value) and Google reviews
- Phone (2): one staff member
- Weekly Revenue Report: one week, two categories
"""

WEEKS = (datetime(2024, 1, 6), datetime(2024, 1, 13))


def build_report_workbook(path: Path, income: tuple[float, float] = (1000.0, 2000.0)) -> Path:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Weekly Report"
    ws["C3"], ws["D3"] = WEEKS
    ws["E3"] = "Total"
    ws["A4"] = "Total Trading Income"
    ws["C4"], ws["D4"] = income
    ws["A5"] = "Total Cost of Sales"
    ws["C5"] = 400
    ws["D5"] = "=C5*2"
    ws["A10"] = "Net Profit"
    ws["C10"], ws["D10"] = income[0] - 400, income[1] - 800
    ws["A70"] = "Google Reviews"
    ws["C70"] = 3

    phone = wb.create_sheet("Phone (2)")
    phone["C3"] = WEEKS[0]
    phone["A4"] = "Jane Citizen"
    phone["A5"], phone["C5"] = "Inbound", 12
    phone["A6"], phone["C6"] = "Outbound", 4
    phone["A7"], phone["C7"] = "Missed", 1

    revenue = wb.create_sheet("Weekly Revenue Report")
    revenue["A1"] = "Week Ending"
    revenue["A2"] = datetime(2024, 1, 5)
    revenue["B2"] = 800
    revenue["E2"] = 200

    wb.save(path)
    return path
