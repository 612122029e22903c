"""Structural parsers, one per report sheet layout."""

from .finance_this_week import parse_cash_position
from .marketing import parse_marketing
from .phone import parse_phone
from .productivity import parse_productivity
from .revenue_report import parse_revenue_report
from .weekly_report import WeeklyReport, parse_weekly_report

__all__ = [
    "WeeklyReport",
    "parse_cash_position",
    "parse_marketing",
    "parse_phone",
    "parse_productivity",
    "parse_revenue_report",
    "parse_weekly_report",
]
