from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

"""Week-ending helpers.

Every weekly metric is keyed by its week ending, which is always a Saturday.
Any date entering the system goes through :func:`to_saturday`.
"""

__all__ = [
    "SATURDAY",
    "WeekEndingCheck",
    "to_saturday",
    "validate_week_ending",
    "week_range",
    "current_week_ending",
]

SATURDAY = 5  # date.weekday(): Monday=0 ... Sunday=6
MAX_CORRECTION_DAYS = 3


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def to_saturday(value: date | datetime) -> date:
    """Snap a date to the nearest Saturday.

    Sunday to Tuesday move back to the previous Saturday, Wednesday to Friday
    move forward. The two distances always sum to 7, so exactly one of them is
    within 3 days.
    """
    d = _as_date(value)
    weekday = d.weekday()
    if weekday == SATURDAY:
        return d
    days_since_sat = (weekday - SATURDAY) % 7
    days_until_sat = (SATURDAY - weekday) % 7
    if days_since_sat <= MAX_CORRECTION_DAYS:
        return d - timedelta(days=days_since_sat)
    return d + timedelta(days=days_until_sat)


@dataclass(frozen=True)
class WeekEndingCheck:
    valid: bool
    date: date | None
    corrected: bool = False
    error: str | None = None


def validate_week_ending(value: date | datetime) -> WeekEndingCheck:
    d = _as_date(value)
    if d.weekday() == SATURDAY:
        return WeekEndingCheck(valid=True, date=d)
    snapped = to_saturday(d)
    if abs((snapped - d).days) <= MAX_CORRECTION_DAYS:
        return WeekEndingCheck(valid=True, date=snapped, corrected=True)
    return WeekEndingCheck(
        valid=False,
        date=None,
        error="Date is not a Saturday and is too far from the nearest Saturday to auto-correct",
    )


def week_range(start: date | datetime, end: date | datetime) -> list[date]:
    """Saturdays from ``start`` to ``end`` inclusive, both snapped first."""
    current = to_saturday(start)
    last = to_saturday(end)
    weeks: list[date] = []
    while current <= last:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks


def current_week_ending(today: date | None = None) -> date:
    return to_saturday(today or date.today())
