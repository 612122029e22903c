from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

"""Records produced by the workbook parsers.

These are transfer objects: created per parse, handed to the import engine or
returned as a dry-run preview, never stored as-is.
"""

__all__ = [
    "RowMapping",
    "ParsedWeek",
    "StructuralRecord",
]


@dataclass(frozen=True)
class RowMapping:
    """Maps one sheet row to one metric field.

    ``type`` is ``integer`` or ``decimal``; integer values are rounded.
    """
    row: int
    field: str
    type: str = "decimal"


@dataclass
class ParsedWeek:
    week_date: date
    values: dict[str, float | int | None]
    warnings: list[str] = field(default_factory=list)

    def has_data(self) -> bool:
        return any(v is not None for v in self.values.values())

    def to_row(self) -> dict[str, Any]:
        return {"week_ending": self.week_date, **self.values}


@dataclass
class StructuralRecord:
    """One (group, week) pair recovered from a report sheet.

    Attributes:
        week_date: Saturday the values belong to
        group_field: Column holding the group key (``region``, ``staff_name`` ...)
        group_key: Group identifier, e.g. ``residential`` or a staff name
        values: Metric field -> value
        warnings: Cell-level warnings collected while reading the values
        attributes: Extra key columns carried with the group (e.g. ``role``)
    """
    week_date: date
    group_field: str
    group_key: str
    values: dict[str, float | int | None]
    warnings: list[str] = field(default_factory=list)
    attributes: dict[str, str] = field(default_factory=dict)

    def to_row(self) -> dict[str, Any]:
        return {
            "week_ending": self.week_date,
            self.group_field: self.group_key,
            **self.attributes,
            **self.values,
        }
