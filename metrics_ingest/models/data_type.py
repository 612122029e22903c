from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "FieldDefinition",
    "DataTypeDefinition",
]


@dataclass(frozen=True)
class FieldDefinition:
    db_field: str
    label: str
    type: str  # date | currency | percentage | integer | decimal | text
    required: bool = False


@dataclass(frozen=True)
class DataTypeDefinition:
    """Logical import type: where rows go and which fields they may carry.

    ``fixed_fields`` are stamped onto every imported row (e.g. the
    ``project_type`` of the residential projects type).
    """
    id: str
    name: str
    description: str
    category: str
    target_table: str
    fields: tuple[FieldDefinition, ...]
    fixed_fields: dict[str, Any] = field(default_factory=dict)

    def get_field(self, db_field: str) -> FieldDefinition | None:
        for f in self.fields:
            if f.db_field == db_field:
                return f
        return None
