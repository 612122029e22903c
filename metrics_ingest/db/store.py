from __future__ import annotations

import abc
from collections.abc import Mapping, Sequence
from contextlib import AbstractContextManager
from datetime import date
from typing import Any

from ..models.upload import SavedMapping, UploadRecord, UploadStatus

"""Persistence seam for the import and rollback engines.

Engines only talk to :class:`MetricsStore`. ``PostgresStore`` is the real
implementation; tests use an in-memory double. Rows are plain dicts keyed by
column name.

Transaction contract:
- ``transaction()`` commits when the block exits normally and rolls back when
  it raises
- ``savepoint()`` only makes sense inside a transaction; an exception rolls
  back to the savepoint and is re-raised, leaving the outer transaction usable
"""

__all__ = [
    "StoreError",
    "StoreUnavailableError",
    "TABLE_UNIQUE_KEYS",
    "MANAGED_FIELDS",
    "unique_key",
    "strip_managed",
    "MetricsStore",
]


class StoreError(Exception):
    """A statement failed (constraint violation, bad value, timeout...)."""


class StoreUnavailableError(StoreError):
    """The connection itself is gone; nothing further can be executed."""


# table -> columns identifying one logical record
TABLE_UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "financial_weekly": ("week_ending",),
    "revenue_weekly": ("week_ending", "category"),
    "projects_weekly": ("week_ending", "project_type"),
    "sales_weekly": ("week_ending", "sales_type"),
    "sales_regional_weekly": ("week_ending", "region", "sales_type"),
    "team_performance_weekly": ("week_ending", "region"),
    "leads_weekly": ("week_ending", "source"),
    "marketing_performance_weekly": ("week_ending", "platform"),
    "website_analytics_weekly": ("week_ending",),
    "staff_productivity_weekly": ("week_ending", "staff_name"),
    "phone_weekly": ("week_ending", "staff_name"),
    "cash_position_weekly": ("week_ending",),
    "google_reviews_weekly": ("week_ending",),
}

MANAGED_FIELDS = frozenset({"id", "created_at", "updated_at"})


def unique_key(table: str, data: Mapping[str, Any]) -> dict[str, Any]:
    """Key columns of ``data`` for ``table``; raises KeyError naming the missing column."""
    key: dict[str, Any] = {}
    for column in TABLE_UNIQUE_KEYS[table]:
        value = data.get(column)
        if value is None:
            raise KeyError(column)
        key[column] = value
    return key


def strip_managed(row: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in row.items() if k not in MANAGED_FIELDS}


class MetricsStore(abc.ABC):
    # transactions

    @abc.abstractmethod
    def transaction(self, timeout_seconds: int | None = None) -> AbstractContextManager[None]:
        ...

    @abc.abstractmethod
    def savepoint(self) -> AbstractContextManager[None]:
        ...

    @abc.abstractmethod
    def lock_table(self, table: str) -> None:
        """Block concurrent writers of ``table`` until the transaction ends."""

    # weekly tables

    @abc.abstractmethod
    def find_by_key(self, table: str, key: Mapping[str, Any]) -> dict[str, Any] | None:
        """Full row matching every key column, or None."""

    @abc.abstractmethod
    def insert(self, table: str, data: Mapping[str, Any]) -> int:
        ...

    @abc.abstractmethod
    def update(self, table: str, row_id: int, data: Mapping[str, Any]) -> None:
        ...

    @abc.abstractmethod
    def delete_many(self, table: str, ids: Sequence[int]) -> int:
        ...

    @abc.abstractmethod
    def existing_weeks(self, table: str) -> list[date]:
        ...

    # audit records

    @abc.abstractmethod
    def create_upload(
        self,
        *,
        file_name: str,
        data_type: str,
        status: UploadStatus,
        rows_failed: int = 0,
        mapping_id: int | None = None,
        uploaded_by: str | None = None,
    ) -> int:
        ...

    @abc.abstractmethod
    def update_upload(self, upload_id: int, **fields: Any) -> None:
        """Update audit columns; ``rollback_data`` may be a RollbackData or None."""

    @abc.abstractmethod
    def get_upload(self, upload_id: int, *, lock: bool = False) -> UploadRecord | None:
        """Fetch one audit record; ``lock`` holds its row until the open transaction ends."""

    @abc.abstractmethod
    def list_uploads(
        self,
        *,
        data_type: str | None = None,
        status: UploadStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[UploadRecord]:
        """Newest first."""

    # saved column mappings

    @abc.abstractmethod
    def save_mapping(
        self, name: str, data_type: str, mapping: Mapping[str, str], created_by: str | None = None
    ) -> int:
        ...

    @abc.abstractmethod
    def get_mapping(self, mapping_id: int) -> SavedMapping | None:
        ...

    @abc.abstractmethod
    def list_mappings(self, data_type: str | None = None) -> list[SavedMapping]:
        ...
