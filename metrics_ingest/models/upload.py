from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from .csv_result import RowValidation
from .data_type import DataTypeDefinition

"""Import audit trail and rollback bookkeeping models.

Upload lifecycle::

    pending -> processing -> completed -> rolled_back
                          -> failed

RollbackData is the only artifact needed to undo a completed import. It holds
the ids of inserted rows and a full copy of every row the import updated.
Because the copies are stored as JSON, :func:`encode_value` / :func:`decode_value`
tag ``date``, ``datetime`` and ``Decimal`` values so a restore writes back
exactly what was read.
"""

__all__ = [
    "UploadStatus",
    "DuplicateStrategy",
    "DataSource",
    "RowError",
    "OverwrittenRecord",
    "RollbackData",
    "UploadRecord",
    "SavedMapping",
    "ImportRequest",
    "ImportResult",
    "RollbackResult",
    "encode_value",
    "decode_value",
]


class UploadStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class DuplicateStrategy(Enum):
    OVERWRITE = "overwrite"
    SKIP = "skip"
    MERGE = "merge"


class DataSource(Enum):
    CSV_UPLOAD = "csv_upload"
    XERO_API = "xero_api"
    MANUAL_ENTRY = "manual_entry"
    BACKFILLED = "backfilled"


def encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$datetime": value.isoformat()}
    if isinstance(value, date):
        return {"$date": value.isoformat()}
    if isinstance(value, Decimal):
        return {"$decimal": str(value)}
    if isinstance(value, Enum):
        return value.value
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict) and len(value) == 1:
        tag, raw = next(iter(value.items()))
        if tag == "$datetime":
            return datetime.fromisoformat(raw)
        if tag == "$date":
            return date.fromisoformat(raw)
        if tag == "$decimal":
            return Decimal(raw)
    return value


@dataclass(frozen=True)
class RowError:
    row_index: int
    messages: list[str]
    original: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "messages": list(self.messages),
            "original": {k: encode_value(v) for k, v in self.original.items()},
        }


@dataclass(frozen=True)
class OverwrittenRecord:
    id: int
    previous_data: dict[str, Any]


@dataclass
class RollbackData:
    target_table: str
    inserted_ids: list[int] = field(default_factory=list)
    overwritten: list[OverwrittenRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_table": self.target_table,
            "inserted_ids": list(self.inserted_ids),
            "overwritten": [
                {
                    "id": rec.id,
                    "previous_data": {k: encode_value(v) for k, v in rec.previous_data.items()},
                }
                for rec in self.overwritten
            ],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> RollbackData:
        return cls(
            target_table=raw["target_table"],
            inserted_ids=[int(i) for i in raw.get("inserted_ids", [])],
            overwritten=[
                OverwrittenRecord(
                    id=int(item["id"]),
                    previous_data={k: decode_value(v) for k, v in item["previous_data"].items()},
                )
                for item in raw.get("overwritten", [])
            ],
        )


@dataclass
class UploadRecord:
    """One import attempt (a row of ``csv_uploads``)."""
    id: int
    file_name: str
    data_type: str
    status: UploadStatus
    rows_processed: int = 0
    rows_failed: int = 0
    rows_skipped: int = 0
    error_log: list[dict[str, Any]] | None = None
    rollback_data: RollbackData | None = None
    mapping_id: int | None = None
    uploaded_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "data_type": self.data_type,
            "status": self.status.value,
            "rows_processed": self.rows_processed,
            "rows_failed": self.rows_failed,
            "rows_skipped": self.rows_skipped,
            "error_count": len(self.error_log or []),
            "can_rollback": self.status is UploadStatus.COMPLETED and self.rollback_data is not None,
            "mapping_id": self.mapping_id,
            "uploaded_by": self.uploaded_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class SavedMapping:
    """Reusable CSV header -> field mapping (a row of ``csv_column_mappings``)."""
    id: int
    name: str
    data_type: str
    mapping: dict[str, str]
    created_by: str | None = None


@dataclass
class ImportRequest:
    data_type: DataTypeDefinition
    rows: list[RowValidation]
    duplicate_strategy: DuplicateStrategy = DuplicateStrategy.OVERWRITE
    file_name: str = ""
    mapping_id: int | None = None
    uploaded_by: str | None = None
    data_source: DataSource = DataSource.CSV_UPLOAD
    audit_data_type: str | None = None  # overrides data_type.id on the audit record


@dataclass
class ImportResult:
    upload_id: int
    status: UploadStatus
    target_table: str
    rows_processed: int = 0
    rows_failed: int = 0
    rows_skipped: int = 0
    inserted: int = 0
    updated: int = 0
    errors: list[RowError] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is UploadStatus.COMPLETED


@dataclass(frozen=True)
class RollbackResult:
    upload_id: int
    rows_deleted: int
    rows_restored: int
