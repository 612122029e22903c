from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..models.upload import ImportResult

"""Error log buffering.

- JSON Lines, one :class:`ErrorRecord` per line, fixed keys
- one file per run: ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC), created on the
  first flush that has something to write
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "records_for_import",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records; :meth:`flush` appends them to the run's file."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[ErrorRecord]) -> None:
        self._records.extend(records)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None when nothing was written."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp


def records_for_import(source: str, result: ImportResult) -> list[ErrorRecord]:
    """One record per row error; a failed transaction becomes a single table-level record."""
    if not result.succeeded:
        message = "; ".join(m for e in result.errors for m in e.messages) or "import failed"
        return [ErrorRecord.create(source, result.target_table, -1, "IMPORT_FAILED", message)]
    return [
        ErrorRecord.create(source, result.target_table, e.row_index, "ROW_REJECTED", "; ".join(e.messages))
        for e in result.errors
    ]
