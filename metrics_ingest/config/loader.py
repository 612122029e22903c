from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.upload import DuplicateStrategy

"""Config loader.

Responsibilities:
- Load YAML config (default ``config/ingest.yml``)
- Validate against the bundled JSON schema (``config_schema.json``)
- Apply defaults for missing sections and keys

Database credentials may be left out of the file entirely; the environment
(``DATABASE_URL`` / ``PG*``) takes precedence at connect time.
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/ingest.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    duplicate_strategy: DuplicateStrategy = DuplicateStrategy.OVERWRITE
    transaction_timeout_seconds: int = 60
    lock_target_table: bool = True


@dataclass(frozen=True)
class CsvSettings:
    preview_rows: int = 10
    sample_size: int = 20
    encoding: str = "utf-8"


@dataclass(frozen=True)
class IngestConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    imports: ImportSettings = field(default_factory=ImportSettings)
    csv: CsvSettings = field(default_factory=CsvSettings)


def default_config() -> IngestConfig:
    return IngestConfig()


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: The schema file is missing or not JSON, or the data
            violates it (unknown keys, wrong types, bad enum values)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        path = "/".join(str(p) for p in e.absolute_path)
        where = f" at {path}" if path else ""
        raise ConfigError(f"config validation failed{where}: {e.message}") from e


def load_config(path: Path) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    imports_raw = data.get("imports") or {}
    csv_raw = data.get("csv") or {}
    defaults = ImportSettings()
    csv_defaults = CsvSettings()
    return IngestConfig(
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
        imports=ImportSettings(
            duplicate_strategy=DuplicateStrategy(
                imports_raw.get("duplicate_strategy", defaults.duplicate_strategy.value)
            ),
            transaction_timeout_seconds=imports_raw.get(
                "transaction_timeout_seconds", defaults.transaction_timeout_seconds
            ),
            lock_target_table=imports_raw.get("lock_target_table", defaults.lock_target_table),
        ),
        csv=CsvSettings(
            preview_rows=csv_raw.get("preview_rows", csv_defaults.preview_rows),
            sample_size=csv_raw.get("sample_size", csv_defaults.sample_size),
            encoding=csv_raw.get("encoding", csv_defaults.encoding),
        ),
    )
