# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from metrics_ingest.logging.init import reset_logging

from tests.fakes import InMemoryStore


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: metrics
  password: secret
  database: metrics
imports:
  duplicate_strategy: merge
  transaction_timeout_seconds: 30
  lock_target_table: false
csv:
  preview_rows: 5
  sample_size: 10
  encoding: utf-8
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def clean_logging():
    reset_logging()
    yield
    reset_logging()
