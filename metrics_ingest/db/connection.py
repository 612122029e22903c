from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

import psycopg2

from ..config.loader import DatabaseConfig
from .postgres import PostgresStore
from .store import StoreUnavailableError

"""Connection bootstrap.

Resolution order for connection settings:
    1. ``DATABASE_URL`` / ``PGDSN`` (whole DSN; ``.env`` is loaded with override
       by the CLI, so values from it win over the process environment)
    2. individual ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` / ``PGDATABASE``
    3. the ``database`` section of the config file
"""

__all__ = ["resolve_dsn", "connect"]

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[PostgresStore]:
    """Open an autocommit connection and yield a :class:`PostgresStore` on it.

    Raises:
        StoreUnavailableError: The server cannot be reached
    """
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.Error as e:
        raise StoreUnavailableError(f"cannot connect to database: {e}".strip()) from e
    # transaction boundaries are issued explicitly by the store
    conn.autocommit = True
    store = PostgresStore(conn)
    try:
        yield store
    finally:
        try:
            store.close()
        finally:
            conn.close()
            logger.debug("database connection closed")
