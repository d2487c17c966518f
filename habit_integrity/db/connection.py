"""
SQLite connection management for the recompute paths.

``get_connection(database)`` opens the store described by a
``DatabaseConfig``: WAL journal (so batch workers write while interactive
readers read), a busy timeout for worker lock contention, ``sqlite3.Row``
rows, commit on clean exit and rollback on exception.

Each batch worker opens its own connection.  A connection is never shared
across threads.

Usage::

    database = database_settings(config, db_path_override)
    with get_connection(database) as conn:
        recompute_user(conn, user_id, config)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from habit_integrity.config import AppConfig, DatabaseConfig

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


def database_settings(config: AppConfig, db_path: Optional[str] = None) -> DatabaseConfig:
    """``config.database`` with ``db_path`` swapped in when an override is given."""
    if not db_path or db_path == config.database.db_path:
        return config.database
    return config.database.model_copy(update={"db_path": db_path})


@contextmanager
def get_connection(database: DatabaseConfig) -> Generator[sqlite3.Connection, None, None]:
    """Yield a configured connection to ``database.db_path``.

    Parent directories of an on-disk database are created on first use.
    WAL is skipped for ``:memory:``, which has no journal file.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays
            locked past ``busy_timeout_ms``.
    """
    db_path = database.db_path
    if db_path != MEMORY_DB:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=database.busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute(f"PRAGMA busy_timeout = {int(database.busy_timeout_ms)};")
        if database.wal_mode and db_path != MEMORY_DB:
            conn.execute("PRAGMA journal_mode = WAL;")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        logger.debug("Rolled back transaction on %s", db_path)
        raise
    finally:
        conn.close()
