"""
Shared base for the score, log and run-audit repositories.

Repositories wrap an open ``sqlite3.Connection`` owned by the caller; they
never commit.  SQL is explicit and lives in the repository methods.

JSON columns (flags, signals, feature vectors, config snapshots) go through
``dump_json`` / ``load_json`` so the stored text is byte-stable: the same
``ScoreResult`` always serialises to the same row, whichever recompute path
wrote it.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Optional, Sequence

logger = logging.getLogger(__name__)

Params = Sequence[Any]


def dump_json(value: Any) -> str:
    """Serialise for a JSON column with sorted keys and no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def load_json(text: Optional[str], default: Any = None) -> Any:
    return default if text is None else json.loads(text)


class BaseRepository:
    """Holds the connection and logs every statement at DEBUG."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Params = ()) -> sqlite3.Cursor:
        logger.debug("SQL: %s | params: %s", " ".join(sql.split()), params)
        return self.conn.execute(sql, params)

    def executemany(self, sql: str, rows: list[Params]) -> sqlite3.Cursor:
        logger.debug("SQL (many): %s | rows: %d", " ".join(sql.split()), len(rows))
        return self.conn.executemany(sql, rows)

    def fetchone(self, sql: str, params: Params = ()) -> Optional[sqlite3.Row]:
        return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()
