"""
SQLite schema DDL: every CREATE TABLE and CREATE INDEX statement.

All statements use ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent:
safe to call on an already-initialized database (e.g. after restart or in tests).

Tables
------
  1. user_profiles    household context per user
  2. daily_logs       self-reported consumption entries (many per day allowed)
  3. external_scans   corroborating scan evidence
  4. habit_integrity  latest ScoreResult per user (full replace on upsert)
  5. run_metadata     audit trail of batch recompute sweeps

``daily_logs`` and ``external_scans`` deliberately carry no CHECK on
amounts: malformed rows must reach the scoring core so they are reported as
validation errors instead of being rejected silently at insert time.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_USER_PROFILES = """
CREATE TABLE IF NOT EXISTS user_profiles (
    user_id         TEXT    PRIMARY KEY,
    household_size  INTEGER,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_DAILY_LOGS = """
CREATE TABLE IF NOT EXISTS daily_logs (
    log_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         TEXT    NOT NULL,
    log_date        TEXT    NOT NULL,
    amount_ml       REAL    NOT NULL,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_daily_logs_user_date
    ON daily_logs (user_id, log_date);
"""

_DDL_EXTERNAL_SCANS = """
CREATE TABLE IF NOT EXISTS external_scans (
    scan_id             INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id             TEXT    NOT NULL,
    scanned_at          TEXT    NOT NULL,
    declared_amount_ml  REAL    NOT NULL,
    label               TEXT    NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_external_scans_user_time
    ON external_scans (user_id, scanned_at);
"""

_DDL_HABIT_INTEGRITY = """
CREATE TABLE IF NOT EXISTS habit_integrity (
    user_id             TEXT    PRIMARY KEY,
    score               INTEGER NOT NULL CHECK (score BETWEEN 0 AND 100),
    honesty_level       TEXT    NOT NULL CHECK (honesty_level IN ('high', 'medium', 'low')),
    reward_multiplier   REAL    NOT NULL,
    flags               TEXT    NOT NULL DEFAULT '[]',
    feature_vector      TEXT    NOT NULL,
    signals             TEXT    NOT NULL,
    scoring_version     TEXT    NOT NULL,
    computed_at         TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_habit_integrity_computed
    ON habit_integrity (computed_at);
"""

_DDL_RUN_METADATA = """
CREATE TABLE IF NOT EXISTS run_metadata (
    run_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    run_slug        TEXT    NOT NULL UNIQUE,
    pipeline_stage  TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'started',
    scoring_version TEXT,
    config_snapshot TEXT    NOT NULL,
    rows_processed  INTEGER NOT NULL DEFAULT 0,
    error_count     INTEGER NOT NULL DEFAULT 0,
    error_message   TEXT,
    started_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    finished_at     TEXT
);
"""

_ALL_DDL = [
    _DDL_USER_PROFILES,
    _DDL_DAILY_LOGS,
    _DDL_EXTERNAL_SCANS,
    _DDL_HABIT_INTEGRITY,
    _DDL_RUN_METADATA,
]

ALL_TABLE_NAMES = [
    "user_profiles",
    "daily_logs",
    "external_scans",
    "habit_integrity",
    "run_metadata",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply all DDL statements to ``conn``.

    Idempotent: each statement uses ``IF NOT EXISTS`` guards.

    Args:
        conn: An open ``sqlite3.Connection``.
    """
    logger.debug("Applying schema to database...")

    for ddl in _ALL_DDL:
        for statement in _split_ddl(ddl):
            conn.execute(statement)

    conn.commit()
    logger.info("Schema applied: %d tables, indexes created/verified.", len(ALL_TABLE_NAMES))


def _split_ddl(ddl: str) -> list[str]:
    """Split a multi-statement DDL block on semicolons."""
    return [s.strip() for s in ddl.split(";") if s.strip()]


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Return table names present in the database, sorted alphabetically."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row[0] for row in rows]
