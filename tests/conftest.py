"""
Shared pytest fixtures for the Habit Integrity test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``file_db`` / ``app_config``: An on-disk database under ``tmp_path``
    (batch workers open their own connections, so they need a real file)
    and an ``AppConfig`` pointing at it.
  - ``make_logs`` / ``make_inputs``: factories for scoring inputs on
    consecutive days starting from ``START_DAY``.
"""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Optional, Sequence

import pytest

from habit_integrity.config import AppConfig, DatabaseConfig, LoggingConfig
from habit_integrity.db.connection import get_connection
from habit_integrity.db.schema import apply_schema
from habit_integrity.models.inputs import (
    DailyLogEntry,
    ExternalScan,
    HouseholdContext,
    ScoringInputs,
)

# 2024-06-01 is a Saturday.
START_DAY = date(2024, 6, 1)
AS_OF = datetime(2024, 6, 30, 12, 0, 0, tzinfo=timezone.utc)


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def file_db(tmp_path) -> str:
    """Path to an on-disk database with the schema applied."""
    db_path = str(tmp_path / "habit_integrity.db")
    with get_connection(DatabaseConfig(db_path=db_path)) as conn:
        apply_schema(conn)
    return db_path


@pytest.fixture
def app_config(file_db) -> AppConfig:
    """Default ``AppConfig`` pointed at ``file_db`` with file logging off."""
    return AppConfig(
        database=DatabaseConfig(db_path=file_db),
        logging=LoggingConfig(log_file=""),
    )


# ── Input factories ───────────────────────────────────────────────────────────

@pytest.fixture
def make_logs():
    """Factory: one ``DailyLogEntry`` per amount on consecutive days."""

    def _make(amounts: Sequence[float], start: date = START_DAY) -> tuple[DailyLogEntry, ...]:
        return tuple(
            DailyLogEntry(log_date=start + timedelta(days=i), amount_ml=float(a))
            for i, a in enumerate(amounts)
        )

    return _make


@pytest.fixture
def make_inputs(make_logs):
    """Factory: ``ScoringInputs`` from a list of amounts."""

    def _make(
        amounts: Sequence[float],
        household_size: int = 1,
        scans: Sequence[ExternalScan] = (),
        window_days: int = 30,
        start: Optional[date] = None,
    ) -> ScoringInputs:
        return ScoringInputs(
            daily_logs=make_logs(amounts, start or START_DAY),
            scans=tuple(scans),
            household=HouseholdContext(size=household_size),
            window_days=window_days,
        )

    return _make


@pytest.fixture
def natural_amounts() -> list[float]:
    """Thirty days of plausible, varied amounts around 20 ml for one person."""
    return [
        18.0, 24.0, 19.5, 21.0, 16.0, 23.5, 20.0,
        17.5, 26.0, 22.0, 15.5, 19.0, 25.0, 21.5,
        18.5, 23.0, 20.5, 16.5, 27.0, 19.0, 22.5,
        17.0, 24.5, 20.0, 18.0, 21.5, 25.5, 16.0,
        22.0, 19.5,
    ]
