"""Tests for db/connection.py — settings resolution, pragmas, commit/rollback."""

from __future__ import annotations

import pytest

from habit_integrity.config import AppConfig, DatabaseConfig
from habit_integrity.db.connection import database_settings, get_connection


class TestDatabaseSettings:
    def test_no_override_returns_config_section(self):
        config = AppConfig(database=DatabaseConfig(db_path="a.db", busy_timeout_ms=900))
        assert database_settings(config) is config.database
        assert database_settings(config, "a.db") is config.database

    def test_override_keeps_other_settings(self):
        config = AppConfig(database=DatabaseConfig(db_path="a.db", busy_timeout_ms=900))
        resolved = database_settings(config, "b.db")
        assert resolved.db_path == "b.db"
        assert resolved.busy_timeout_ms == 900
        assert config.database.db_path == "a.db"


class TestGetConnection:
    def test_creates_parent_dirs_and_enables_wal(self, tmp_path):
        database = DatabaseConfig(db_path=str(tmp_path / "nested" / "x.db"))
        with get_connection(database) as conn:
            mode = conn.execute("PRAGMA journal_mode;").fetchone()[0]
        assert (tmp_path / "nested" / "x.db").exists()
        assert mode.lower() == "wal"

    def test_busy_timeout_applied(self, tmp_path):
        database = DatabaseConfig(db_path=str(tmp_path / "x.db"), busy_timeout_ms=1234)
        with get_connection(database) as conn:
            assert conn.execute("PRAGMA busy_timeout;").fetchone()[0] == 1234

    def test_commits_on_clean_exit(self, tmp_path):
        database = DatabaseConfig(db_path=str(tmp_path / "x.db"))
        with get_connection(database) as conn:
            conn.execute("CREATE TABLE t (v INTEGER);")
            conn.execute("INSERT INTO t VALUES (1);")
        with get_connection(database) as conn:
            assert conn.execute("SELECT COUNT(*) FROM t;").fetchone()[0] == 1

    def test_rolls_back_on_error(self, tmp_path):
        database = DatabaseConfig(db_path=str(tmp_path / "x.db"))
        with get_connection(database) as conn:
            conn.execute("CREATE TABLE t (v INTEGER);")
        with pytest.raises(RuntimeError):
            with get_connection(database) as conn:
                conn.execute("INSERT INTO t VALUES (1);")
                raise RuntimeError("boom")
        with get_connection(database) as conn:
            assert conn.execute("SELECT COUNT(*) FROM t;").fetchone()[0] == 0

    def test_memory_database_rows_are_mappings(self):
        with get_connection(DatabaseConfig(db_path=":memory:")) as conn:
            row = conn.execute("SELECT 1 AS one;").fetchone()
        assert row["one"] == 1
