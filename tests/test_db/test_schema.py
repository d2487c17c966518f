"""Tests for SQLite schema — idempotency, table creation, column constraints."""

from __future__ import annotations

import sqlite3

import pytest

from habit_integrity.db.schema import ALL_TABLE_NAMES, apply_schema, get_existing_tables


class TestApplySchema:
    def test_all_tables_created(self, in_memory_db):
        tables = get_existing_tables(in_memory_db)
        for expected_table in ALL_TABLE_NAMES:
            assert expected_table in tables, (
                f"Expected table '{expected_table}' not found in database. "
                f"Found: {tables}"
            )

    def test_idempotent_double_apply(self, in_memory_db):
        """apply_schema() called twice must not raise errors."""
        apply_schema(in_memory_db)
        tables = get_existing_tables(in_memory_db)
        assert len(tables) >= len(ALL_TABLE_NAMES)


class TestConstraints:
    def test_score_range_enforced(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO habit_integrity (
                    user_id, score, honesty_level, reward_multiplier,
                    feature_vector, signals, scoring_version, computed_at
                ) VALUES ('u', 101, 'high', 1.2, '{}', '[]', 'v', '2024-01-01');
                """
            )

    def test_honesty_level_enforced(self, in_memory_db):
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(
                """
                INSERT INTO habit_integrity (
                    user_id, score, honesty_level, reward_multiplier,
                    feature_vector, signals, scoring_version, computed_at
                ) VALUES ('u', 50, 'excellent', 1.0, '{}', '[]', 'v', '2024-01-01');
                """
            )

    def test_daily_logs_accept_negative_amounts(self, in_memory_db):
        """Malformed amounts are stored so the scorer can report them."""
        in_memory_db.execute(
            "INSERT INTO daily_logs (user_id, log_date, amount_ml) VALUES ('u', '2024-06-01', -1);"
        )
        row = in_memory_db.execute("SELECT amount_ml FROM daily_logs;").fetchone()
        assert row["amount_ml"] == -1

    def test_run_slug_unique(self, in_memory_db):
        sql = (
            "INSERT INTO run_metadata (run_slug, pipeline_stage, config_snapshot) "
            "VALUES ('slug', 'recompute_all', '{}');"
        )
        in_memory_db.execute(sql)
        with pytest.raises(sqlite3.IntegrityError):
            in_memory_db.execute(sql)
