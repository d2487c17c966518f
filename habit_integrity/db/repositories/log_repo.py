"""
Repository for the scoring inputs: household profiles, daily logs and scans.

``fetch_payload()`` returns the plain persistence-boundary shape::

    {"daily_logs": [{"date", "amount"}], "scans": [{"date", "amount", "label"}],
     "household_size": int | None}

and ``fetch_scoring_inputs()`` validates it into ``ScoringInputs``.  Rows are
returned exactly as stored; a malformed row surfaces as
``InputValidationError`` from the validation step, never as a silent skip.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional

from habit_integrity.db.repositories.base import BaseRepository
from habit_integrity.models.inputs import DailyLogEntry, ExternalScan, ScoringInputs
from habit_integrity.utils.time_utils import ensure_utc, format_utc, utcnow, window_start


class HabitLogRepository(BaseRepository):
    """Read/write access to ``user_profiles``, ``daily_logs`` and ``external_scans``."""

    # ── Writes ────────────────────────────────────────────────────────────────

    def upsert_profile(self, user_id: str, household_size: Optional[int]) -> None:
        """Insert or replace a user's household size (``None`` means unknown)."""
        self.execute(
            """
            INSERT INTO user_profiles (user_id, household_size)
            VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                household_size = excluded.household_size,
                updated_at     = strftime('%Y-%m-%dT%H:%M:%SZ', 'now');
            """,
            (user_id, household_size),
        )

    def insert_logs(self, user_id: str, entries: Iterable[DailyLogEntry]) -> int:
        """Append log entries for a user.

        Returns:
            Number of rows inserted.
        """
        rows = [(user_id, e.log_date.isoformat(), e.amount_ml) for e in entries]
        if rows:
            self.executemany(
                "INSERT INTO daily_logs (user_id, log_date, amount_ml) VALUES (?, ?, ?);",
                rows,
            )
        return len(rows)

    def insert_raw_log(self, user_id: str, log_date: str, amount_ml: Any) -> None:
        """Insert one log row without model validation (imports and fixtures)."""
        self.execute(
            "INSERT INTO daily_logs (user_id, log_date, amount_ml) VALUES (?, ?, ?);",
            (user_id, log_date, amount_ml),
        )

    def insert_scans(self, user_id: str, scans: Iterable[ExternalScan]) -> int:
        """Append external scans for a user.

        Returns:
            Number of rows inserted.
        """
        rows = [
            (user_id, format_utc(s.scanned_at), s.declared_amount_ml, s.label)
            for s in scans
        ]
        if rows:
            self.executemany(
                """
                INSERT INTO external_scans (user_id, scanned_at, declared_amount_ml, label)
                VALUES (?, ?, ?, ?);
                """,
                rows,
            )
        return len(rows)

    def delete_user_data(self, user_id: str) -> None:
        """Remove a user's logs, scans and profile (used when re-importing)."""
        for table in ("daily_logs", "external_scans", "user_profiles"):
            self.execute(f"DELETE FROM {table} WHERE user_id = ?;", (user_id,))

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get_household_size(self, user_id: str) -> Optional[int]:
        row = self.fetchone(
            "SELECT household_size FROM user_profiles WHERE user_id = ?;", (user_id,)
        )
        return row["household_size"] if row else None

    def fetch_payload(
        self,
        user_id: str,
        window_days: int = 30,
        as_of: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Fetch one user's trailing window in the plain boundary shape.

        Args:
            user_id: User to fetch.
            window_days: Trailing window length.
            as_of: Window end; defaults to now (UTC).

        Returns:
            Dict with ``daily_logs``, ``scans`` and ``household_size``.
            Logs are ordered by date, then by insertion order.
        """
        as_of = ensure_utc(as_of) if as_of is not None else utcnow()
        start_day: date = window_start(as_of, window_days)
        end_day: date = as_of.date()

        log_rows = self.fetchall(
            """
            SELECT log_date, amount_ml FROM daily_logs
            WHERE user_id = ? AND log_date >= ? AND log_date <= ?
            ORDER BY log_date ASC, log_id ASC;
            """,
            (user_id, start_day.isoformat(), end_day.isoformat()),
        )
        scan_rows = self.fetchall(
            """
            SELECT scanned_at, declared_amount_ml, label FROM external_scans
            WHERE user_id = ? AND scanned_at >= ? AND scanned_at <= ?
            ORDER BY scanned_at ASC, scan_id ASC;
            """,
            (
                user_id,
                format_utc(as_of - timedelta(days=window_days)),
                format_utc(as_of),
            ),
        )

        return {
            "daily_logs": [
                {"date": row["log_date"], "amount": row["amount_ml"]} for row in log_rows
            ],
            "scans": [
                {
                    "date": row["scanned_at"],
                    "amount": row["declared_amount_ml"],
                    "label": row["label"],
                }
                for row in scan_rows
            ],
            "household_size": self.get_household_size(user_id),
        }

    def fetch_scoring_inputs(
        self,
        user_id: str,
        window_days: int = 30,
        as_of: Optional[datetime] = None,
    ) -> ScoringInputs:
        """Fetch and validate one user's trailing window.

        Raises:
            InputValidationError: If any stored row is malformed.
        """
        payload = self.fetch_payload(user_id, window_days, as_of)
        return ScoringInputs.from_raw(payload, window_days=window_days)

    def list_users_with_logs(
        self,
        window_days: int = 30,
        as_of: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[str]:
        """User ids with at least one log entry in the trailing window, sorted."""
        as_of = ensure_utc(as_of) if as_of is not None else utcnow()
        sql = """
            SELECT DISTINCT user_id FROM daily_logs
            WHERE log_date >= ? AND log_date <= ?
            ORDER BY user_id ASC
        """
        params: tuple[Any, ...] = (
            window_start(as_of, window_days).isoformat(),
            as_of.date().isoformat(),
        )
        if limit is not None:
            sql += " LIMIT ?"
            params = params + (limit,)
        return [row["user_id"] for row in self.fetchall(sql + ";", params)]

    def count_logs(self, user_id: str) -> int:
        row = self.fetchone(
            "SELECT COUNT(*) AS n FROM daily_logs WHERE user_id = ?;", (user_id,)
        )
        return int(row["n"]) if row else 0
