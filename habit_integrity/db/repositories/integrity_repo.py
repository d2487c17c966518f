"""
Repository for stored Habit Stability Scores (``habit_integrity`` table).

One row per user.  ``upsert()`` replaces every column of that row: a new
``ScoreResult`` is never merged into an old one.  Flags, the feature vector
and signals are stored as JSON text; the feature vector's names are checked
against the feature registry on the way in and out.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from habit_integrity.db.repositories.base import BaseRepository, dump_json, load_json
from habit_integrity.models.score import FeatureVector, ScoreResult, Signal
from habit_integrity.scoring.registry import feature_row, validate_feature_row
from habit_integrity.taxonomy.integrity_taxonomy import HonestyLevel, IntegrityFlag
from habit_integrity.utils.time_utils import ensure_utc, parse_utc


class IntegrityRepository(BaseRepository):
    """Read/write access to ``habit_integrity``."""

    def upsert(self, user_id: str, result: ScoreResult) -> None:
        """Write ``result`` as the user's current score, replacing any previous row."""
        self.execute(
            """
            INSERT INTO habit_integrity (
                user_id, score, honesty_level, reward_multiplier, flags,
                feature_vector, signals, scoring_version, computed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                score             = excluded.score,
                honesty_level     = excluded.honesty_level,
                reward_multiplier = excluded.reward_multiplier,
                flags             = excluded.flags,
                feature_vector    = excluded.feature_vector,
                signals           = excluded.signals,
                scoring_version   = excluded.scoring_version,
                computed_at       = excluded.computed_at;
            """,
            (
                user_id,
                result.score,
                result.honesty_level.value,
                result.reward_multiplier,
                dump_json([f.value for f in result.flags]),
                dump_json(feature_row(result.feature_vector)),
                dump_json([s.model_dump(mode="json") for s in result.signals]),
                result.scoring_version,
                ensure_utc(result.computed_at).isoformat(),
            ),
        )

    def get(self, user_id: str) -> Optional[ScoreResult]:
        """Fetch a user's stored score, or ``None`` if never computed."""
        row = self.fetchone("SELECT * FROM habit_integrity WHERE user_id = ?;", (user_id,))
        return _row_to_result(row) if row else None

    def get_computed_at(self, user_id: str) -> Optional[datetime]:
        row = self.fetchone(
            "SELECT computed_at FROM habit_integrity WHERE user_id = ?;", (user_id,)
        )
        return parse_utc(row["computed_at"]) if row else None

    def get_all(self, limit: int = 100) -> list[tuple[str, ScoreResult]]:
        """Stored scores ordered by user id."""
        rows = self.fetchall(
            "SELECT * FROM habit_integrity ORDER BY user_id ASC LIMIT ?;", (limit,)
        )
        return [(row["user_id"], _row_to_result(row)) for row in rows]

    def count(self) -> int:
        row = self.fetchone("SELECT COUNT(*) AS n FROM habit_integrity;")
        return int(row["n"]) if row else 0


def _row_to_result(row: sqlite3.Row) -> ScoreResult:
    return ScoreResult(
        score=row["score"],
        honesty_level=HonestyLevel(row["honesty_level"]),
        reward_multiplier=row["reward_multiplier"],
        feature_vector=FeatureVector.model_validate(
            validate_feature_row(load_json(row["feature_vector"], {}))
        ),
        signals=tuple(Signal.model_validate(s) for s in load_json(row["signals"], [])),
        flags=tuple(IntegrityFlag(f) for f in load_json(row["flags"], [])),
        computed_at=parse_utc(row["computed_at"]),
        scoring_version=row["scoring_version"],
    )
