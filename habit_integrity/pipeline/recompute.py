"""
Interactive recompute path and the shared per-user step.

``recompute_user()`` is the one function that turns a user's stored logs
into a stored score:

    fetch_scoring_inputs ─► compute_score ─► IntegrityRepository.upsert

``InteractiveRecompute`` calls it on a user action; ``BatchRecompute`` calls
it from each worker.  Neither path has its own copy of any scoring logic.

Workflow states
---------------
A user's score is ``stale`` (or missing) until a recompute starts,
``computing`` while it runs, and ``fresh`` for ``staleness_hours`` after.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import Counter
from datetime import datetime
from typing import Optional

from habit_integrity.config import AppConfig
from habit_integrity.db.connection import database_settings, get_connection
from habit_integrity.db.repositories.integrity_repo import IntegrityRepository
from habit_integrity.db.repositories.log_repo import HabitLogRepository
from habit_integrity.governance.freshness import (
    FreshnessResult,
    RecomputeState,
    check_score_freshness,
)
from habit_integrity.governance.models import RewardGovernance
from habit_integrity.governance.policy import default_governance, governance_for
from habit_integrity.models.score import ScoreResult
from habit_integrity.scoring.engine import compute_score
from habit_integrity.utils.logging import recompute_logger

logger = logging.getLogger(__name__)


def recompute_user(
    conn: sqlite3.Connection,
    user_id: str,
    config: AppConfig,
    as_of: Optional[datetime] = None,
    computed_at: Optional[datetime] = None,
    path: str = "interactive",
) -> ScoreResult:
    """Fetch, score and persist one user inside the caller's transaction.

    Args:
        conn: Open connection; the caller commits.
        user_id: User to recompute.
        config: Application config (scoring thresholds and window).
        as_of: End of the trailing window; defaults to now.
        computed_at: Timestamp stamped on the result; defaults to now.
        path: ``"interactive"`` or ``"batch"``; only tags log records.

    Returns:
        The freshly stored ``ScoreResult``.

    Raises:
        InputValidationError: If the user's stored data is malformed.
            Nothing is written in that case.
    """
    inputs = HabitLogRepository(conn).fetch_scoring_inputs(
        user_id, window_days=config.scoring.window_days, as_of=as_of
    )
    result = compute_score(inputs, config.scoring, computed_at=computed_at)
    IntegrityRepository(conn).upsert(user_id, result)
    recompute_logger(logger, path, user_id).debug(
        "Recomputed | score=%d | level=%s", result.score, result.honesty_level.value
    )
    return result


class InteractiveRecompute:
    """Per-user recompute triggered by a direct user action.

    Args:
        config:  AppConfig for this session.
        db_path: Override DB path (defaults to config.database.db_path).
    """

    def __init__(self, config: AppConfig, db_path: Optional[str] = None) -> None:
        self.config = config
        self.database = database_settings(config, db_path)
        # Per-user count of running recomputes; a user is COMPUTING while > 0.
        self._in_flight: Counter[str] = Counter()
        self._lock = threading.Lock()

    def _connect(self):
        return get_connection(self.database)

    def recompute(
        self,
        user_id: str,
        as_of: Optional[datetime] = None,
        computed_at: Optional[datetime] = None,
    ) -> ScoreResult:
        """Recompute and store a user's score, blocking until done.

        Raises:
            InputValidationError: If the user's stored data is malformed.
        """
        with self._lock:
            self._in_flight[user_id] += 1
        try:
            with self._connect() as conn:
                return recompute_user(conn, user_id, self.config, as_of, computed_at)
        finally:
            with self._lock:
                self._in_flight[user_id] -= 1
                if self._in_flight[user_id] <= 0:
                    del self._in_flight[user_id]

    def stored(self, user_id: str) -> Optional[ScoreResult]:
        with self._connect() as conn:
            return IntegrityRepository(conn).get(user_id)

    def freshness(self, user_id: str, now: Optional[datetime] = None) -> FreshnessResult:
        with self._connect() as conn:
            computed_at = IntegrityRepository(conn).get_computed_at(user_id)
        return check_score_freshness(
            computed_at, self.config.recompute.staleness_hours, now
        )

    def state(self, user_id: str, now: Optional[datetime] = None) -> RecomputeState:
        """Current workflow state of a user's score."""
        with self._lock:
            if self._in_flight[user_id] > 0:
                return RecomputeState.COMPUTING
        return self.freshness(user_id, now).state

    def ensure_fresh(self, user_id: str, now: Optional[datetime] = None) -> ScoreResult:
        """Return the stored score if fresh, otherwise recompute it."""
        check = self.freshness(user_id, now)
        if not check.needs_recompute:
            stored = self.stored(user_id)
            if stored is not None:
                return stored
        recompute_logger(logger, "interactive", user_id).info(
            "Score %s | age_hours=%s | recomputing",
            check.status.value,
            f"{check.age_hours:.1f}" if check.age_hours is not None else "n/a",
        )
        return self.recompute(user_id, as_of=now, computed_at=now)

    def current_governance(self, user_id: str) -> RewardGovernance:
        """Reward rules from the stored score, or neutral rules if none exists."""
        stored = self.stored(user_id)
        if stored is None:
            return default_governance(self.config.governance)
        return governance_for(stored, self.config.governance, self.config.scoring)
