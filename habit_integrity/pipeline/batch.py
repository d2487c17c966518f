"""
Scheduled batch recompute over every user with logs in the trailing window.

Execution model
---------------
- Users are scored on a bounded ``ThreadPoolExecutor``
  (``RecomputeConfig.max_workers``).
- Each worker opens its own SQLite connection and commits its user's upsert
  in its own transaction, so a cancelled sweep leaves every finished user
  written and every unfinished user untouched.
- One user's failure (malformed data, write error) is recorded in that
  user's ``UserRecomputeResult`` and the sweep continues.  Nothing is retried.

Run status
----------
  "success" — every user scored (or no users qualified)
  "partial" — at least one user failed, at least one succeeded
  "failed"  — every user failed, or the sweep itself raised / was interrupted
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from habit_integrity.config import AppConfig
from habit_integrity.db.connection import get_connection
from habit_integrity.db.repositories.log_repo import HabitLogRepository
from habit_integrity.models.meta import RunMetadata
from habit_integrity.pipeline.base import PipelineStage
from habit_integrity.pipeline.recompute import recompute_user
from habit_integrity.taxonomy.integrity_taxonomy import HonestyLevel
from habit_integrity.utils.logging import recompute_logger

logger = logging.getLogger(__name__)

_MAX_ERRORS_IN_MESSAGE = 5


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UserRecomputeResult:
    """Outcome of recomputing one user in a batch sweep.

    Attributes:
        user_id:       User that was processed.
        status:        ``"success"`` or ``"error"``.
        score:         Stored score on success.
        honesty_level: Stored level on success.
        error:         Error message on failure.
    """

    user_id:       str
    status:        str
    score:         Optional[int] = None
    honesty_level: Optional[HonestyLevel] = None
    error:         Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


# ── Stage ─────────────────────────────────────────────────────────────────────


class BatchRecompute(PipelineStage):
    """Recompute every qualifying user with per-user failure isolation."""

    stage_name = "recompute_all"

    def __init__(self, config: AppConfig, db_path: Optional[str] = None) -> None:
        super().__init__(config, db_path)
        self.last_run: Optional[RunMetadata] = None

    def recompute_all(
        self,
        user_ids: Optional[Sequence[str]] = None,
        as_of: Optional[datetime] = None,
        computed_at: Optional[datetime] = None,
    ) -> list[UserRecomputeResult]:
        """Run the sweep and return per-user outcomes in input order.

        Args:
            user_ids: Users to recompute; defaults to every user with logs in
                the trailing window (capped at ``batch_user_limit``).
            as_of: End of the trailing window; defaults to now.
            computed_at: Timestamp stamped on every result; defaults to now
                per user.

        Returns:
            One ``UserRecomputeResult`` per user.
        """
        results: list[UserRecomputeResult] = []
        self.last_run = self.run(
            results=results, user_ids=user_ids, as_of=as_of, computed_at=computed_at
        )
        return results

    def _execute(
        self,
        run: RunMetadata,
        results: list[UserRecomputeResult],
        user_ids: Optional[Sequence[str]] = None,
        as_of: Optional[datetime] = None,
        computed_at: Optional[datetime] = None,
        **kwargs,
    ) -> int:
        if user_ids is not None:
            ids = list(dict.fromkeys(user_ids))
        else:
            ids = self._qualifying_users(as_of)
        if not ids:
            logger.info("No users with logs in the last %d days.", self.config.scoring.window_days)
            return 0

        workers = min(self.config.recompute.max_workers, len(ids))
        logger.info("Recomputing %d users with %d workers.", len(ids), workers)

        by_user: dict[str, UserRecomputeResult] = {}
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="recompute")
        try:
            futures: dict[Future, str] = {
                executor.submit(self._recompute_one, uid, as_of, computed_at): uid
                for uid in ids
            }
            for fut in as_completed(futures):
                outcome = fut.result()
                by_user[outcome.user_id] = outcome
        except KeyboardInterrupt:
            executor.shutdown(wait=False, cancel_futures=True)
            logger.warning(
                "Batch recompute cancelled after %d of %d users.", len(by_user), len(ids)
            )
            raise
        executor.shutdown(wait=True)

        results.extend(by_user[uid] for uid in ids if uid in by_user)

        failures = [r for r in results if not r.ok]
        run.error_count = len(failures)
        if failures:
            run.error_message = "; ".join(
                f"{r.user_id}: {r.error}" for r in failures[:_MAX_ERRORS_IN_MESSAGE]
            )
            if len(failures) > _MAX_ERRORS_IN_MESSAGE:
                run.error_message += f" (+{len(failures) - _MAX_ERRORS_IN_MESSAGE} more)"
            run.status = "failed" if len(failures) == len(results) else "partial"

        return len(results) - len(failures)

    def _qualifying_users(self, as_of: Optional[datetime]) -> list[str]:
        with get_connection(self.database) as conn:
            return HabitLogRepository(conn).list_users_with_logs(
                window_days=self.config.scoring.window_days,
                as_of=as_of,
                limit=self.config.recompute.batch_user_limit,
            )

    def _recompute_one(
        self,
        user_id: str,
        as_of: Optional[datetime],
        computed_at: Optional[datetime],
    ) -> UserRecomputeResult:
        """Score one user on a worker thread with its own connection."""
        try:
            with get_connection(self.database) as conn:
                result = recompute_user(
                    conn, user_id, self.config, as_of, computed_at, path="batch"
                )
        except Exception as exc:
            recompute_logger(logger, "batch", user_id).warning("Recompute failed: %s", exc)
            return UserRecomputeResult(user_id=user_id, status="error", error=str(exc))

        return UserRecomputeResult(
            user_id=user_id,
            status="success",
            score=result.score,
            honesty_level=result.honesty_level,
        )
