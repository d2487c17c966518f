"""
Score freshness: is a stored Habit Stability Score still usable?

Status classification
---------------------
  "fresh"   — age <= staleness_hours (default 24)
  "stale"   — age >  staleness_hours
  "missing" — no score has ever been computed for the user

The recompute workflow moves a user through ``RecomputeState``:
``stale`` (or missing) → ``computing`` → ``fresh``.  ``computing`` only
exists while ``InteractiveRecompute`` or ``BatchRecompute`` is running the
pipeline for that user; it is never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from habit_integrity.utils.time_utils import age_hours, ensure_utc, utcnow


# ── Status enums ──────────────────────────────────────────────────────────────


class FreshnessStatus(str, Enum):
    """Classification of how current a stored score is."""

    FRESH   = "fresh"    # Within the staleness window
    STALE   = "stale"    # Older than the staleness window
    MISSING = "missing"  # Never computed


class RecomputeState(str, Enum):
    """Workflow state of one user's score."""

    STALE     = "stale"
    COMPUTING = "computing"
    FRESH     = "fresh"


# ── Result dataclass ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FreshnessResult:
    """Freshness check outcome for one stored score.

    Attributes:
        status:           FreshnessStatus classification.
        last_computed_at: When the stored score was computed, or None.
        age_hours:        Hours since ``last_computed_at``, or None.
        staleness_hours:  Threshold used for the check.
    """

    status:           FreshnessStatus
    last_computed_at: Optional[datetime]
    age_hours:        Optional[float]
    staleness_hours:  float

    @property
    def needs_recompute(self) -> bool:
        return self.status != FreshnessStatus.FRESH

    @property
    def state(self) -> RecomputeState:
        """Workflow state implied by this check."""
        if self.status == FreshnessStatus.FRESH:
            return RecomputeState.FRESH
        return RecomputeState.STALE


# ── Public API ────────────────────────────────────────────────────────────────


def check_score_freshness(
    last_computed_at: Optional[datetime],
    staleness_hours: float = 24.0,
    now: Optional[datetime] = None,
) -> FreshnessResult:
    """Classify a stored score's freshness.

    Args:
        last_computed_at: ``computed_at`` of the stored score, or None.
        staleness_hours:  Age beyond which the score is stale.
        now:              Reference instant; defaults to the current UTC time.

    Returns:
        A frozen ``FreshnessResult``.
    """
    if last_computed_at is None:
        return FreshnessResult(
            status=FreshnessStatus.MISSING,
            last_computed_at=None,
            age_hours=None,
            staleness_hours=staleness_hours,
        )

    now = ensure_utc(now) if now is not None else utcnow()
    age = age_hours(last_computed_at, now)
    status = FreshnessStatus.STALE if age > staleness_hours else FreshnessStatus.FRESH
    return FreshnessResult(
        status=status,
        last_computed_at=ensure_utc(last_computed_at),
        age_hours=age,
        staleness_hours=staleness_hours,
    )
