"""
Reward governance for the Habit Stability Score.

This sub-package provides:

  governance/models.py    — Pydantic models handed to the reward layer.
  governance/policy.py    — Level → multiplier, point caps, and messaging.
  governance/rewards.py   — Applying a multiplier to base points.
  governance/freshness.py — 24-hour staleness checks for stored scores.

Nothing here performs I/O; the recompute workflow in ``pipeline`` decides
when to read or write stored scores.
"""

from habit_integrity.governance.models import PointsAward, RewardGovernance
from habit_integrity.governance.policy import (
    default_governance,
    governance_for,
    reward_governance,
    select_nudge,
)
from habit_integrity.governance.rewards import (
    apply_reward_multiplier,
    calculate_total_points,
    multiplier_description,
)
from habit_integrity.governance.freshness import (
    FreshnessResult,
    FreshnessStatus,
    RecomputeState,
    check_score_freshness,
)

__all__ = [
    # models
    "PointsAward",
    "RewardGovernance",
    # policy
    "default_governance",
    "governance_for",
    "reward_governance",
    "select_nudge",
    # rewards
    "apply_reward_multiplier",
    "calculate_total_points",
    "multiplier_description",
    # freshness
    "FreshnessResult",
    "FreshnessStatus",
    "RecomputeState",
    "check_score_freshness",
]
