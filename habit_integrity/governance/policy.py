"""
Governance policy: map an honesty level to reward caps and messaging.

Level rules
-----------
  high   — multiplier 1.2, caps x1.5, boost message, no nudge.
  medium — multiplier 1.0, base caps, nudge only when score < 55.
  low    — multiplier 0.5, daily cap x0.5, weekly cap x0.3, exactly one nudge
           chosen by flag priority:
           HOUSEHOLD_MISMATCH > REPETITIVE_VALUES > FLATLINE_PATTERN > generic.

Every function here is pure: it reads its arguments and returns a new
``RewardGovernance``.  Nothing is persisted or logged.
"""

from __future__ import annotations

from typing import Iterable, Optional

from habit_integrity.config import GovernanceConfig, ScoringConfig
from habit_integrity.governance.models import RewardGovernance
from habit_integrity.models.score import ScoreResult
from habit_integrity.scoring.stats import round_half_up
from habit_integrity.taxonomy.integrity_taxonomy import (
    NUDGE_FLAG_PRIORITY,
    HonestyLevel,
    IntegrityFlag,
)

HIGH_CAP_FACTOR = 1.5
LOW_DAILY_CAP_FACTOR = 0.5
LOW_WEEKLY_CAP_FACTOR = 0.3
MEDIUM_NUDGE_BELOW = 55

BOOST_MESSAGE = "Honesty Boost: +20% points for consistent, reliable logging!"
MEDIUM_NUDGE = "Log consistently each day to unlock bonus rewards!"
GENERIC_NUDGE = "Consistent, realistic logging unlocks extra rewards and better health insights."

FLAG_NUDGES: dict[IntegrityFlag, str] = {
    IntegrityFlag.HOUSEHOLD_MISMATCH: (
        "Your logged usage seems unusual for your household size. "
        "Double-check today's entry?"
    ),
    IntegrityFlag.REPETITIVE_VALUES: (
        "We noticed very similar values in your logs. "
        "Varied, realistic entries unlock better insights!"
    ),
    IntegrityFlag.FLATLINE_PATTERN: (
        "Your entries look very consistent. "
        "Real cooking naturally varies day to day!"
    ),
}


def _scaled(base: int, factor: float) -> int:
    return int(round_half_up(base * factor))


def select_nudge(flags: Iterable[IntegrityFlag]) -> str:
    """Pick the single low-level nudge for a set of flags."""
    present = set(flags)
    for flag in NUDGE_FLAG_PRIORITY:
        if flag in present:
            return FLAG_NUDGES[flag]
    return GENERIC_NUDGE


def reward_governance(
    level: HonestyLevel,
    score: int,
    flags: Iterable[IntegrityFlag] = (),
    config: Optional[GovernanceConfig] = None,
    scoring: Optional[ScoringConfig] = None,
) -> RewardGovernance:
    """Compute reward rules for a level, score and flag set.

    Args:
        level: Honesty level of the score.
        score: Integer score in [0, 100].
        flags: Integrity flags attached to the score.
        config: Base point caps; defaults to ``GovernanceConfig()``.
        scoring: Supplies the per-level multipliers; defaults to ``ScoringConfig()``.

    Returns:
        A frozen ``RewardGovernance``.
    """
    config = config or GovernanceConfig()
    multipliers = (scoring or ScoringConfig()).multipliers
    base_daily = config.base_max_daily_points
    base_weekly = config.base_max_weekly_points

    if level == HonestyLevel.HIGH:
        return RewardGovernance(
            multiplier=multipliers.high,
            max_daily_points=_scaled(base_daily, HIGH_CAP_FACTOR),
            max_weekly_points=_scaled(base_weekly, HIGH_CAP_FACTOR),
            boost_message=BOOST_MESSAGE,
        )

    if level == HonestyLevel.MEDIUM:
        return RewardGovernance(
            multiplier=multipliers.medium,
            max_daily_points=base_daily,
            max_weekly_points=base_weekly,
            nudge_message=MEDIUM_NUDGE if score < MEDIUM_NUDGE_BELOW else None,
        )

    return RewardGovernance(
        multiplier=multipliers.low,
        max_daily_points=_scaled(base_daily, LOW_DAILY_CAP_FACTOR),
        max_weekly_points=_scaled(base_weekly, LOW_WEEKLY_CAP_FACTOR),
        nudge_message=select_nudge(flags),
    )


def governance_for(
    result: ScoreResult,
    config: Optional[GovernanceConfig] = None,
    scoring: Optional[ScoringConfig] = None,
) -> RewardGovernance:
    """Reward rules for a stored or freshly computed ``ScoreResult``."""
    return reward_governance(
        result.honesty_level, result.score, result.flags, config=config, scoring=scoring
    )


def default_governance(config: Optional[GovernanceConfig] = None) -> RewardGovernance:
    """Neutral rules for a user with no score on record yet."""
    config = config or GovernanceConfig()
    return RewardGovernance(
        multiplier=1.0,
        max_daily_points=config.base_max_daily_points,
        max_weekly_points=config.base_max_weekly_points,
    )
