"""
Reward helpers applied by the points-awarding layer after governance.

Rounding is half-up so a 1.2x boost on 5 points awards 6, matching the
integer score rounding used by the aggregator.
"""

from __future__ import annotations

from typing import Optional

from habit_integrity.governance.models import PointsAward
from habit_integrity.scoring.stats import round_half_up

BOOST_DESCRIPTION = "+20% Honesty Boost"
REDUCED_DESCRIPTION = "Reduced (improve logging habits)"


def apply_reward_multiplier(base_points: int, multiplier: float) -> int:
    """Scale ``base_points`` by ``multiplier`` and round half-up.

    Raises:
        ValueError: If ``base_points`` or ``multiplier`` is negative.
    """
    if base_points < 0:
        raise ValueError(f"base_points must be >= 0, got {base_points}.")
    if multiplier < 0:
        raise ValueError(f"multiplier must be >= 0, got {multiplier}.")
    return int(round_half_up(base_points * multiplier))


def multiplier_description(multiplier: float) -> Optional[str]:
    """Short badge text for a multiplier, or ``None`` for the neutral 1.0."""
    if multiplier >= 1.2:
        return BOOST_DESCRIPTION
    if multiplier <= 0.5:
        return REDUCED_DESCRIPTION
    return None


def calculate_total_points(base_points: int, multiplier: float) -> PointsAward:
    """Apply a multiplier and report the bonus relative to ``base_points``."""
    final = apply_reward_multiplier(base_points, multiplier)
    return PointsAward(
        final_points=final,
        bonus=final - base_points,
        multiplier_applied=multiplier,
    )
