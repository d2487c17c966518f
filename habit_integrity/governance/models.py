"""
Pydantic v2 models returned by the governance layer.

``RewardGovernance`` is the consumer contract handed to the reward / status
layers: the multiplier, the point caps, and at most one user-facing message
of each kind.  ``PointsAward`` is the result of applying a multiplier to a
base point amount.

Both are frozen.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class RewardGovernance(BaseModel):
    """Reward rules derived from one ``ScoreResult``.

    Attributes:
        multiplier:        Reward multiplier for the honesty level.
        max_daily_points:  Daily points cap.
        max_weekly_points: Weekly points cap.
        nudge_message:     Corrective message for medium/low levels, if any.
        boost_message:     Positive message for the high level, if any.
    """

    model_config = ConfigDict(frozen=True)

    multiplier:        float
    max_daily_points:  int
    max_weekly_points: int
    nudge_message:     Optional[str] = None
    boost_message:     Optional[str] = None

    @field_validator("max_daily_points", "max_weekly_points")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Point caps must be >= 0, got {v}.")
        return v


class PointsAward(BaseModel):
    """Points after a reward multiplier is applied.

    Attributes:
        final_points:       Rounded points actually awarded.
        bonus:              ``final_points - base_points`` (negative when reduced).
        multiplier_applied: The multiplier used.
    """

    model_config = ConfigDict(frozen=True)

    final_points:       int
    bonus:              int
    multiplier_applied: float
