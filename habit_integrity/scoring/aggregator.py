"""
Score aggregation: combine signals into the final integer score and level.

Weighted-sum formula
--------------------
    raw      = Σ(signal.value * signal.weight) / Σ(signal.weight)
    penalty  = min(penalty_cap, penalty_per_day * bulk_edit_count)
    score    = round_half_up(clamp(raw - penalty, 0, 100))

The bulk-edit penalty is applied after the weighted mean rather than as a
weighted signal, so it can pull an otherwise perfect score down by at most
``penalty_cap`` points.

Level classification (``LevelThresholdsConfig``)
-------------------------------------------------
    score >= 75 → high   (multiplier 1.2)
    score >= 45 → medium (multiplier 1.0)
    else        → low    (multiplier 0.5)

``ScoreAggregator`` is the seam for a future model-based aggregator: it
receives the fixed ``FeatureVector`` and signal list and returns an
``AggregateScore``.  Only ``WeightedSumAggregator`` ships today.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from habit_integrity.config import ScoringConfig
from habit_integrity.models.score import FeatureVector, Signal
from habit_integrity.scoring.stats import clamp, round_half_up
from habit_integrity.taxonomy.integrity_taxonomy import HonestyLevel


@dataclass(frozen=True)
class AggregateScore:
    """Aggregator output before it is wrapped in a ``ScoreResult``."""

    score: int
    honesty_level: HonestyLevel
    reward_multiplier: float
    raw_score: float
    penalty: float


def classify_score(score: int, config: ScoringConfig) -> tuple[HonestyLevel, float]:
    """Map an integer score to its honesty level and reward multiplier."""
    if score >= config.levels.high:
        return HonestyLevel.HIGH, config.multipliers.high
    if score >= config.levels.medium:
        return HonestyLevel.MEDIUM, config.multipliers.medium
    return HonestyLevel.LOW, config.multipliers.low


def bulk_edit_penalty(bulk_edit_count: int, config: ScoringConfig) -> float:
    cfg = config.bulk_edit
    return min(cfg.penalty_cap, cfg.penalty_per_day * bulk_edit_count)


class ScoreAggregator(ABC):
    """Strategy interface for turning signals into a score."""

    name: str

    def __init__(self, config: ScoringConfig) -> None:
        self.config = config

    @abstractmethod
    def aggregate(
        self,
        features: FeatureVector,
        signals: Sequence[Signal],
    ) -> AggregateScore:
        """Combine one user's features and signals into an ``AggregateScore``."""
        ...


class WeightedSumAggregator(ScoreAggregator):
    """Weighted mean of signal values minus the bulk-edit penalty."""

    name = "weighted_sum"

    def aggregate(
        self,
        features: FeatureVector,
        signals: Sequence[Signal],
    ) -> AggregateScore:
        total_weight = math.fsum(s.weight for s in signals)
        if total_weight <= 0.0:
            raise ValueError("Cannot aggregate an empty signal list.")

        raw = math.fsum(s.value * s.weight for s in signals) / total_weight
        penalty = bulk_edit_penalty(features.bulk_edit_count, self.config)
        score = int(round_half_up(clamp(raw - penalty)))
        level, multiplier = classify_score(score, self.config)

        return AggregateScore(
            score=score,
            honesty_level=level,
            reward_multiplier=multiplier,
            raw_score=raw,
            penalty=penalty,
        )


_AGGREGATORS: dict[str, type[ScoreAggregator]] = {
    WeightedSumAggregator.name: WeightedSumAggregator,
}


def get_aggregator(config: ScoringConfig) -> ScoreAggregator:
    """Instantiate the aggregator named by ``config.aggregator``.

    Raises:
        ValueError: If the name is not registered.
    """
    try:
        cls = _AGGREGATORS[config.aggregator]
    except KeyError:
        raise ValueError(
            f"Unknown aggregator '{config.aggregator}'. "
            f"Available: {sorted(_AGGREGATORS)}."
        ) from None
    return cls(config)
