"""Pure Habit Stability Score pipeline shared by the interactive and batch paths."""

from habit_integrity.scoring.aggregator import (
    AggregateScore,
    ScoreAggregator,
    WeightedSumAggregator,
    classify_score,
    get_aggregator,
)
from habit_integrity.scoring.engine import compute_score, score_payload
from habit_integrity.scoring.features import extract_features
from habit_integrity.scoring.signals import build_signals, collect_flags

__all__ = [
    "AggregateScore",
    "ScoreAggregator",
    "WeightedSumAggregator",
    "build_signals",
    "classify_score",
    "collect_flags",
    "compute_score",
    "extract_features",
    "get_aggregator",
    "score_payload",
]
