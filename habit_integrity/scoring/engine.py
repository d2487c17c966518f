"""
Habit Stability Score engine: the single entry point both recompute paths call.

    ScoringInputs ─► extract_features ─► build_signals ─► aggregator ─► ScoreResult

Fewer than ``min_logs_for_analysis`` entries short-circuits to the neutral
``insufficient_data_result()`` without running feature extraction.

The engine performs no I/O.  The only non-input value in a ``ScoreResult``
is ``computed_at``, which callers may pin; ``ScoreResult.content_hash()``
excludes it, so equal inputs always produce equal hashes.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from habit_integrity.config import ScoringConfig
from habit_integrity.models.inputs import ScoringInputs
from habit_integrity.models.score import FeatureVector, ScoreResult, Signal
from habit_integrity.scoring.aggregator import ScoreAggregator, get_aggregator
from habit_integrity.scoring.features import extract_features
from habit_integrity.scoring.signals import build_signals, collect_flags
from habit_integrity.taxonomy.integrity_taxonomy import HonestyLevel, IntegrityFlag
from habit_integrity.utils.time_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_SCORE = 50


def insufficient_data_result(
    inputs: ScoringInputs,
    config: ScoringConfig,
    computed_at: datetime,
) -> ScoreResult:
    """Neutral result for users without enough history to judge."""
    return ScoreResult(
        score=INSUFFICIENT_DATA_SCORE,
        honesty_level=HonestyLevel.MEDIUM,
        reward_multiplier=config.multipliers.medium,
        feature_vector=FeatureVector(household_size=inputs.household.size),
        signals=(
            Signal(
                name="insufficient_data",
                value=float(len(inputs.daily_logs)),
                weight=1.0,
                description="Not enough logs for analysis",
                flag=IntegrityFlag.INSUFFICIENT_DATA,
            ),
        ),
        flags=(IntegrityFlag.INSUFFICIENT_DATA,),
        computed_at=computed_at,
        scoring_version=config.version,
    )


def compute_score(
    inputs: ScoringInputs,
    config: Optional[ScoringConfig] = None,
    aggregator: Optional[ScoreAggregator] = None,
    computed_at: Optional[datetime] = None,
) -> ScoreResult:
    """Compute the Habit Stability Score for one user's window.

    Args:
        inputs: Validated scoring inputs (see ``ScoringInputs.build``).
        config: Scoring thresholds; defaults to ``ScoringConfig()``.
        aggregator: Aggregation strategy; defaults to ``get_aggregator(config)``.
        computed_at: Timestamp to stamp on the result; defaults to now (UTC).

    Returns:
        A new, frozen ``ScoreResult``.
    """
    config = config or ScoringConfig()
    computed_at = ensure_utc(computed_at) if computed_at is not None else utcnow()

    if len(inputs.daily_logs) < config.min_logs_for_analysis:
        logger.debug(
            "Insufficient data | logs=%d < %d",
            len(inputs.daily_logs), config.min_logs_for_analysis,
        )
        return insufficient_data_result(inputs, config, computed_at)

    aggregator = aggregator or get_aggregator(config)

    features = extract_features(inputs, config)
    signals = build_signals(features, config)
    flags = collect_flags(signals, features, config)
    aggregate = aggregator.aggregate(features, signals)

    logger.debug(
        "Scored | score=%d | level=%s | raw=%.3f | penalty=%.1f | flags=%s",
        aggregate.score, aggregate.honesty_level, aggregate.raw_score,
        aggregate.penalty, ",".join(flags) or "-",
    )

    return ScoreResult(
        score=aggregate.score,
        honesty_level=aggregate.honesty_level,
        reward_multiplier=aggregate.reward_multiplier,
        feature_vector=features,
        signals=tuple(signals),
        flags=flags,
        computed_at=computed_at,
        scoring_version=config.version,
    )


def score_payload(
    payload: Mapping[str, Any],
    config: Optional[ScoringConfig] = None,
    computed_at: Optional[datetime] = None,
) -> ScoreResult:
    """Validate a raw fetch payload and score it.

    Raises:
        InputValidationError: If the payload is malformed.
    """
    config = config or ScoringConfig()
    inputs = ScoringInputs.from_raw(payload, window_days=config.window_days)
    return compute_score(inputs, config, computed_at=computed_at)
