"""
Score output models.

``FeatureVector`` is the fixed-schema set of numeric features extracted from
one user's window.  Its field list is a contract: it is persisted with every
score and is the intended input of any future learned scoring model, so
fields are only ever added, never renamed.  ``scoring.registry`` documents
each field.

``Signal`` wraps one feature as a weighted 0–100 sub-score.

``ScoreResult`` is the complete, immutable output of one computation.  A new
computation always produces a new ``ScoreResult``; stored results are
replaced wholesale, never patched.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from habit_integrity.taxonomy.integrity_taxonomy import HonestyLevel, IntegrityFlag


class FeatureVector(BaseModel):
    """Numeric features for one user window (see ``scoring.registry``)."""

    model_config = ConfigDict(frozen=True)

    avg_amount_ml:              float = 0.0
    std_dev_amount_ml:          float = 0.0
    coefficient_of_variation:   float = 0.0
    weekly_total_ml:            float = 0.0
    logs_per_week:              float = 0.0
    household_size:             int   = 1
    volatility_score:           float = 100.0
    micro_variance_score:       float = 100.0
    flatline_score:             float = 100.0
    sudden_drop_count:          int   = 0
    weekend_weekday_score:      float = 100.0
    moving_avg_deviation_score: float = 100.0
    household_normalized_score: float = 100.0
    scan_contradiction_score:   float = 100.0
    logging_cadence_score:      float = 50.0
    bulk_edit_count:            int   = 0


class Signal(BaseModel):
    """One weighted sub-score contributing to the aggregate.

    Attributes:
        name:        Signal identifier, e.g. ``"flatline"``.
        value:       Sub-score in [0, 100]; higher is more plausible.
        weight:      Weight in (0, 1].
        description: Short human-readable explanation.
        flag:        Integrity flag raised by this signal, if any.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    value: float
    weight: float
    description: str
    flag: Optional[IntegrityFlag] = None

    @field_validator("value")
    @classmethod
    def value_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"Signal value must be in [0, 100], got {v}.")
        return v

    @field_validator("weight")
    @classmethod
    def weight_in_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError(f"Signal weight must be in (0, 1], got {v}.")
        return v


class ScoreResult(BaseModel):
    """Full output of one Habit Stability Score computation.

    Attributes:
        score:             Integer score in [0, 100].
        honesty_level:     Bucket derived from ``score``.
        reward_multiplier: Multiplier for the honesty level.
        feature_vector:    Features the score was computed from.
        signals:           Weighted signals, in builder order.
        flags:             Integrity flags, de-duplicated, in raise order.
        computed_at:       UTC instant of the computation.
        scoring_version:   ``ScoringConfig.version`` used.
    """

    model_config = ConfigDict(frozen=True)

    score: int
    honesty_level: HonestyLevel
    reward_multiplier: float
    feature_vector: FeatureVector
    signals: tuple[Signal, ...]
    flags: tuple[IntegrityFlag, ...] = ()
    computed_at: datetime
    scoring_version: str

    @field_validator("score")
    @classmethod
    def score_in_range(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError(f"score must be in [0, 100], got {v}.")
        return v

    def has_flag(self, flag: IntegrityFlag) -> bool:
        return flag in self.flags

    def content_hash(self) -> str:
        """SHA-256 of everything except ``computed_at``.

        Two computations over identical inputs with the same config yield the
        same hash regardless of when or where they ran.
        """
        payload = self.model_dump(mode="json", exclude={"computed_at"})
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
