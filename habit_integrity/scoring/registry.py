"""
Feature registry for the Habit Stability Score.

This module documents every field of ``models.score.FeatureVector``.  The
vector is persisted with every score and is the intended input of a future
learned scoring model, so its schema is a contract:

* Order here is the canonical column order for exports and model training.
* Names must match ``FeatureVector`` fields exactly.
* ``IntegrityRepository`` writes vectors through ``feature_row()`` and
  checks them on read with ``validate_feature_row()``.
* Fields are only ever added, never renamed or removed.

Groups
------
summary    Raw statistics of the logged amounts.
cadence    How often the user logs.
context    Values copied from the household context.
pattern    0–100 sub-scores describing the shape of the series.
evidence   Comparison against external corroborating data.
count      Integer event counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from habit_integrity.models.score import FeatureVector


@dataclass(frozen=True)
class FeatureSpec:
    """Specification for a single feature.

    Attributes:
        name: Field name in ``FeatureVector``.
        dtype: ``"float"`` or ``"int"``.
        group: Logical group for filtering and documentation.
        description: Human-readable explanation of what the feature captures.
        is_sub_score: True if the value is a 0–100 plausibility score.
        min_samples: Minimum log entries for the feature to be informative;
            below this it holds its neutral default.
    """

    name: str
    dtype: str
    group: str
    description: str
    is_sub_score: bool = False
    min_samples: int = 0


FEATURE_REGISTRY: list[FeatureSpec] = [

    # ── Summary statistics ─────────────────────────────────────────────────
    FeatureSpec("avg_amount_ml",            "float", "summary",
                "Mean logged amount per entry (ml), rounded to 2 dp."),
    FeatureSpec("std_dev_amount_ml",        "float", "summary",
                "Population standard deviation of logged amounts (ml)."),
    FeatureSpec("coefficient_of_variation", "float", "summary",
                "std / mean * 100; 0 when the mean is 0."),
    FeatureSpec("weekly_total_ml",          "float", "summary",
                "avg_amount_ml * 7."),

    # ── Cadence ────────────────────────────────────────────────────────────
    FeatureSpec("logs_per_week",            "float", "cadence",
                "Entries per week over the scoring window."),

    # ── Context ────────────────────────────────────────────────────────────
    FeatureSpec("household_size",           "int",   "context",
                "Declared household size (defaults to 1)."),

    # ── Pattern sub-scores ─────────────────────────────────────────────────
    FeatureSpec("volatility_score",           "float", "pattern",
                "CV banded: too little and too much variation both score low.",
                is_sub_score=True),
    FeatureSpec("micro_variance_score",       "float", "pattern",
                "Penalises the same exact amount being repeated.",
                is_sub_score=True, min_samples=3),
    FeatureSpec("flatline_score",             "float", "pattern",
                "CV banded over a sustained series; near-zero variation scores low.",
                is_sub_score=True, min_samples=7),
    FeatureSpec("weekend_weekday_score",      "float", "pattern",
                "Difference between weekend and weekday means; uniform or extreme scores low.",
                is_sub_score=True, min_samples=7),
    FeatureSpec("moving_avg_deviation_score", "float", "pattern",
                "Mean deviation from a 7-entry trailing average.",
                is_sub_score=True, min_samples=8),
    FeatureSpec("household_normalized_score", "float", "pattern",
                "Fit of the mean amount to the household's expected range.",
                is_sub_score=True),
    FeatureSpec("logging_cadence_score",      "float", "cadence",
                "Plausibility of logs_per_week.",
                is_sub_score=True),

    # ── Evidence ───────────────────────────────────────────────────────────
    FeatureSpec("scan_contradiction_score",   "float", "evidence",
                "Agreement between logged mean and scan-derived daily average.",
                is_sub_score=True),

    # ── Counts ─────────────────────────────────────────────────────────────
    FeatureSpec("sudden_drop_count",        "int",   "count",
                "Transitions from > 1.5x mean to < 0.2x mean.", min_samples=3),
    FeatureSpec("bulk_edit_count",          "int",   "count",
                "Distinct days with more than 5 entries."),
]


def feature_names(group: Optional[str] = None) -> list[str]:
    """Return feature names in registry order, optionally filtered by group."""
    return [f.name for f in FEATURE_REGISTRY if group is None or f.group == group]


def get_feature_spec(name: str) -> FeatureSpec:
    """Look up one feature by name.

    Raises:
        KeyError: If no feature has that name.
    """
    for spec in FEATURE_REGISTRY:
        if spec.name == name:
            return spec
    raise KeyError(f"Unknown feature '{name}'.")


_REGISTRY_NAMES = frozenset(f.name for f in FEATURE_REGISTRY)


def feature_row(features: FeatureVector) -> dict[str, float | int]:
    """The vector as a plain dict in registry order (persistence and export)."""
    return {spec.name: getattr(features, spec.name) for spec in FEATURE_REGISTRY}


def validate_feature_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Check a stored feature row against the registry.

    Names missing from ``row`` are allowed (rows written before a feature was
    added load with that feature's default).  Unknown names mean a renamed or
    removed feature and are rejected.

    Raises:
        ValueError: If ``row`` carries a name the registry does not know.
    """
    unknown = sorted(set(row) - _REGISTRY_NAMES)
    if unknown:
        raise ValueError(f"Stored feature vector has unregistered features: {unknown}.")
    return dict(row)
