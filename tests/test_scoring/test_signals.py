"""
Tests for scoring/signals.py — signal construction and flag collection.

Covers:
  - Nine signals in canonical order, weights taken from config
  - Flag thresholds for each flagging signal
  - Sudden-drop count → signal value mapping
  - collect_flags() ordering, de-duplication and the bulk-edit flag
"""

from __future__ import annotations

import math

import pytest

from habit_integrity.config import ScoringConfig
from habit_integrity.models.score import FeatureVector
from habit_integrity.scoring.signals import (
    build_signals,
    collect_flags,
    sudden_drop_signal_value,
)
from habit_integrity.taxonomy.integrity_taxonomy import IntegrityFlag

CONFIG = ScoringConfig()

EXPECTED_ORDER = [
    "volatility",
    "micro_variance",
    "household_normalized",
    "cross_source_contradiction",
    "logging_cadence",
    "flatline",
    "sudden_drops",
    "weekend_weekday",
    "moving_avg_deviation",
]


def _by_name(signals):
    return {s.name: s for s in signals}


# ── build_signals ─────────────────────────────────────────────────────────────


def test_signal_order_is_fixed() -> None:
    signals = build_signals(FeatureVector(), CONFIG)
    assert [s.name for s in signals] == EXPECTED_ORDER


def test_signal_weights_come_from_config() -> None:
    signals = build_signals(FeatureVector(), CONFIG)
    weights = CONFIG.weights.model_dump()
    for signal in signals:
        assert signal.weight == weights[signal.name]
    assert math.isclose(math.fsum(s.weight for s in signals), 1.0)


def test_clean_features_raise_no_flags() -> None:
    signals = build_signals(FeatureVector(), CONFIG)
    assert all(s.flag is None for s in signals)


@pytest.mark.parametrize(
    "field, signal_name, flag",
    [
        ("micro_variance_score", "micro_variance", IntegrityFlag.REPETITIVE_VALUES),
        ("household_normalized_score", "household_normalized", IntegrityFlag.HOUSEHOLD_MISMATCH),
        ("flatline_score", "flatline", IntegrityFlag.FLATLINE_PATTERN),
    ],
)
def test_flag_raised_strictly_below_30(field: str, signal_name: str, flag: IntegrityFlag) -> None:
    below = _by_name(build_signals(FeatureVector(**{field: 20.0}), CONFIG))
    at = _by_name(build_signals(FeatureVector(**{field: 30.0}), CONFIG))
    assert below[signal_name].flag == flag
    assert at[signal_name].flag is None


def test_barcode_flag_below_40() -> None:
    strong = _by_name(build_signals(FeatureVector(scan_contradiction_score=30.0), CONFIG))
    moderate = _by_name(build_signals(FeatureVector(scan_contradiction_score=50.0), CONFIG))
    assert strong["cross_source_contradiction"].flag == IntegrityFlag.BARCODE_CONTRADICTION
    assert moderate["cross_source_contradiction"].flag is None


@pytest.mark.parametrize("count, value", [(0, 100.0), (1, 70.0), (2, 70.0), (3, 30.0), (9, 30.0)])
def test_sudden_drop_signal_value(count: int, value: float) -> None:
    assert sudden_drop_signal_value(count, CONFIG.sudden_drops) == value


def test_sudden_drops_flag_needs_more_than_two() -> None:
    two = _by_name(build_signals(FeatureVector(sudden_drop_count=2), CONFIG))
    three = _by_name(build_signals(FeatureVector(sudden_drop_count=3), CONFIG))
    assert two["sudden_drops"].flag is None
    assert three["sudden_drops"].flag == IntegrityFlag.SUDDEN_DROPS
    assert three["sudden_drops"].value == 30.0


def test_descriptions_follow_values() -> None:
    flat = _by_name(build_signals(FeatureVector(coefficient_of_variation=2.0, logs_per_week=1.0), CONFIG))
    assert flat["volatility"].description == "Very consistent (possibly suspicious)"
    assert flat["logging_cadence"].description == "Infrequent logging"

    natural = _by_name(build_signals(FeatureVector(coefficient_of_variation=30.0, logs_per_week=7.0), CONFIG))
    assert natural["volatility"].description == "Natural variation"
    assert natural["logging_cadence"].description == "Regular logging pattern"


# ── collect_flags ─────────────────────────────────────────────────────────────


def test_collect_flags_in_signal_order() -> None:
    features = FeatureVector(
        micro_variance_score=20.0,
        household_normalized_score=10.0,
        flatline_score=10.0,
    )
    flags = collect_flags(build_signals(features, CONFIG), features, CONFIG)
    assert flags == (
        IntegrityFlag.REPETITIVE_VALUES,
        IntegrityFlag.HOUSEHOLD_MISMATCH,
        IntegrityFlag.FLATLINE_PATTERN,
    )


def test_collect_flags_bulk_edits_last() -> None:
    features = FeatureVector(flatline_score=10.0, bulk_edit_count=3)
    flags = collect_flags(build_signals(features, CONFIG), features, CONFIG)
    assert flags == (IntegrityFlag.FLATLINE_PATTERN, IntegrityFlag.BULK_EDITS_DETECTED)


def test_collect_flags_bulk_edits_threshold() -> None:
    features = FeatureVector(bulk_edit_count=2)
    assert collect_flags(build_signals(features, CONFIG), features, CONFIG) == ()
