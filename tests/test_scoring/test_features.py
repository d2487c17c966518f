"""
Tests for scoring/features.py — individual sub-scores and extract_features().

Covers:
  - CV band mapping shared by volatility and flatline
  - Micro-variance repetition bands and unique-ratio scaling
  - Flatline and weekend/weekday minimum-sample rules
  - Sudden-drop counting
  - Moving-average deviation bands
  - Household fit inside, below and above the expected range
  - Cross-source contradiction against scan-derived daily average
  - Logging cadence bands and bulk-edit day counting
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from habit_integrity.config import ScoringConfig
from habit_integrity.models.inputs import DailyLogEntry, ExternalScan
from habit_integrity.scoring.features import (
    count_bulk_edits,
    count_sudden_drops,
    cv_band_score,
    extract_features,
    flatline_score,
    household_normalized_score,
    logging_cadence_score,
    logs_per_week,
    micro_variance_score,
    moving_avg_deviation_score,
    scan_contradiction_score,
    volatility_score,
    weekend_weekday_score,
)

CONFIG = ScoringConfig()
BANDS = CONFIG.cv_bands
RANGES = CONFIG.household


def _scans(*amounts: float) -> list[ExternalScan]:
    at = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
    return [ExternalScan(scanned_at=at, declared_amount_ml=a, label="x") for a in amounts]


# ── CV bands / volatility / flatline ──────────────────────────────────────────


@pytest.mark.parametrize(
    "cv, expected",
    [
        (0.0, 10.0),
        (4.99, 10.0),
        (5.0, 30.0),
        (9.99, 30.0),
        (10.0, 60.0),
        (14.99, 60.0),
        (15.0, 100.0),
        (150.0, 100.0),
        (150.01, 50.0),
    ],
)
def test_cv_band_score(cv: float, expected: float) -> None:
    assert cv_band_score(cv, BANDS) == expected


def test_volatility_identical_values_scores_lowest_band() -> None:
    assert volatility_score([20.0] * 10, BANDS) == 10.0


def test_volatility_all_zero_amounts() -> None:
    """Mean 0 gives CV 0 instead of dividing by zero."""
    assert volatility_score([0.0] * 10, BANDS) == 10.0


def test_flatline_requires_seven_samples() -> None:
    assert flatline_score([20.0] * 6, BANDS, CONFIG.flatline) == 100.0
    assert flatline_score([20.0] * 7, BANDS, CONFIG.flatline) == 10.0


# ── Micro-variance ────────────────────────────────────────────────────────────


def test_micro_variance_too_few_samples() -> None:
    assert micro_variance_score([5.0, 5.0], CONFIG.micro_variance) == 100.0


def test_micro_variance_dominant_value_over_70_percent() -> None:
    assert micro_variance_score([10.0, 10.0, 10.0, 10.0, 20.0], CONFIG.micro_variance) == 20.0


def test_micro_variance_all_identical_scores_20() -> None:
    assert micro_variance_score([42.0] * 30, CONFIG.micro_variance) == 20.0


def test_micro_variance_dominant_value_over_50_percent() -> None:
    assert micro_variance_score([10.0, 10.0, 10.0, 20.0, 30.0], CONFIG.micro_variance) == 50.0


def test_micro_variance_low_unique_ratio() -> None:
    """Two values, five each: repeat ratio exactly 50%, unique ratio 20%."""
    assert micro_variance_score([1.0] * 5 + [2.0] * 5, CONFIG.micro_variance) == 40.0


def test_micro_variance_scaled_by_unique_ratio() -> None:
    assert micro_variance_score([1.0, 1.0, 2.0, 3.0], CONFIG.micro_variance) == pytest.approx(95.0)


def test_micro_variance_all_unique_clamped_to_100() -> None:
    assert micro_variance_score([float(v) for v in range(1, 11)], CONFIG.micro_variance) == 100.0


# ── Sudden drops ──────────────────────────────────────────────────────────────


def test_sudden_drops_alternating_sequence() -> None:
    assert count_sudden_drops([100.0, 0.0] * 4, CONFIG.sudden_drops) == 4


def test_sudden_drops_needs_three_samples() -> None:
    assert count_sudden_drops([100.0, 0.0], CONFIG.sudden_drops) == 0


def test_sudden_drops_none_in_steady_series() -> None:
    assert count_sudden_drops([20.0, 22.0, 19.0, 21.0, 20.0], CONFIG.sudden_drops) == 0


# ── Weekend / weekday ─────────────────────────────────────────────────────────


def _week(weekend_amount: float, weekday_amount: float) -> list[DailyLogEntry]:
    """2024-06-01 (Sat) through 2024-06-07 (Fri)."""
    start = date(2024, 6, 1)
    entries = []
    for i in range(7):
        day = start + timedelta(days=i)
        amount = weekend_amount if day.weekday() >= 5 else weekday_amount
        entries.append(DailyLogEntry(log_date=day, amount_ml=amount))
    return entries


@pytest.mark.parametrize(
    "weekend, weekday, expected",
    [
        (20.0, 20.0, 70.0),    # no difference
        (30.0, 25.0, 100.0),   # ~18% difference
        (40.0, 25.0, 90.0),    # ~46% difference
        (100.0, 10.0, 60.0),   # extreme difference
        (0.0, 0.0, 100.0),     # nothing logged at all
    ],
)
def test_weekend_weekday_bands(weekend: float, weekday: float, expected: float) -> None:
    assert weekend_weekday_score(_week(weekend, weekday), CONFIG.weekend) == expected


def test_weekend_weekday_requires_seven_samples() -> None:
    assert weekend_weekday_score(_week(100.0, 10.0)[:6], CONFIG.weekend) == 100.0


def test_weekend_weekday_requires_both_sides() -> None:
    start = date(2024, 6, 3)  # Monday
    weekdays_only = [
        DailyLogEntry(log_date=start + timedelta(days=d), amount_ml=20.0)
        for d in (0, 1, 2, 3, 4, 7, 8)
    ]
    assert weekend_weekday_score(weekdays_only, CONFIG.weekend) == 100.0


# ── Moving-average deviation ──────────────────────────────────────────────────


def test_moving_avg_no_deviation_computable() -> None:
    assert moving_avg_deviation_score([20.0] * 7, CONFIG.moving_average) == 100.0


def test_moving_avg_too_consistent() -> None:
    assert moving_avg_deviation_score([20.0] * 10, CONFIG.moving_average) == 50.0


def test_moving_avg_slight_deviation() -> None:
    assert moving_avg_deviation_score([100.0] * 7 + [107.0], CONFIG.moving_average) == 70.0


def test_moving_avg_erratic() -> None:
    assert moving_avg_deviation_score([10.0] * 7 + [100.0], CONFIG.moving_average) == 60.0


def test_moving_avg_natural_deviation() -> None:
    assert moving_avg_deviation_score([10.0, 20.0] * 5, CONFIG.moving_average) == 100.0


def test_moving_avg_zero_window_counts_as_no_deviation() -> None:
    assert moving_avg_deviation_score([0.0] * 7 + [5.0], CONFIG.moving_average) == 50.0


# ── Household fit ─────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "avg, size, expected",
    [
        (20.0, 1, 100.0),   # ideal
        (5.0, 1, 77.5),     # range minimum
        (40.0, 1, 70.0),    # range maximum
        (80.0, 4, 100.0),   # ideal scaled by household
        (2.0, 4, 10.0),     # far below (ratio 0.1)
        (2.0, 1, 30.0),     # ratio 0.4
        (3.0, 1, 50.0),     # ratio 0.6
        (50.0, 1, 80.0),    # slightly above
        (100.0, 1, 60.0),   # far above
    ],
)
def test_household_normalized_score(avg: float, size: int, expected: float) -> None:
    assert household_normalized_score(avg, size, RANGES) == pytest.approx(expected)


# ── Cross-source contradiction ────────────────────────────────────────────────


def test_contradiction_no_scans() -> None:
    assert scan_contradiction_score(2.0, [], 30, CONFIG.contradiction) == 100.0


def test_contradiction_strong() -> None:
    """Scan average 40 ml/day against a logged mean of 10."""
    assert scan_contradiction_score(10.0, _scans(600.0, 600.0), 30, CONFIG.contradiction) == 30.0


def test_contradiction_moderate() -> None:
    """Scan average 25 ml/day against a logged mean of 10."""
    assert scan_contradiction_score(10.0, _scans(750.0), 30, CONFIG.contradiction) == 50.0


def test_contradiction_consistent() -> None:
    assert scan_contradiction_score(20.0, _scans(900.0), 30, CONFIG.contradiction) == 100.0


def test_contradiction_uses_window_length() -> None:
    """900 ml over 14 days is ~64 ml/day; over 30 days it is 30 ml/day."""
    assert scan_contradiction_score(10.0, _scans(900.0), 14, CONFIG.contradiction) == 30.0
    assert scan_contradiction_score(10.0, _scans(900.0), 30, CONFIG.contradiction) == 50.0


# ── Cadence and bulk edits ────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "entries, expected",
    [(30, 100.0), (5, 60.0), (15, 80.0), (70, 70.0), (100, 50.0)],
)
def test_logging_cadence(entries: int, expected: float) -> None:
    assert logging_cadence_score(logs_per_week(entries, 30), CONFIG.cadence) == expected


def test_bulk_edits_counts_days_over_five_entries() -> None:
    day = date(2024, 6, 1)
    six = [DailyLogEntry(log_date=day, amount_ml=10.0)] * 6
    five = [DailyLogEntry(log_date=day + timedelta(days=1), amount_ml=10.0)] * 5
    assert count_bulk_edits(six + five, CONFIG.bulk_edit.max_entries_per_day) == 1
    assert count_bulk_edits(five, CONFIG.bulk_edit.max_entries_per_day) == 0


# ── extract_features ──────────────────────────────────────────────────────────


def test_extract_features_flat_series(make_inputs) -> None:
    features = extract_features(make_inputs([20.0] * 30), ScoringConfig())

    assert features.avg_amount_ml == 20.0
    assert features.std_dev_amount_ml == 0.0
    assert features.coefficient_of_variation == 0.0
    assert features.weekly_total_ml == 140.0
    assert features.logs_per_week == 7.0
    assert features.household_size == 1
    assert features.flatline_score == 10.0
    assert features.micro_variance_score == 20.0
    assert features.household_normalized_score == 100.0
    assert features.logging_cadence_score == 100.0
    assert features.sudden_drop_count == 0
    assert features.bulk_edit_count == 0


def test_extract_features_sub_scores_in_range(make_inputs) -> None:
    inputs = make_inputs([0.0, 500.0, 1.0, 0.0, 900.0, 3.0, 0.0, 250.0], household_size=6)
    features = extract_features(inputs, ScoringConfig())
    for name in (
        "volatility_score", "micro_variance_score", "flatline_score",
        "weekend_weekday_score", "moving_avg_deviation_score",
        "household_normalized_score", "scan_contradiction_score",
        "logging_cadence_score",
    ):
        assert 0.0 <= getattr(features, name) <= 100.0, name


def test_extract_features_reads_bands_from_config(make_inputs) -> None:
    """Every sub-score threshold comes from ScoringConfig, not module constants."""
    config = ScoringConfig.model_validate({
        "flatline": {"min_samples": 40},
        "micro_variance": {"dominant_high_score": 35.0},
        "cadence": {"regular_min": 8.0, "regular_max": 14.0, "busy_score": 70.0},
    })
    features = extract_features(make_inputs([20.0] * 30), config)

    assert features.flatline_score == 100.0
    assert features.micro_variance_score == 35.0
    # 7 entries/week now falls below regular_min and above sparse_below.
    assert features.logging_cadence_score == 80.0


def test_sudden_drop_factors_from_config() -> None:
    strict = CONFIG.sudden_drops.model_copy(update={"high_factor": 3.0})
    assert count_sudden_drops([100.0, 0.0] * 4, strict) == 0
