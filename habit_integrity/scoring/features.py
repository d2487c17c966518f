"""
Feature extraction for the Habit Stability Score.

Each ``*_score`` function turns the logged series (plus household / scan
context) into one 0–100 plausibility sub-score: higher means the pattern
looks like real, organic logging.  ``extract_features()`` runs all of them
and returns a ``FeatureVector``.

Sub-score bands (defaults; every number below lives in ``ScoringConfig``)
-------------------------------------------------------------------------
volatility / flatline (CV in percent, shared ``CVBandsConfig``):
    CV < 5 → 10,  < 10 → 30,  < 15 → 60,  > 150 → 50,  else 100.
    Flatline additionally needs ≥ 7 samples (else 100).

micro_variance:
    < 3 samples → 100.  Most frequent value share > 70% → 20, > 50% → 50.
    Unique ratio < 30% → 40.  Else min(100, unique_ratio * 100 + 20).

weekend_weekday (diff between weekend and weekday means, % of their average):
    < 7 samples or one side empty → 100.
    < 5% → 70,  < 30% → 100,  > 80% → 60,  else 90.

moving_avg_deviation (mean |x - trailing 7-entry mean| in %):
    < 5% → 50,  < 10% → 70,  > 80% → 60,  else 100.

household_normalized (per-person range scaled by household size):
    In range → 100 - distance_from_ideal / max_distance * 30  (70..100).
    Below: ratio to min < 0.3 → 10, < 0.5 → 30, else 50.
    Above: ratio to max > 2 → 60, else 80.

scan_contradiction (scan daily average = total declared / window_days):
    No scans → 100.  Logged mean < 15 and scan avg > 30 → 30.
    Logged mean < 0.5 * scan avg and scan avg > 20 → 50.  Else 100.

logging_cadence (entries per week):
    5..14 → 100,  < 2 → 60,  < 5 → 80,  > 21 → 50,  else 70.

All functions here are pure: no I/O, no clock, no randomness.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import date
from typing import Sequence

from habit_integrity.config import (
    CadenceConfig,
    CVBandsConfig,
    FlatlineConfig,
    HouseholdRangeConfig,
    MicroVarianceConfig,
    MovingAverageConfig,
    ScanContradictionConfig,
    ScoringConfig,
    SuddenDropConfig,
    WeekendConfig,
)
from habit_integrity.models.inputs import DailyLogEntry, ExternalScan, ScoringInputs
from habit_integrity.models.score import FeatureVector
from habit_integrity.scoring.stats import (
    clamp,
    coefficient_of_variation,
    mean,
    pstdev,
    round_half_up,
)
from habit_integrity.utils.time_utils import is_weekend

logger = logging.getLogger(__name__)


# ── Variation ─────────────────────────────────────────────────────────────────


def cv_band_score(cv: float, bands: CVBandsConfig) -> float:
    """Map a CV (percent) to a sub-score using the shared breakpoints."""
    if cv < bands.very_low_cv:
        return bands.very_low_score
    if cv < bands.low_cv:
        return bands.low_score
    if cv < bands.modest_cv:
        return bands.modest_score
    if cv > bands.erratic_cv:
        return bands.erratic_score
    return 100.0


def volatility_score(values: Sequence[float], bands: CVBandsConfig) -> float:
    """Overall dispersion of the series, banded by CV."""
    return clamp(cv_band_score(coefficient_of_variation(values), bands))


def flatline_score(
    values: Sequence[float],
    bands: CVBandsConfig,
    cfg: FlatlineConfig,
) -> float:
    """Sustained near-zero variation; needs at least a week of samples."""
    if len(values) < cfg.min_samples:
        return 100.0
    return clamp(cv_band_score(coefficient_of_variation(values), bands))


def micro_variance_score(values: Sequence[float], cfg: MicroVarianceConfig) -> float:
    """Penalise the same exact amount being logged repeatedly."""
    n = len(values)
    if n < cfg.min_samples:
        return 100.0

    counts = Counter(values)
    repeat_ratio = max(counts.values()) / n
    unique_ratio = len(counts) / n

    if repeat_ratio > cfg.dominant_share_high:
        return cfg.dominant_high_score
    if repeat_ratio > cfg.dominant_share_mid:
        return cfg.dominant_mid_score
    if unique_ratio < cfg.min_unique_ratio:
        return cfg.low_unique_score
    return clamp(unique_ratio * 100.0 + cfg.unique_ratio_bonus)


# ── Temporal shape ────────────────────────────────────────────────────────────


def count_sudden_drops(values: Sequence[float], cfg: SuddenDropConfig) -> int:
    """Count transitions from well above the mean to almost nothing."""
    if len(values) < cfg.min_samples:
        return 0
    avg = mean(values)
    high = avg * cfg.high_factor
    low = avg * cfg.low_factor
    return sum(1 for prev, curr in zip(values, values[1:]) if prev > high and curr < low)


def weekend_weekday_score(logs: Sequence[DailyLogEntry], cfg: WeekendConfig) -> float:
    """Compare weekend and weekday means.

    Some difference is natural; none at all is mildly suspicious and a very
    large one is suspicious.
    """
    if len(logs) < cfg.min_samples:
        return 100.0

    weekend = [e.amount_ml for e in logs if is_weekend(e.log_date)]
    weekday = [e.amount_ml for e in logs if not is_weekend(e.log_date)]
    if not weekend or not weekday:
        return 100.0

    weekend_avg = mean(weekend)
    weekday_avg = mean(weekday)
    avg_total = (weekend_avg + weekday_avg) / 2.0
    if avg_total == 0.0:
        return 100.0

    diff_pct = abs(weekend_avg - weekday_avg) / avg_total * 100.0
    if diff_pct < cfg.flat_pct:
        return cfg.flat_score
    if diff_pct < cfg.natural_pct:
        return 100.0
    if diff_pct > cfg.extreme_pct:
        return cfg.extreme_score
    return cfg.moderate_score


def moving_avg_deviation_score(values: Sequence[float], cfg: MovingAverageConfig) -> float:
    """Mean percentage deviation of each entry from its trailing-window mean."""
    window = cfg.window
    if len(values) < window:
        return 100.0

    deviations: list[float] = []
    for i in range(window, len(values)):
        window_avg = mean(values[i - window:i])
        if window_avg > 0.0:
            deviations.append(abs(values[i] - window_avg) / window_avg * 100.0)
        else:
            deviations.append(0.0)

    if not deviations:
        return 100.0

    avg_deviation = mean(deviations)
    if avg_deviation < cfg.too_consistent_pct:
        return cfg.too_consistent_score
    if avg_deviation < cfg.consistent_pct:
        return cfg.consistent_score
    if avg_deviation > cfg.erratic_pct:
        return cfg.erratic_score
    return 100.0


# ── Context and evidence ──────────────────────────────────────────────────────


def household_normalized_score(
    avg_amount: float,
    household_size: int,
    ranges: HouseholdRangeConfig,
) -> float:
    """Fit of the mean logged amount to the household's expected range."""
    expected_min = ranges.min_per_person * household_size
    expected_max = ranges.max_per_person * household_size
    expected_ideal = ranges.ideal_per_person * household_size

    if expected_min <= avg_amount <= expected_max:
        distance = abs(avg_amount - expected_ideal)
        max_distance = max(expected_ideal - expected_min, expected_max - expected_ideal)
        return clamp(100.0 - distance / max_distance * ranges.in_range_spread)

    if avg_amount < expected_min:
        ratio = avg_amount / expected_min
        if ratio < ranges.far_below_ratio:
            return ranges.far_below_score
        if ratio < ranges.below_ratio:
            return ranges.below_score
        return ranges.near_below_score

    # Above the range is less suspicious: heavy cooking is plausible.
    if avg_amount / expected_max > ranges.far_above_ratio:
        return ranges.far_above_score
    return ranges.near_above_score


def scan_daily_average(scans: Sequence[ExternalScan], window_days: int) -> float:
    """Total scan-declared amount spread evenly over the window."""
    return math.fsum(s.declared_amount_ml for s in scans) / window_days


def scan_contradiction_score(
    avg_logged: float,
    scans: Sequence[ExternalScan],
    window_days: int,
    cfg: ScanContradictionConfig,
) -> float:
    """Compare the logged mean with what external scans imply."""
    if not scans:
        return 100.0

    scan_avg = scan_daily_average(scans, window_days)
    if avg_logged < cfg.strong_logged_below and scan_avg > cfg.strong_scan_above:
        return cfg.strong_score
    # Some shortfall is normal: not everything consumed gets scanned.
    if avg_logged < scan_avg * cfg.shortfall_ratio and scan_avg > cfg.shortfall_scan_above:
        return cfg.shortfall_score
    return 100.0


# ── Cadence ───────────────────────────────────────────────────────────────────


def logs_per_week(entry_count: int, window_days: int) -> float:
    return entry_count / window_days * 7.0


def logging_cadence_score(per_week: float, cfg: CadenceConfig) -> float:
    """Plausibility of the logging frequency."""
    if cfg.regular_min <= per_week <= cfg.regular_max:
        return 100.0
    if per_week < cfg.sparse_below:
        return cfg.sparse_score
    if per_week < cfg.regular_min:
        return cfg.light_score
    if per_week > cfg.excessive_above:
        return cfg.excessive_score   # possible bulk fabrication
    return cfg.busy_score


def count_bulk_edits(logs: Sequence[DailyLogEntry], max_entries_per_day: int) -> int:
    """Number of distinct days with more than ``max_entries_per_day`` entries."""
    per_day: Counter[date] = Counter(e.log_date for e in logs)
    return sum(1 for count in per_day.values() if count > max_entries_per_day)


# ── Public API ────────────────────────────────────────────────────────────────


def extract_features(inputs: ScoringInputs, config: ScoringConfig) -> FeatureVector:
    """Compute the full feature vector for one user's window.

    Callers must have handled the insufficient-data case already; this
    function assumes at least ``config.min_logs_for_analysis`` entries.

    Args:
        inputs: Validated scoring inputs.
        config: Scoring thresholds.

    Returns:
        A frozen ``FeatureVector``.
    """
    values = inputs.amounts
    avg = mean(values)
    cv = coefficient_of_variation(values)
    per_week = logs_per_week(len(inputs.daily_logs), inputs.window_days)

    features = FeatureVector(
        avg_amount_ml=round_half_up(avg, 2),
        std_dev_amount_ml=round_half_up(pstdev(values), 2),
        coefficient_of_variation=round_half_up(cv, 2),
        weekly_total_ml=round_half_up(avg * 7.0, 2),
        logs_per_week=round_half_up(per_week, 2),
        household_size=inputs.household.size,
        volatility_score=volatility_score(values, config.cv_bands),
        micro_variance_score=micro_variance_score(values, config.micro_variance),
        flatline_score=flatline_score(values, config.cv_bands, config.flatline),
        sudden_drop_count=count_sudden_drops(values, config.sudden_drops),
        weekend_weekday_score=weekend_weekday_score(inputs.daily_logs, config.weekend),
        moving_avg_deviation_score=moving_avg_deviation_score(values, config.moving_average),
        household_normalized_score=household_normalized_score(
            avg, inputs.household.size, config.household
        ),
        scan_contradiction_score=scan_contradiction_score(
            avg, inputs.scans, inputs.window_days, config.contradiction
        ),
        logging_cadence_score=logging_cadence_score(per_week, config.cadence),
        bulk_edit_count=count_bulk_edits(
            inputs.daily_logs, config.bulk_edit.max_entries_per_day
        ),
    )
    logger.debug(
        "Extracted features | n=%d | cv=%.2f | avg=%.2f",
        len(values), features.coefficient_of_variation, features.avg_amount_ml,
    )
    return features
