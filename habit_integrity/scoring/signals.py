"""
Signal builder: wraps feature sub-scores as weighted ``Signal`` records.

The signal list is in fixed order and every signal draws its weight from
``ScoringConfig.weights``.  A signal carries a flag when its value crosses
the danger threshold in ``ScoringConfig.flags``.

Bulk-edit days are not a weighted signal; they feed the aggregator's flat
penalty and raise ``BULK_EDITS_DETECTED`` through ``collect_flags()``.
"""

from __future__ import annotations

from typing import Optional, Sequence

from habit_integrity.config import ScoringConfig, SuddenDropConfig
from habit_integrity.models.score import FeatureVector, Signal
from habit_integrity.taxonomy.integrity_taxonomy import IntegrityFlag


def sudden_drop_signal_value(drop_count: int, cfg: SuddenDropConfig) -> float:
    """Map a sudden-drop count to a 0–100 value (defaults: >2 → 30, 1–2 → 70, 0 → 100)."""
    if drop_count > cfg.many_drops:
        return cfg.many_drops_value
    if drop_count > 0:
        return cfg.some_drops_value
    return 100.0


def _flag_below(value: float, threshold: float, flag: IntegrityFlag) -> Optional[IntegrityFlag]:
    return flag if value < threshold else None


# ── Descriptions ──────────────────────────────────────────────────────────────


def _volatility_description(cv: float) -> str:
    if cv < 15.0:
        return "Very consistent (possibly suspicious)"
    if cv > 80.0:
        return "High variation"
    return "Natural variation"


def _cadence_description(per_week: float) -> str:
    if per_week < 3.0:
        return "Infrequent logging"
    if per_week > 20.0:
        return "Excessive logging"
    return "Regular logging pattern"


# ── Public API ────────────────────────────────────────────────────────────────


def build_signals(features: FeatureVector, config: ScoringConfig) -> list[Signal]:
    """Build the nine weighted signals for one feature vector.

    Args:
        features: Output of ``extract_features()``.
        config: Scoring config providing weights and flag thresholds.

    Returns:
        Signals in canonical order: volatility, micro_variance,
        household_normalized, cross_source_contradiction, logging_cadence,
        flatline, sudden_drops, weekend_weekday, moving_avg_deviation.
    """
    w = config.weights
    t = config.flags
    f = features

    drop_value = sudden_drop_signal_value(f.sudden_drop_count, config.sudden_drops)

    return [
        Signal(
            name="volatility",
            value=f.volatility_score,
            weight=w.volatility,
            description=_volatility_description(f.coefficient_of_variation),
        ),
        Signal(
            name="micro_variance",
            value=f.micro_variance_score,
            weight=w.micro_variance,
            description=(
                "Same values logged repeatedly"
                if f.micro_variance_score < 50.0
                else "Good value diversity"
            ),
            flag=_flag_below(
                f.micro_variance_score, t.repetitive_values, IntegrityFlag.REPETITIVE_VALUES
            ),
        ),
        Signal(
            name="household_normalized",
            value=f.household_normalized_score,
            weight=w.household_normalized,
            description=(
                "Usage does not match household size"
                if f.household_normalized_score < 50.0
                else "Usage matches household size"
            ),
            flag=_flag_below(
                f.household_normalized_score, t.household_mismatch,
                IntegrityFlag.HOUSEHOLD_MISMATCH,
            ),
        ),
        Signal(
            name="cross_source_contradiction",
            value=f.scan_contradiction_score,
            weight=w.cross_source_contradiction,
            description=(
                "Logged amounts contradict scanned products"
                if f.scan_contradiction_score < 50.0
                else "Consistent with scanned products"
            ),
            flag=_flag_below(
                f.scan_contradiction_score, t.barcode_contradiction,
                IntegrityFlag.BARCODE_CONTRADICTION,
            ),
        ),
        Signal(
            name="logging_cadence",
            value=f.logging_cadence_score,
            weight=w.logging_cadence,
            description=_cadence_description(f.logs_per_week),
        ),
        Signal(
            name="flatline",
            value=f.flatline_score,
            weight=w.flatline,
            description=(
                "Unnaturally consistent values"
                if f.flatline_score < 40.0
                else "Natural variation over time"
            ),
            flag=_flag_below(f.flatline_score, t.flatline_pattern, IntegrityFlag.FLATLINE_PATTERN),
        ),
        Signal(
            name="sudden_drops",
            value=drop_value,
            weight=w.sudden_drops,
            description=(
                "Multiple sudden drops detected"
                if f.sudden_drop_count > config.sudden_drops.many_drops
                else "No suspicious drops"
            ),
            flag=(
                IntegrityFlag.SUDDEN_DROPS
                if f.sudden_drop_count >= t.sudden_drops_count
                else None
            ),
        ),
        Signal(
            name="weekend_weekday",
            value=f.weekend_weekday_score,
            weight=w.weekend_weekday,
            description="Weekend vs weekday usage pattern",
        ),
        Signal(
            name="moving_avg_deviation",
            value=f.moving_avg_deviation_score,
            weight=w.moving_avg_deviation,
            description="Deviation from rolling average",
        ),
    ]


def collect_flags(
    signals: Sequence[Signal],
    features: FeatureVector,
    config: ScoringConfig,
) -> tuple[IntegrityFlag, ...]:
    """Flags in raise order (signal order), de-duplicated, bulk edits last."""
    flags: list[IntegrityFlag] = []
    for signal in signals:
        if signal.flag is not None and signal.flag not in flags:
            flags.append(signal.flag)
    if features.bulk_edit_count >= config.bulk_edit.flag_min_days:
        flags.append(IntegrityFlag.BULK_EDITS_DETECTED)
    return tuple(flags)
