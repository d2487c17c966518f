"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``HABIT_INTEGRITY_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

``ScoringConfig`` is the single versioned home of every threshold the Habit
Stability Score, its level and its flags depend on (CV bands, per-feature
bands and sample minimums, weight table, per-person ranges, level cut-offs,
multipliers).  The interactive and batch recompute paths both read
it from here; no scoring threshold is duplicated anywhere else.
"""

from __future__ import annotations

import math
import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/habit_integrity.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/habit_integrity.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class SignalWeightsConfig(BaseModel):
    """Weight of each signal in the weighted-sum aggregate.

    Weights must be positive, at most 1.0, and sum to 1.0.
    """

    model_config = ConfigDict(frozen=True)

    volatility:                 float = 0.15
    micro_variance:             float = 0.12
    household_normalized:       float = 0.18
    cross_source_contradiction: float = 0.12
    logging_cadence:            float = 0.10
    flatline:                   float = 0.10
    sudden_drops:               float = 0.08
    weekend_weekday:            float = 0.08
    moving_avg_deviation:       float = 0.07

    @model_validator(mode="after")
    def weights_form_distribution(self) -> "SignalWeightsConfig":
        weights = self.model_dump()
        for name, w in weights.items():
            if not 0.0 < w <= 1.0:
                raise ValueError(f"Weight '{name}' must be in (0, 1], got {w}.")
        total = math.fsum(weights.values())
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Signal weights must sum to 1.0, got {total:.6f}.")
        return self


class CVBandsConfig(BaseModel):
    """Coefficient-of-variation breakpoints shared by volatility and flatline.

    CV is expressed in percent.  Bands are checked in order: below
    ``very_low_cv`` scores ``very_low_score``, and so on; above
    ``erratic_cv`` scores ``erratic_score``; everything else is 100.
    """

    model_config = ConfigDict(frozen=True)

    very_low_cv:    float = 5.0
    very_low_score: float = 10.0
    low_cv:         float = 10.0
    low_score:      float = 30.0
    modest_cv:      float = 15.0
    modest_score:   float = 60.0
    erratic_cv:     float = 150.0
    erratic_score:  float = 50.0

    @model_validator(mode="after")
    def breakpoints_increasing(self) -> "CVBandsConfig":
        if not self.very_low_cv < self.low_cv < self.modest_cv < self.erratic_cv:
            raise ValueError("CV breakpoints must be strictly increasing.")
        return self


class MicroVarianceConfig(BaseModel):
    """Repeated-value detection.

    ``dominant_share_*`` is the share of entries taken by the most frequent
    value; ``min_unique_ratio`` is distinct values over entries.
    """

    model_config = ConfigDict(frozen=True)

    min_samples:          int   = 3
    dominant_share_high:  float = 0.7
    dominant_high_score:  float = 20.0
    dominant_share_mid:   float = 0.5
    dominant_mid_score:   float = 50.0
    min_unique_ratio:     float = 0.3
    low_unique_score:     float = 40.0
    unique_ratio_bonus:   float = 20.0


class FlatlineConfig(BaseModel):
    """Flatline detection reuses ``cv_bands`` once enough samples exist."""

    model_config = ConfigDict(frozen=True)

    min_samples: int = 7


class SuddenDropConfig(BaseModel):
    """A drop is an entry above ``high_factor * mean`` followed by one below
    ``low_factor * mean``."""

    model_config = ConfigDict(frozen=True)

    min_samples:      int   = 3
    high_factor:      float = 1.5
    low_factor:       float = 0.2
    many_drops:       int   = 2      # more than this → many_drops_value
    many_drops_value: float = 30.0
    some_drops_value: float = 70.0


class WeekendConfig(BaseModel):
    """Weekend vs weekday mean difference, in percent of their average."""

    model_config = ConfigDict(frozen=True)

    min_samples:     int   = 7
    flat_pct:        float = 5.0
    flat_score:      float = 70.0
    natural_pct:     float = 30.0
    extreme_pct:     float = 80.0
    extreme_score:   float = 60.0
    moderate_score:  float = 90.0


class MovingAverageConfig(BaseModel):
    """Deviation of each entry from its trailing ``window``-entry mean."""

    model_config = ConfigDict(frozen=True)

    window:                 int   = 7
    too_consistent_pct:     float = 5.0
    too_consistent_score:   float = 50.0
    consistent_pct:         float = 10.0
    consistent_score:       float = 70.0
    erratic_pct:            float = 80.0
    erratic_score:          float = 60.0

    @field_validator("window")
    @classmethod
    def positive_window(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"window must be >= 1, got {v}.")
        return v


class ScanContradictionConfig(BaseModel):
    """Logged mean vs the scan-declared daily average (ml/day)."""

    model_config = ConfigDict(frozen=True)

    strong_logged_below:  float = 15.0
    strong_scan_above:    float = 30.0
    strong_score:         float = 30.0
    shortfall_ratio:      float = 0.5
    shortfall_scan_above: float = 20.0
    shortfall_score:      float = 50.0


class CadenceConfig(BaseModel):
    """Logging frequency bands, in entries per week."""

    model_config = ConfigDict(frozen=True)

    regular_min:     float = 5.0
    regular_max:     float = 14.0
    sparse_below:    float = 2.0
    sparse_score:    float = 60.0
    light_score:     float = 80.0
    excessive_above: float = 21.0
    excessive_score: float = 50.0
    busy_score:      float = 70.0

    @model_validator(mode="after")
    def bands_ordered(self) -> "CadenceConfig":
        if not (
            self.sparse_below <= self.regular_min <= self.regular_max <= self.excessive_above
        ):
            raise ValueError(
                "Cadence bands must satisfy sparse_below <= regular_min "
                "<= regular_max <= excessive_above."
            )
        return self


class HouseholdRangeConfig(BaseModel):
    """Expected per-person daily consumption (ml/day) and the fit bands.

    Inside the range the score falls linearly from 100 at the ideal by up to
    ``in_range_spread``.  Below and above, the mean is compared with the
    range edge as a ratio.
    """

    model_config = ConfigDict(frozen=True)

    min_per_person:   float = 5.0
    ideal_per_person: float = 20.0
    max_per_person:   float = 40.0

    in_range_spread:   float = 30.0
    far_below_ratio:   float = 0.3
    far_below_score:   float = 10.0
    below_ratio:       float = 0.5
    below_score:       float = 30.0
    near_below_score:  float = 50.0
    far_above_ratio:   float = 2.0
    far_above_score:   float = 60.0
    near_above_score:  float = 80.0

    @model_validator(mode="after")
    def range_ordered(self) -> "HouseholdRangeConfig":
        if not 0.0 < self.min_per_person < self.ideal_per_person < self.max_per_person:
            raise ValueError(
                "Household range must satisfy 0 < min < ideal < max, got "
                f"{self.min_per_person} / {self.ideal_per_person} / {self.max_per_person}."
            )
        return self


class LevelThresholdsConfig(BaseModel):
    """Score cut-offs for the honesty levels."""

    model_config = ConfigDict(frozen=True)

    high:   int = 75
    medium: int = 45

    @model_validator(mode="after")
    def ordered(self) -> "LevelThresholdsConfig":
        if not 0 <= self.medium < self.high <= 100:
            raise ValueError(
                f"Level thresholds must satisfy 0 <= medium < high <= 100, "
                f"got medium={self.medium}, high={self.high}."
            )
        return self


class MultipliersConfig(BaseModel):
    """Reward multiplier per honesty level."""

    model_config = ConfigDict(frozen=True)

    high:   float = 1.2
    medium: float = 1.0
    low:    float = 0.5


class BulkEditConfig(BaseModel):
    """Bulk-edit detection and its post-hoc penalty."""

    model_config = ConfigDict(frozen=True)

    max_entries_per_day: int   = 5     # more than this on one day = bulk edit
    penalty_per_day:     float = 5.0
    penalty_cap:         float = 20.0
    flag_min_days:       int   = 3     # BULK_EDITS_DETECTED when count > 2


class FlagThresholdsConfig(BaseModel):
    """Signal values below which a flag is raised."""

    model_config = ConfigDict(frozen=True)

    repetitive_values:     float = 30.0
    household_mismatch:    float = 30.0
    barcode_contradiction: float = 40.0
    flatline_pattern:      float = 30.0
    sudden_drops_count:    int   = 3   # SUDDEN_DROPS when count > 2


VALID_AGGREGATORS = frozenset({"weighted_sum"})


class ScoringConfig(BaseModel):
    """Versioned threshold set for the Habit Stability Score.

    Bump ``version`` whenever any value here changes; it is persisted with
    every score so historical results remain auditable.
    """

    model_config = ConfigDict(frozen=True)

    version:               str = "hss-v1"
    window_days:           int = 30
    min_logs_for_analysis: int = 5
    aggregator:            str = "weighted_sum"

    weights:        SignalWeightsConfig     = SignalWeightsConfig()
    cv_bands:       CVBandsConfig           = CVBandsConfig()
    micro_variance: MicroVarianceConfig     = MicroVarianceConfig()
    flatline:       FlatlineConfig          = FlatlineConfig()
    sudden_drops:   SuddenDropConfig        = SuddenDropConfig()
    weekend:        WeekendConfig           = WeekendConfig()
    moving_average: MovingAverageConfig     = MovingAverageConfig()
    household:      HouseholdRangeConfig    = HouseholdRangeConfig()
    contradiction:  ScanContradictionConfig = ScanContradictionConfig()
    cadence:        CadenceConfig           = CadenceConfig()
    levels:         LevelThresholdsConfig   = LevelThresholdsConfig()
    multipliers:    MultipliersConfig       = MultipliersConfig()
    bulk_edit:      BulkEditConfig          = BulkEditConfig()
    flags:          FlagThresholdsConfig    = FlagThresholdsConfig()

    @field_validator("window_days", "min_logs_for_analysis")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v

    @field_validator("aggregator")
    @classmethod
    def known_aggregator(cls, v: str) -> str:
        if v not in VALID_AGGREGATORS:
            raise ValueError(
                f"Unknown aggregator '{v}'. Must be one of {sorted(VALID_AGGREGATORS)}."
            )
        return v


class GovernanceConfig(BaseModel):
    """Base point caps that the governance policy scales per honesty level."""

    model_config = ConfigDict(frozen=True)

    base_max_daily_points:  int = 100
    base_max_weekly_points: int = 500


class RecomputeConfig(BaseModel):
    """Interactive / batch recompute workflow settings."""

    model_config = ConfigDict(frozen=True)

    staleness_hours:  float = 24.0
    max_workers:      int   = 4
    batch_user_limit: int   = 1000

    @field_validator("max_workers", "batch_user_limit")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be >= 1, got {v}.")
        return v


class SchedulerConfig(BaseModel):
    """Batch sweep schedule."""

    model_config = ConfigDict(frozen=True)

    daily_time: str = "03:00"

    @field_validator("daily_time")
    @classmethod
    def valid_hhmm(cls, v: str) -> str:
        try:
            hour, minute = (int(p) for p in v.split(":"))
        except ValueError:
            raise ValueError(f"daily_time must be HH:MM, got '{v}'.") from None
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"daily_time out of range: '{v}'.")
        return v


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    All CLI commands and workflow classes receive an ``AppConfig`` instance.
    It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database:   DatabaseConfig   = DatabaseConfig()
    logging:    LoggingConfig    = LoggingConfig()
    scoring:    ScoringConfig    = ScoringConfig()
    governance: GovernanceConfig = GovernanceConfig()
    recompute:  RecomputeConfig  = RecomputeConfig()
    scheduler:  SchedulerConfig  = SchedulerConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply HABIT_INTEGRITY_* env vars to the raw config dict.

    Supported overrides:
      HABIT_INTEGRITY_DB_PATH      → raw["database"]["db_path"]
      HABIT_INTEGRITY_LOG_LEVEL    → raw["logging"]["level"]
      HABIT_INTEGRITY_MAX_WORKERS  → raw["recompute"]["max_workers"]
      HABIT_INTEGRITY_DEBUG        → raw["debug"]
    """
    if db_path := os.environ.get("HABIT_INTEGRITY_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("HABIT_INTEGRITY_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if max_workers := os.environ.get("HABIT_INTEGRITY_MAX_WORKERS"):
        raw.setdefault("recompute", {})["max_workers"] = int(max_workers)

    if debug := os.environ.get("HABIT_INTEGRITY_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure.

    Nested scoring tables (``[scoring.weights]`` etc.) are validated by
    pydantic directly from the dict.
    """
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        scoring=ScoringConfig.model_validate(raw.get("scoring", {})),
        governance=GovernanceConfig(**raw.get("governance", {})),
        recompute=RecomputeConfig(**raw.get("recompute", {})),
        scheduler=SchedulerConfig(**raw.get("scheduler", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
