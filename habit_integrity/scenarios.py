"""
Synthetic users for exercising the scoring pipeline end to end.

Each scenario is a seeded, reproducible ``ScoringInputs`` plus a short
statement of the behaviour it should provoke.  Used by the ``scenarios`` CLI
command (print scores, optionally load into the database) and by tests.

Scenarios
---------
  honest                 Natural variation around 60 ml, household of 3.
  flatline               Exactly 50 ml every day.
  sudden_drop            A week around 200 ml, then a week of zeros.
  household_mismatch     About 4 ml/day for a household of 5.
  barcode_contradiction  About 5 ml/day logged against large scanned products.
"""

from __future__ import annotations

import random
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from habit_integrity.db.repositories.log_repo import HabitLogRepository
from habit_integrity.models.inputs import (
    DailyLogEntry,
    ExternalScan,
    HouseholdContext,
    ScoringInputs,
)
from habit_integrity.utils.time_utils import is_weekend, utcnow

SCENARIO_WINDOW_DAYS = 14


@dataclass(frozen=True)
class Scenario:
    """A named synthetic user."""

    name: str
    description: str
    expected: str
    inputs: ScoringInputs


def generate_dates(num_days: int, end: date) -> list[date]:
    """``num_days`` consecutive days ending on ``end``, ascending."""
    return [end - timedelta(days=i) for i in range(num_days - 1, -1, -1)]


def natural_logs(
    rng: random.Random,
    days: list[date],
    base_ml: float,
    floor_ml: float = 1.0,
) -> list[DailyLogEntry]:
    """Amounts within ±30% of ``base_ml`` plus a 15% weekend bump."""
    entries = []
    for day in days:
        variance = (rng.random() - 0.5) * 0.6 * base_ml
        weekend_boost = base_ml * 0.15 if is_weekend(day) else 0.0
        amount = max(floor_ml, float(round(base_ml + variance + weekend_boost)))
        entries.append(DailyLogEntry(log_date=day, amount_ml=amount))
    return entries


def flatline_logs(days: list[date], value_ml: float) -> list[DailyLogEntry]:
    return [DailyLogEntry(log_date=day, amount_ml=value_ml) for day in days]


def sudden_drop_logs(rng: random.Random, days: list[date]) -> list[DailyLogEntry]:
    half = len(days) // 2
    return [
        DailyLogEntry(
            log_date=day,
            amount_ml=round(200.0 + rng.random() * 50.0, 1) if i < half else 0.0,
        )
        for i, day in enumerate(days)
    ]


def _inputs(
    logs: list[DailyLogEntry],
    household_size: int,
    scans: tuple[ExternalScan, ...] = (),
) -> ScoringInputs:
    return ScoringInputs(
        daily_logs=tuple(logs),
        scans=scans,
        household=HouseholdContext(size=household_size),
        window_days=SCENARIO_WINDOW_DAYS,
    )


def build_scenarios(seed: int = 42, end: Optional[date] = None) -> list[Scenario]:
    """Build every scenario deterministically from ``seed``.

    Args:
        seed: Seed for the shared ``random.Random``.
        end: Last logged day; defaults to today (UTC).

    Returns:
        Scenarios in a fixed order.
    """
    rng = random.Random(seed)
    end = end or utcnow().date()
    days = generate_dates(SCENARIO_WINDOW_DAYS, end)
    scanned_at = datetime.combine(end, time(12, 0), tzinfo=timezone.utc)

    scans = tuple(
        ExternalScan(scanned_at=scanned_at, declared_amount_ml=amount, label=label)
        for label, amount in (
            ("Chips", 90.0), ("Snacks", 85.0), ("Samosa", 80.0),
            ("Namkeen", 95.0), ("Pakora", 75.0), ("Fried rice", 90.0),
        )
    )

    return [
        Scenario(
            name="honest",
            description="14 days of realistic logs with natural variation, household of 3",
            expected="medium/high, no flags",
            inputs=_inputs(natural_logs(rng, days, 60.0, floor_ml=10.0), 3),
        ),
        Scenario(
            name="flatline",
            description="14 days of exactly 50 ml",
            expected="not high, FLATLINE_PATTERN and REPETITIVE_VALUES",
            inputs=_inputs(flatline_logs(days, 50.0), 3),
        ),
        Scenario(
            name="sudden_drop",
            description="One week of 200+ ml/day, then one week of 0 ml/day",
            expected="sudden drop detected",
            inputs=_inputs(sudden_drop_logs(rng, days), 2),
        ),
        Scenario(
            name="household_mismatch",
            description="Household of 5 logging about 4 ml/day",
            expected="HOUSEHOLD_MISMATCH",
            inputs=_inputs(natural_logs(rng, days, 4.0), 5),
        ),
        Scenario(
            name="barcode_contradiction",
            description="About 5 ml/day logged while scanning high-oil products",
            expected="BARCODE_CONTRADICTION",
            inputs=_inputs(natural_logs(rng, days, 5.0), 1, scans),
        ),
    ]


def get_scenario(name: str, seed: int = 42, end: Optional[date] = None) -> Scenario:
    """Look up one scenario by name.

    Raises:
        KeyError: If no scenario has that name.
    """
    for scenario in build_scenarios(seed, end):
        if scenario.name == name:
            return scenario
    raise KeyError(f"Unknown scenario '{name}'.")


def load_scenarios(conn: sqlite3.Connection, scenarios: list[Scenario]) -> list[str]:
    """Write scenarios to the database as ``scenario-<name>`` users.

    Existing data for those users is replaced.

    Returns:
        The user ids written, in scenario order.
    """
    repo = HabitLogRepository(conn)
    user_ids = []
    for s in scenarios:
        user_id = f"scenario-{s.name}"
        repo.delete_user_data(user_id)
        repo.upsert_profile(user_id, s.inputs.household.size)
        repo.insert_logs(user_id, s.inputs.daily_logs)
        repo.insert_scans(user_id, s.inputs.scans)
        user_ids.append(user_id)
    return user_ids
