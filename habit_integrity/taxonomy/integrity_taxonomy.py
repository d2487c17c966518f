"""
Integrity taxonomy: honesty levels and the flags a score can carry.

``HonestyLevel`` is the coarse bucket derived from the Habit Stability Score.
``IntegrityFlag`` names each suspicious pattern the signal builder can raise.

Both are ``StrEnum`` so they serialise as their plain string values in JSON
and SQLite columns.

This module has NO imports from any other ``habit_integrity`` package.
"""

from enum import StrEnum


class HonestyLevel(StrEnum):
    """Trust bucket derived from the score via fixed thresholds."""

    HIGH = "high"
    """Score >= 75. Earns the honesty boost."""

    MEDIUM = "medium"
    """Score >= 45. Neutral reward treatment."""

    LOW = "low"
    """Score < 45. Reduced multiplier and point caps."""


class IntegrityFlag(StrEnum):
    """Suspicious-pattern flags attached to a score."""

    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    """Fewer logs than the analysis minimum; neutral default returned."""

    REPETITIVE_VALUES = "REPETITIVE_VALUES"
    """The same exact amount is logged over and over."""

    HOUSEHOLD_MISMATCH = "HOUSEHOLD_MISMATCH"
    """Logged amounts are implausible for the declared household size."""

    BARCODE_CONTRADICTION = "BARCODE_CONTRADICTION"
    """Logged amounts contradict independently scanned products."""

    FLATLINE_PATTERN = "FLATLINE_PATTERN"
    """Almost no variation in logged amounts over time."""

    SUDDEN_DROPS = "SUDDEN_DROPS"
    """Repeated drops from well above average to near zero."""

    BULK_EDITS_DETECTED = "BULK_EDITS_DETECTED"
    """Several days with an implausible number of entries."""


# Low-honesty nudge selection order; first flag present wins.
NUDGE_FLAG_PRIORITY: tuple[IntegrityFlag, ...] = (
    IntegrityFlag.HOUSEHOLD_MISMATCH,
    IntegrityFlag.REPETITIVE_VALUES,
    IntegrityFlag.FLATLINE_PATTERN,
)
