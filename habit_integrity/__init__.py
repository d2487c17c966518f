"""Habit Integrity: deterministic Habit Stability Score engine and recompute workflow."""

__version__ = "0.1.0"
