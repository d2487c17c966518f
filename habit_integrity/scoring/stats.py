"""
Small numeric helpers used by the feature extractor.

Everything here is a pure function of its arguments.  Sums use
``math.fsum`` so results do not depend on accumulation order, and rounding
is half-up (``2.5 -> 3``) rather than Python's banker's rounding, so a
stored score never flips between two call sites that round differently.
"""

from __future__ import annotations

import math
from typing import Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def pstdev(values: Sequence[float]) -> float:
    """Population standard deviation; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(math.fsum((v - avg) ** 2 for v in values) / len(values))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Coefficient of variation in percent (std / mean * 100).

    Returns 0.0 when the sequence is empty or its mean is zero.
    """
    if not values:
        return 0.0
    avg = mean(values)
    if avg == 0.0:
        return 0.0
    return pstdev(values) / avg * 100.0


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round half away from negative infinity, e.g. ``round_half_up(2.5) == 3``."""
    factor = 10.0 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))
