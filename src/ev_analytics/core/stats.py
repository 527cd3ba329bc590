from __future__ import annotations

import math
from typing import Sequence, Union

Number = Union[int, float]


def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round halves away from zero for non-negative values (2.5 -> 3, 0.125 -> 0.13).

    Python's round() uses banker's rounding, which would turn 62.5% into 62.
    """
    if value is None or math.isnan(value):
        return 0.0
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def round_to_int(value: float) -> int:
    return int(round_half_up(value, 0))


def percentage(part: Number, whole: Number, ndigits: int = 2) -> float:
    """part / whole * 100, rounded; 0 for an empty denominator."""
    if not whole:
        return 0.0
    return round_half_up((part / whole) * 100, ndigits)


def average(values: Sequence[Number]) -> float:
    if len(values) == 0:
        return 0.0
    return float(sum(values)) / len(values)


def upper_median(values: Sequence[Number]) -> Number:
    """Element at n // 2 of the sorted values (the upper median for even n)."""
    if len(values) == 0:
        return 0
    ordered = sorted(values)
    return ordered[len(ordered) // 2]
