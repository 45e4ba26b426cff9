"""
Statistical helpers for report aggregation.

Plain functions over lists of floats. Empty input returns ``None`` (or an
empty mapping) rather than zero so that "no data" never reads as a score.
Rounding is round-half-up, applied only by callers at output time.
"""

from __future__ import annotations

import math
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float | None, places: int = 2) -> float | None:
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def average(values: list[float]) -> float | None:
    if not values:
        return None
    return math.fsum(values) / len(values)


def total(values: list[float]) -> float | None:
    if not values:
        return None
    return math.fsum(values)


def median(values: list[float]) -> float | None:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def mode(values: list[float]) -> float | None:
    """Most frequent value; ties resolve to the smallest value."""
    if not values:
        return None
    counts = Counter(values)
    top = max(counts.values())
    return min(v for v, c in counts.items() if c == top)


def standard_deviation(values: list[float]) -> float | None:
    """Population standard deviation."""
    mean = average(values)
    if mean is None:
        return None
    variance = math.fsum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def value_range(values: list[float]) -> tuple[float, float] | None:
    if not values:
        return None
    return min(values), max(values)


def weighted_average(values: list[float], weights: list[float]) -> float | None:
    if not values:
        return None
    if len(values) != len(weights):
        raise ValueError("Values and weights must have the same length")
    weight_sum = math.fsum(weights)
    if weight_sum == 0:
        return None
    return math.fsum(v * w for v, w in zip(values, weights)) / weight_sum


def normalize(
    value: float,
    source: tuple[float, float],
    target: tuple[float, float] = (0.0, 100.0),
) -> float:
    """Map ``value`` linearly from the ``source`` range onto the ``target`` range."""
    src_min, src_max = source
    dst_min, dst_max = target
    if src_max == src_min:
        return dst_min
    return dst_min + (value - src_min) * (dst_max - dst_min) / (src_max - src_min)


def distribution(categories: list[str]) -> dict[str, int]:
    """Category → occurrence count, keys sorted for a stable output."""
    counts = Counter(categories)
    return {key: counts[key] for key in sorted(counts)}


def percentages(categories: list[str], places: int = 2) -> dict[str, float]:
    counts = distribution(categories)
    size = sum(counts.values())
    if not size:
        return {}
    return {key: round_half_up(count * 100 / size, places) for key, count in counts.items()}
