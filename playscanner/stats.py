"""Small numeric helpers shared by the store, the dashboard and metrics.

One zero-division rule applies everywhere: a ratio or average over an
empty set is ``0.0``.
"""

from __future__ import annotations

from collections.abc import Iterable


def safe_ratio(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator


def safe_percentage(numerator: float, denominator: float) -> float:
    return safe_ratio(numerator, denominator) * 100.0


def safe_mean(values: Iterable[float]) -> float:
    items = list(values)
    return safe_ratio(sum(items), len(items))
