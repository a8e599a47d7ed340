"""Small numeric helpers shared by the tracking modules."""

from __future__ import annotations

import math

import numpy as np

EPS = 1e-12


def dbfs(x: float) -> float:
    """Convert a linear amplitude into dBFS."""
    return float(20.0 * np.log10(max(float(x), EPS)))


def clamp(value: float, lower: float, upper: float) -> float:
    return min(upper, max(lower, value))


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def is_finite_number(value: object) -> bool:
    """Return ``True`` for real numbers that are neither NaN nor infinite."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False


__all__ = ["EPS", "dbfs", "clamp", "is_power_of_two", "is_finite_number"]
