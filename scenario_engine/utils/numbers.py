"""Numeric helper functions shared across the engine."""

import math


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def clamp01(x: float) -> float:
    """Clamp a lever value into [0, 1]; NaN collapses to 0."""
    x = float(x)
    if math.isnan(x):
        return 0.0
    return clamp(x, 0.0, 1.0)


def safe_ratio(num: float, den: float, default: float = 0.0) -> float:
    if den == 0 or not math.isfinite(den):
        return default
    return num / den


__all__ = ["clamp", "clamp01", "safe_ratio"]
