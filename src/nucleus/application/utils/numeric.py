import math
from typing import Any


def finite_or(value: Any, default: float) -> float:
    """Return ``value`` as a float, or ``default`` if it is missing, NaN or infinite."""
    try:
        f = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(f) or math.isinf(f):
        return default
    return f


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
