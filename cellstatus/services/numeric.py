"""Numeric helpers shared by the VSM and SPC engines.

The engines follow a "compute with NaN, render a placeholder" policy:
division by zero yields IEEE Infinity/NaN instead of raising, and
serializers turn non-finite values into ``None`` so JSON stays valid.
"""

import math
from collections.abc import Iterable

PLACEHOLDER = "—"


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide with IEEE 754 semantics instead of raising ZeroDivisionError."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; NaN for an empty iterable."""
    items = list(values)
    return safe_divide(math.fsum(items), len(items))


def is_finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def finite_or_none(value: float | None, digits: int | None = None) -> float | None:
    """Return ``value`` (optionally rounded) when finite, otherwise None."""
    if not is_finite(value):
        return None
    if digits is None:
        return value
    return round(value, digits)


def format_metric(value: float | None, digits: int = 3, suffix: str = "") -> str:
    """Render a metric for display, using the placeholder for missing values."""
    if not is_finite(value):
        return PLACEHOLDER
    return f"{value:.{digits}f}{suffix}"


def format_duration(seconds: float | None) -> str:
    """Render seconds as s / min / h m, the way the VSM timeline labels them."""
    if not is_finite(seconds):
        return PLACEHOLDER
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f} min"
    hours = int(seconds // 3600)
    minutes = round((seconds % 3600) / 60)
    return f"{hours}h {minutes}m"
