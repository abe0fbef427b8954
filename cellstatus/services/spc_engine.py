"""Statistical process control for a single characteristic.

Descriptive statistics, capability indices (Cp, Cpk, Pp, Ppk) and
out-of-tolerance counts for a set of measurements against optional spec
limits. Cp/Cpk use the sample standard deviation (n - 1); Pp/Ppk use the
population standard deviation (n). With a single subgroup both describe
the same spread, so the two pairs differ only by the n/(n - 1) factor.
"""

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cellstatus.services.numeric import finite_or_none

logger = logging.getLogger(__name__)

CPK_CAPABLE = 1.33
CPK_MARGINAL = 1.0

# Leading decimal number, as measurement entry fields are free text ("10.02 mm").
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class SpcInputError(ValueError):
    """Raised when SPC input has no usable numeric data."""


class CapabilityStatus(str, Enum):
    CAPABLE = "capable"
    MARGINAL = "marginal"
    NOT_CAPABLE = "not_capable"
    UNKNOWN = "unknown"


@dataclass
class SpcStats:
    """Statistics for one characteristic. Indices are None when undefined."""

    n: int
    mean: float
    std_dev: float
    overall_std_dev: float
    min: float
    max: float
    range: float
    usl: float | None = None
    lsl: float | None = None
    nominal: float | None = None
    cp: float | None = None
    cpk: float | None = None
    pp: float | None = None
    ppk: float | None = None
    out_of_tol: int = 0

    @property
    def status(self) -> CapabilityStatus:
        return classify_capability(self.cpk)

    def to_dict(self) -> dict[str, Any]:
        return {
            "n": self.n,
            "mean": finite_or_none(self.mean),
            "stdDev": finite_or_none(self.std_dev),
            "overallStdDev": finite_or_none(self.overall_std_dev),
            "min": finite_or_none(self.min),
            "max": finite_or_none(self.max),
            "range": finite_or_none(self.range),
            "usl": self.usl,
            "lsl": self.lsl,
            "nominal": finite_or_none(self.nominal),
            "cp": finite_or_none(self.cp),
            "cpk": finite_or_none(self.cpk),
            "pp": finite_or_none(self.pp),
            "ppk": finite_or_none(self.ppk),
            "outOfTol": self.out_of_tol,
            "status": self.status.value,
        }


def parse_measurement(value: Any) -> float | None:
    """Parse a measured value the way free-text entry fields are read.

    Numbers pass through; strings yield their leading decimal number.
    Anything else, including NaN, yields None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        m = _NUMBER_PREFIX.match(value)
        if m:
            return float(m.group(1))
    return None


def numeric_values(raw: list[Any]) -> list[float]:
    """Parsed values with non-numeric entries dropped, order preserved."""
    return [v for v in (parse_measurement(r) for r in raw) if v is not None]


def normalize_spec_limits(char_max: Any, char_min: Any) -> tuple[float | None, float | None]:
    """Turn stored characteristic limits into (usl, lsl).

    A lower limit of exactly 0 means "no lower limit": one-sided
    tolerances are stored with a zero minimum.
    """
    usl = parse_measurement(char_max)
    lsl = parse_measurement(char_min)
    if lsl == 0:
        lsl = None
    return usl, lsl


def limits_from_tolerance(nominal: float, plus_minus: float) -> tuple[float, float]:
    """(usl, lsl) for a symmetric tolerance ``nominal ± plus_minus``."""
    tol = abs(plus_minus)
    return nominal + tol, nominal - tol


def tolerance_from_limits(usl: float | None, lsl: float | None) -> tuple[float, float] | None:
    """(nominal, plus_minus) for a two-sided tolerance, else None."""
    if usl is None or lsl is None:
        return None
    return (usl + lsl) / 2, (usl - lsl) / 2


def is_out_of_tolerance(value: float, usl: float | None, lsl: float | None) -> bool:
    return (usl is not None and value > usl) or (lsl is not None and value < lsl)


def out_of_tolerance_amount(value: float, usl: float | None, lsl: float | None) -> float:
    """How far ``value`` lies outside the limits; 0 when in tolerance."""
    if usl is not None and value > usl:
        return value - usl
    if lsl is not None and value < lsl:
        return lsl - value
    return 0.0


def deviation(value: float, usl: float | None, lsl: float | None) -> float | None:
    """Deviation from nominal, defined only for two-sided limits."""
    tol = tolerance_from_limits(usl, lsl)
    if tol is None:
        return None
    return value - tol[0]


def classify_capability(
    cpk: float | None,
    capable: float = CPK_CAPABLE,
    marginal: float = CPK_MARGINAL,
) -> CapabilityStatus:
    if cpk is None or not math.isfinite(cpk):
        return CapabilityStatus.UNKNOWN
    if cpk >= capable:
        return CapabilityStatus.CAPABLE
    if cpk >= marginal:
        return CapabilityStatus.MARGINAL
    return CapabilityStatus.NOT_CAPABLE


def _capability(usl: float, lsl: float, mean: float, sigma: float) -> tuple[float, float]:
    spread = (usl - lsl) / (6 * sigma)
    centered = min((usl - mean) / (3 * sigma), (mean - lsl) / (3 * sigma))
    return spread, centered


def compute_spc_stats(values: list[float], usl: float | None = None, lsl: float | None = None) -> SpcStats | None:
    """Compute statistics for numeric ``values``; None when there are none.

    Limits are used as given. Callers apply the zero-LSL convention with
    normalize_spec_limits() beforehand.
    """
    n = len(values)
    if n == 0:
        return None

    # Plain sum and d * d: overflow yields inf, never an exception.
    mean = sum(values) / n
    sq = sum(d * d for d in (v - mean for v in values))
    std_dev = math.sqrt(sq / max(n - 1, 1))
    overall = math.sqrt(sq / n)
    lo, hi = min(values), max(values)

    stats = SpcStats(
        n=n,
        mean=mean,
        std_dev=std_dev,
        overall_std_dev=overall,
        min=lo,
        max=hi,
        range=hi - lo,
        usl=usl,
        lsl=lsl,
        out_of_tol=sum(1 for v in values if is_out_of_tolerance(v, usl, lsl)),
    )

    if usl is not None and lsl is not None:
        stats.nominal = (usl + lsl) / 2
        if std_dev > 0:
            stats.cp, stats.cpk = _capability(usl, lsl, mean, std_dev)
        if overall > 0:
            stats.pp, stats.ppk = _capability(usl, lsl, mean, overall)
    elif usl is not None and std_dev > 0:
        stats.cpk = (usl - mean) / (3 * std_dev)

    if n > 1 and std_dev == 0:
        logger.debug("Zero spread over %d samples; capability indices undefined", n)
    return stats
