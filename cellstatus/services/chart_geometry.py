"""Chart geometry for SPC reports: histogram bins, normal curve, run chart.

Produces bin boundaries and counts, and (x, y) series in SVG user units.
Drawing is left to the rendering surface.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from cellstatus.services.numeric import finite_or_none
from cellstatus.services.spc_engine import is_out_of_tolerance

RUN_CHART_WIDTH = 720
RUN_CHART_HEIGHT = 300
CURVE_SEGMENTS = 100
MAX_X_LABELS = 12
Y_TICKS = 6


@dataclass(frozen=True)
class Padding:
    top: float = 30
    right: float = 30
    bottom: float = 90
    left: float = 60


@dataclass
class HistogramBin:
    lo: float
    hi: float
    count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"lo": finite_or_none(self.lo), "hi": finite_or_none(self.hi), "count": self.count}


def sturges_bin_count(n: int) -> int:
    """Sturges' rule with a floor of five bins."""
    if n <= 0:
        return 5
    return max(5, math.ceil(1 + 3.322 * math.log10(n)))


def compute_histogram(values: list[float], bins: int | None = None) -> list[HistogramBin]:
    """Bin ``values`` into equal-width bins spanning [min, max].

    Every value lands in exactly one bin. When all values are equal a single
    bin holds them all. An explicit bin count below 1 is treated as 1.
    """
    if not values:
        return []

    lo, hi = min(values), max(values)
    if lo == hi:
        return [HistogramBin(lo=lo, hi=hi, count=len(values))]

    count = sturges_bin_count(len(values)) if bins is None else max(1, int(bins))
    width = (hi - lo) / count
    if not math.isfinite(width):
        # Span overflows; scale before subtracting.
        width = hi / count - lo / count
    edges = [_bin_edge(lo, hi, width, i, count) for i in range(count + 1)]
    result = [HistogramBin(lo=edges[i], hi=edges[i + 1]) for i in range(count)]
    for v in values:
        result[_bin_index(v, lo, width, count)].count += 1
    return result


def _bin_edge(lo: float, hi: float, width: float, i: int, count: int) -> float:
    edge = lo + i * width
    if not math.isfinite(edge):
        t = i / count
        edge = lo * (1 - t) + hi * t
    return edge


def _bin_index(value: float, lo: float, width: float, count: int) -> int:
    pos = (value - lo) / width
    if not math.isfinite(pos):
        pos = value / width - lo / width
    if math.isnan(pos):
        return 0
    # Clamp absorbs rounding at the maximum value.
    return math.floor(min(max(pos, 0.0), count - 1))


def normal_curve(
    values: list[float],
    mean: float,
    std_dev: float,
    bins: int | None = None,
) -> list[tuple[float, float]]:
    """Normal pdf across the data range, scaled to histogram counts.

    Empty unless ``std_dev > 0`` and there are more than two values.
    """
    n = len(values)
    if n <= 2 or not std_dev > 0:
        return []

    lo, hi = min(values), max(values)
    span = (hi - lo) or 1.0
    count = sturges_bin_count(n) if bins is None else max(1, int(bins))
    area = n * span / count
    norm = 1 / (std_dev * math.sqrt(2 * math.pi))

    points = []
    for i in range(CURVE_SEGMENTS + 1):
        x = lo + span * i / CURVE_SEGMENTS
        z = (x - mean) / std_dev
        points.append((x, norm * math.exp(-0.5 * z * z) * area))
    return points


@dataclass
class RunChartPoint:
    index: int
    value: float
    x: float
    y: float
    out_of_tol: bool = False
    timestamp: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "value": self.value,
            "x": finite_or_none(self.x, 3),
            "y": finite_or_none(self.y, 3),
            "outOfTol": self.out_of_tol,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class ReferenceLine:
    """Horizontal line across the plot: spec limit, mean or control limit."""

    kind: str
    value: float
    y: float

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "value": finite_or_none(self.value), "y": finite_or_none(self.y, 3)}


@dataclass
class RunChart:
    width: float
    height: float
    padding: Padding
    y_min: float
    y_max: float
    points: list[RunChartPoint] = field(default_factory=list)
    reference_lines: list[ReferenceLine] = field(default_factory=list)
    y_ticks: list[tuple[float, float]] = field(default_factory=list)
    label_indices: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "padding": {
                "top": self.padding.top,
                "right": self.padding.right,
                "bottom": self.padding.bottom,
                "left": self.padding.left,
            },
            "yMin": finite_or_none(self.y_min),
            "yMax": finite_or_none(self.y_max),
            "points": [p.to_dict() for p in self.points],
            "referenceLines": [r.to_dict() for r in self.reference_lines],
            "yTicks": [{"value": finite_or_none(v), "y": finite_or_none(y, 3)} for v, y in self.y_ticks],
            "labelIndices": self.label_indices,
        }


def compute_run_chart(
    values: list[float],
    usl: float | None,
    lsl: float | None,
    mean: float,
    std_dev: float,
    timestamps: list[datetime] | None = None,
    width: float = RUN_CHART_WIDTH,
    height: float = RUN_CHART_HEIGHT,
    padding: Padding = Padding(),
) -> RunChart | None:
    """Map samples onto an individuals run chart; None when there are none.

    With ``timestamps`` the samples are ordered by time (stable for equal
    times). The y range covers the data, mean ± 3σ and both spec limits,
    plus an 8% margin, so every reference line stays inside the plot.
    """
    n = len(values)
    if n == 0:
        return None

    order = list(range(n))
    if timestamps is not None:
        order.sort(key=lambda i: timestamps[i])

    plot_w = width - padding.left - padding.right
    plot_h = height - padding.top - padding.bottom

    candidates = [*values, mean + 3 * std_dev, mean - 3 * std_dev]
    candidates += [limit for limit in (usl, lsl) if limit is not None]
    candidates = [c for c in candidates if math.isfinite(c)]
    y_min, y_max = min(candidates), max(candidates)
    margin = (y_max - y_min) * 0.08 or 0.1
    y_min -= margin
    y_max += margin

    def x_scale(i: int) -> float:
        return padding.left + i / max(n - 1, 1) * plot_w

    def y_scale(v: float) -> float:
        return padding.top + plot_h - (v - y_min) / (y_max - y_min) * plot_h

    points = []
    for pos, i in enumerate(order):
        v = values[i]
        points.append(
            RunChartPoint(
                index=pos,
                value=v,
                x=x_scale(pos),
                y=y_scale(v),
                out_of_tol=is_out_of_tolerance(v, usl, lsl),
                timestamp=timestamps[i] if timestamps is not None else None,
            )
        )

    lines = []
    if usl is not None:
        lines.append(ReferenceLine("usl", usl, y_scale(usl)))
    if lsl is not None:
        lines.append(ReferenceLine("lsl", lsl, y_scale(lsl)))
    lines.append(ReferenceLine("mean", mean, y_scale(mean)))
    if std_dev > 0 and math.isfinite(std_dev):
        lines.append(ReferenceLine("ucl", mean + 3 * std_dev, y_scale(mean + 3 * std_dev)))
        lines.append(ReferenceLine("lcl", mean - 3 * std_dev, y_scale(mean - 3 * std_dev)))

    ticks = []
    for t in range(Y_TICKS + 1):
        v = y_min + (y_max - y_min) * t / Y_TICKS
        ticks.append((v, y_scale(v)))

    return RunChart(
        width=width,
        height=height,
        padding=padding,
        y_min=y_min,
        y_max=y_max,
        points=points,
        reference_lines=lines,
        y_ticks=ticks,
        label_indices=list(range(0, n, math.ceil(n / MAX_X_LABELS))),
    )
