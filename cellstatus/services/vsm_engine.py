"""Value stream map metrics engine.

Given an ordered list of stations, derives per-station flow metrics
(effective cycle time, actual and theoretical rate, takt time, utilization,
wait time) and a summary for the whole stream: bottleneck, lead time,
system throughput, cell balance and process efficiency.

The engine is pure and reentrant. It does not validate its input: zero
cycle times or batch sizes propagate as Infinity/NaN, and an empty station
list yields an empty result rather than an error.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cellstatus.services.numeric import finite_or_none, mean, safe_divide

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0
DEFAULT_SHIFT_HOURS = 8.0


class WaitTimeMode(str, Enum):
    """How idle time between consecutive stations is computed."""

    # Raw list adjacency: parallel stations count as sequential neighbours.
    STATION = "station"
    # Adjacent process-step groups, each at its limiting (slowest) rate.
    STEP = "step"


@dataclass(frozen=True)
class Station:
    """One production step. Times are in seconds."""

    id: str
    name: str
    cycle_time: float
    process_step: int = 1
    setup_time: float = 0.0
    batch_size: float = 1.0
    operators: float = 1.0
    uptime_percent: float = 100.0
    machine_id: str | None = None
    machine_id_display: str | None = None
    wip_before: float = 0.0


@dataclass
class StationMetrics:
    """Derived metrics for a single station."""

    station: Station
    setup_impact: float
    effective_cycle_time: float
    theoretical_rate: float  # units/sec ignoring uptime
    rate: float  # units/sec
    takt_time: float
    downtime_impact: float
    is_bottleneck: bool = False
    utilization: float = 0.0
    wait_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        s = self.station
        return {
            "id": s.id,
            "name": s.name,
            "machineId": s.machine_id,
            "processStep": s.process_step,
            "cycleTime": s.cycle_time,
            "setupTime": s.setup_time,
            "batchSize": s.batch_size,
            "operators": s.operators,
            "uptimePercent": s.uptime_percent,
            "setupImpact": finite_or_none(self.setup_impact),
            "effectiveCycleTime": finite_or_none(self.effective_cycle_time),
            "theoreticalRate": finite_or_none(self.theoretical_rate),
            "rate": finite_or_none(self.rate),
            "taktTime": finite_or_none(self.takt_time),
            "downtimeImpact": finite_or_none(self.downtime_impact),
            "isBottleneck": self.is_bottleneck,
            "utilization": finite_or_none(self.utilization),
            "waitTime": finite_or_none(self.wait_time),
        }


@dataclass
class VsmSummary:
    """Stream-level metrics for one computation run."""

    stations: int
    total_ct: float = 0.0
    bottleneck_name: str | None = None
    bottleneck_ct: float | None = None
    bottleneck_rate: float = 0.0
    raw_material_uph: float | None = None
    takt_time: float | None = None
    lead_time: float = 0.0
    waiting_time: float = 0.0
    process_efficiency: float = 0.0
    va_ratio: float = 0.0
    cell_balance_percent: float = 0.0
    system_throughput_uph: float = 0.0
    avg_utilization_percent: float | None = None
    units_per_shift: float = 0.0
    is_raw_material_bottleneck: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "stations": self.stations,
            "totalCT": finite_or_none(self.total_ct),
            "bottleneckName": self.bottleneck_name,
            "bottleneckCT": finite_or_none(self.bottleneck_ct),
            "bottleneckRate": finite_or_none(self.bottleneck_rate),
            "rawMaterialUPH": self.raw_material_uph,
            "taktTime": finite_or_none(self.takt_time),
            "leadTime": finite_or_none(self.lead_time),
            "waitingTime": finite_or_none(self.waiting_time),
            "processEfficiency": finite_or_none(self.process_efficiency),
            "vaRatio": finite_or_none(self.va_ratio),
            "cellBalancePercent": finite_or_none(self.cell_balance_percent),
            "systemThroughputUPH": finite_or_none(self.system_throughput_uph),
            "avgUtilizationPercent": finite_or_none(self.avg_utilization_percent),
            "unitsPerShift": finite_or_none(self.units_per_shift),
            "isRawMaterialBottleneck": self.is_raw_material_bottleneck,
        }


@dataclass
class VsmResult:
    """Per-station metrics plus the stream summary."""

    per_station: list[StationMetrics] = field(default_factory=list)
    summary: VsmSummary = field(default_factory=lambda: VsmSummary(stations=0))

    @property
    def is_empty(self) -> bool:
        return not self.per_station

    @property
    def bottleneck(self) -> StationMetrics | None:
        for m in self.per_station:
            if m.is_bottleneck:
                return m
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "perStation": [m.to_dict() for m in self.per_station],
            "summary": self.summary.to_dict(),
        }


def compute_station_metrics(station: Station) -> StationMetrics:
    """Derive the first-pass metrics of one station, independent of the others."""
    setup_impact = safe_divide(station.setup_time, station.batch_size)
    effective_cycle_time = station.cycle_time + setup_impact
    uptime = station.uptime_percent / 100.0

    theoretical_rate = safe_divide(station.operators, effective_cycle_time)
    rate = theoretical_rate * uptime
    takt_time = safe_divide(safe_divide(effective_cycle_time, station.operators), uptime)

    return StationMetrics(
        station=station,
        setup_impact=setup_impact,
        effective_cycle_time=effective_cycle_time,
        theoretical_rate=theoretical_rate,
        rate=rate,
        takt_time=takt_time,
        downtime_impact=100.0 - station.uptime_percent,
    )


def find_bottleneck_index(rates: list[float]) -> int:
    """Index of the minimum rate; the first one wins on ties. -1 when empty."""
    if not rates:
        return -1
    best = 0
    for i, rate in enumerate(rates):
        if rate < rates[best]:
            best = i
    return best


def idle_time(prev_rate: float, rate: float) -> float:
    """Seconds per unit a faster station waits on its slower upstream supply."""
    if rate > prev_rate:
        return safe_divide(1.0, prev_rate) - safe_divide(1.0, rate)
    return 0.0


def _assign_wait_by_station(metrics: list[StationMetrics]) -> None:
    for i in range(1, len(metrics)):
        metrics[i].wait_time = idle_time(metrics[i - 1].rate, metrics[i].rate)


def _assign_wait_by_step(metrics: list[StationMetrics]) -> None:
    groups: dict[int, list[StationMetrics]] = defaultdict(list)
    for m in metrics:
        groups[m.station.process_step].append(m)

    prev_rate: float | None = None
    for step in sorted(groups):
        members = groups[step]
        group_rate = members[find_bottleneck_index([m.rate for m in members])].rate
        wait = 0.0 if prev_rate is None else idle_time(prev_rate, group_rate)
        for m in members:
            m.wait_time = wait
        prev_rate = group_rate


def _summarize(
    metrics: list[StationMetrics],
    bottleneck: StationMetrics,
    raw_material_uph: float | None,
    shift_hours: float,
) -> VsmSummary:
    rates = [m.rate for m in metrics]
    total_ct = math.fsum(m.station.cycle_time for m in metrics)
    lead_time = math.fsum(m.takt_time for m in metrics)
    bottleneck_rate = bottleneck.rate
    system_throughput_uph = bottleneck_rate * SECONDS_PER_HOUR

    takt_time = None
    if raw_material_uph is not None and raw_material_uph > 0:
        takt_time = SECONDS_PER_HOUR / raw_material_uph

    balance = safe_divide(total_ct, lead_time) * 100.0

    return VsmSummary(
        stations=len(metrics),
        total_ct=total_ct,
        bottleneck_name=f"{bottleneck.station.name} (Op {bottleneck.station.process_step})",
        bottleneck_ct=bottleneck.station.cycle_time,
        bottleneck_rate=bottleneck_rate,
        raw_material_uph=raw_material_uph,
        takt_time=takt_time,
        lead_time=lead_time,
        waiting_time=math.fsum(m.wait_time for m in metrics),
        process_efficiency=safe_divide(bottleneck_rate, max(rates)) * 100.0,
        va_ratio=balance,
        cell_balance_percent=balance,
        system_throughput_uph=system_throughput_uph,
        avg_utilization_percent=mean(m.utilization for m in metrics),
        units_per_shift=system_throughput_uph * shift_hours,
        is_raw_material_bottleneck=(
            takt_time is not None and raw_material_uph < system_throughput_uph
        ),
    )


def compute_vsm_metrics(
    stations: list[Station],
    raw_material_uph: float | None = None,
    wait_time_mode: WaitTimeMode = WaitTimeMode.STATION,
    shift_hours: float = DEFAULT_SHIFT_HOURS,
) -> VsmResult:
    """Compute per-station metrics and the stream summary.

    Stations are never mutated. Metrics come back in input order; exactly
    one station is marked as the bottleneck (slowest actual rate, first in
    input order on ties). An empty list returns an empty result whose
    summary reports zero stations.
    """
    if not stations:
        return VsmResult(summary=VsmSummary(stations=0, raw_material_uph=raw_material_uph))

    metrics = [compute_station_metrics(s) for s in stations]

    idx = find_bottleneck_index([m.rate for m in metrics])
    bottleneck = metrics[idx]
    bottleneck.is_bottleneck = True

    for m in metrics:
        m.utilization = safe_divide(bottleneck.rate, m.rate) * 100.0

    if WaitTimeMode(wait_time_mode) is WaitTimeMode.STEP:
        _assign_wait_by_step(metrics)
    else:
        _assign_wait_by_station(metrics)

    summary = _summarize(metrics, bottleneck, raw_material_uph, shift_hours)

    if not all(math.isfinite(m.rate) for m in metrics):
        logger.warning(
            "Non-finite station rates in VSM of %d stations; check cycle time and batch size",
            len(metrics),
        )
    logger.debug(
        "VSM metrics: %d stations, bottleneck=%s rate=%.4f/s",
        len(metrics),
        bottleneck.station.name,
        bottleneck.rate,
    )

    return VsmResult(per_station=metrics, summary=summary)
