"""Operation-level (process step) analysis of a value stream.

Stations that share a ``process_step`` are parallel machines at the same
operation. Their hourly rates add up; the slowest operation (or the raw
material feed, when it is slower still) sets the system throughput.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from cellstatus.services.numeric import finite_or_none, mean, safe_divide
from cellstatus.services.vsm_engine import SECONDS_PER_HOUR, Station

logger = logging.getLogger(__name__)


def station_per_unit_ct(station: Station) -> float:
    """Cycle time plus setup time amortized over the batch."""
    return station.cycle_time + safe_divide(station.setup_time, station.batch_size)


def station_effective_ct(station: Station) -> float:
    """Per-unit cycle time stretched by the station's downtime."""
    return safe_divide(station_per_unit_ct(station), station.uptime_percent / 100.0)


def station_uph(station: Station) -> float:
    """Units per hour a single station can deliver."""
    return safe_divide(SECONDS_PER_HOUR, station_effective_ct(station)) * station.operators


@dataclass
class StepMetrics:
    """Metrics for one operation (all stations sharing a process step)."""

    step: int
    name: str
    stations: list[Station]
    combined_rate_uph: float
    avg_station_ct: float
    effective_ct_sec: float
    wip_before: float = 0.0
    avg_util_percent: float = 0.0
    waiting_time_sec: float = 0.0

    @property
    def machines(self) -> int:
        return len(self.stations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "name": self.name,
            "machines": self.machines,
            "stationIds": [s.id for s in self.stations],
            "combinedRateUPH": finite_or_none(self.combined_rate_uph),
            "avgStationCT": finite_or_none(self.avg_station_ct),
            "effectiveCTsec": finite_or_none(self.effective_ct_sec),
            "wipBefore": self.wip_before,
            "avgUtilPercent": finite_or_none(self.avg_util_percent),
            "waitingTimeSec": finite_or_none(self.waiting_time_sec),
        }


@dataclass
class StepAnalysis:
    """Operation metrics plus stream totals."""

    steps: list[StepMetrics] = field(default_factory=list)
    bottleneck_step: StepMetrics | None = None
    raw_material_uph: float | None = None
    is_raw_material_bottleneck: bool = False
    system_throughput_uph: float = 0.0
    value_add_time_sec: float = 0.0
    total_waiting_time_sec: float = 0.0
    total_wip: float = 0.0
    queue_time_sec: float = 0.0
    total_lead_time_sec: float = 0.0
    cell_balance_percent: float = 0.0
    avg_utilization_percent: float = 0.0
    process_efficiency_percent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "bottleneckStep": self.bottleneck_step.step if self.bottleneck_step else None,
            "rawMaterialUPH": self.raw_material_uph,
            "isRawMaterialBottleneck": self.is_raw_material_bottleneck,
            "systemThroughputUPH": finite_or_none(self.system_throughput_uph),
            "valueAddTimeSec": finite_or_none(self.value_add_time_sec),
            "totalWaitingTimeSec": finite_or_none(self.total_waiting_time_sec),
            "totalWip": self.total_wip,
            "queueTimeSec": finite_or_none(self.queue_time_sec),
            "totalLeadTimeSec": finite_or_none(self.total_lead_time_sec),
            "cellBalancePercent": finite_or_none(self.cell_balance_percent),
            "avgUtilizationPercent": finite_or_none(self.avg_utilization_percent),
            "processEfficiencyPercent": finite_or_none(self.process_efficiency_percent),
        }


def group_by_step(stations: list[Station]) -> list[tuple[int, list[Station]]]:
    """Group stations by process step, in ascending step order."""
    groups: dict[int, list[Station]] = defaultdict(list)
    for s in stations:
        groups[s.process_step or 1].append(s)
    return sorted(groups.items())


def operation_name(step: int, stations: list[Station], operation_names: dict[int, str] | None) -> str:
    """Configured operation name, else the first station name, else ``Op <step>``."""
    if operation_names and operation_names.get(step):
        return operation_names[step]
    for s in stations:
        if s.name:
            return s.name
    return f"Op {step}"


def _build_step(step: int, members: list[Station], operation_names: dict[int, str] | None) -> StepMetrics:
    combined = math.fsum(station_uph(s) for s in members)
    return StepMetrics(
        step=step,
        name=operation_name(step, members, operation_names),
        stations=members,
        combined_rate_uph=combined,
        avg_station_ct=mean(s.cycle_time for s in members),
        effective_ct_sec=safe_divide(SECONDS_PER_HOUR, combined),
        wip_before=math.fsum(s.wip_before for s in members),
    )


def analyze_steps(
    stations: list[Station],
    raw_material_uph: float | None = None,
    operation_names: dict[int, str] | None = None,
) -> StepAnalysis:
    """Group stations into operations and compute flow metrics per operation."""
    feed = raw_material_uph if raw_material_uph is not None and raw_material_uph > 0 else None
    if not stations:
        return StepAnalysis(raw_material_uph=feed)

    steps = [_build_step(step, members, operation_names) for step, members in group_by_step(stations)]

    slowest = steps[0]
    for s in steps:
        if s.combined_rate_uph < slowest.combined_rate_uph:
            slowest = s

    is_feed_bottleneck = feed is not None and feed < slowest.combined_rate_uph
    throughput = feed if is_feed_bottleneck else slowest.combined_rate_uph
    system_ct = safe_divide(SECONDS_PER_HOUR, throughput)

    for s in steps:
        s.avg_util_percent = safe_divide(throughput, s.combined_rate_uph) * 100.0
        s.waiting_time_sec = max(0.0, system_ct - s.effective_ct_sec)

    value_add = math.fsum(s.effective_ct_sec for s in steps)
    waiting = math.fsum(s.waiting_time_sec for s in steps)
    total_wip = math.fsum(s.wip_before for s in steps)
    queue = safe_divide(total_wip, throughput) * SECONDS_PER_HOUR if total_wip else 0.0
    lead_time = value_add + waiting + queue
    max_ct = max(s.effective_ct_sec for s in steps)

    analysis = StepAnalysis(
        steps=steps,
        bottleneck_step=None if is_feed_bottleneck else slowest,
        raw_material_uph=feed,
        is_raw_material_bottleneck=is_feed_bottleneck,
        system_throughput_uph=throughput,
        value_add_time_sec=value_add,
        total_waiting_time_sec=waiting,
        total_wip=total_wip,
        queue_time_sec=queue,
        total_lead_time_sec=lead_time,
        cell_balance_percent=safe_divide(value_add, len(steps) * max_ct) * 100.0,
        avg_utilization_percent=mean(s.avg_util_percent for s in steps),
        process_efficiency_percent=safe_divide(value_add, lead_time) * 100.0,
    )
    logger.debug(
        "Step analysis: %d operations over %d stations, throughput=%.1f UPH, feed constraint=%s",
        len(steps),
        len(stations),
        throughput,
        is_feed_bottleneck,
    )
    return analysis
