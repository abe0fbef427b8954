"""Improvement insights derived from a value stream analysis.

Applies the Theory of Constraints reading of the metrics: name the
constraint, project what elevating it would gain, and flag imbalance,
idle capacity and excess WIP.
"""

from dataclasses import dataclass, field, replace
from typing import Any

from cellstatus.services.numeric import finite_or_none, format_duration, format_metric, safe_divide
from cellstatus.services.step_metrics import StepAnalysis
from cellstatus.services.vsm_engine import SECONDS_PER_HOUR, StationMetrics, compute_station_metrics

LOW_CELL_BALANCE_PERCENT = 70.0
UNDERUTILIZED_PERCENT = 50.0
HIGH_WIP_PER_OPERATION = 10.0
CYCLE_TIME_REDUCTION = 0.2


@dataclass
class Insight:
    """A single finding with the operations it concerns."""

    kind: str
    message: str
    steps: list[int] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "steps": self.steps, "data": self.data}


def project_bottleneck_improvements(bottleneck: StationMetrics) -> dict[str, float | None]:
    """Rates (units/sec) the bottleneck would reach after typical improvements.

    Projections keep setup amortisation and uptime, so they compare
    directly with the current rate.
    """
    s = bottleneck.station
    more_operators = replace(s, operators=s.operators + 1)
    faster_cycle = replace(s, cycle_time=s.cycle_time * (1 - CYCLE_TIME_REDUCTION))
    return {
        "currentRate": finite_or_none(bottleneck.rate),
        "addOperatorRate": finite_or_none(compute_station_metrics(more_operators).rate),
        "reducedCycleTimeRate": finite_or_none(compute_station_metrics(faster_cycle).rate),
    }


def build_insights(analysis: StepAnalysis, bottleneck: StationMetrics | None = None) -> list[Insight]:
    """Collect findings for an operation-level analysis."""
    insights: list[Insight] = []
    if not analysis.steps:
        return insights

    if analysis.is_raw_material_bottleneck:
        insights.append(
            Insight(
                kind="raw_material_constraint",
                message=(
                    f"Raw material supply ({analysis.raw_material_uph:g} UPH) limits the system; "
                    "every operation has spare capacity."
                ),
                data={"rawMaterialUPH": analysis.raw_material_uph},
            )
        )
    elif analysis.bottleneck_step is not None:
        bn = analysis.bottleneck_step
        data: dict[str, Any] = {"combinedRateUPH": finite_or_none(bn.combined_rate_uph, 1)}
        if bottleneck is not None:
            data.update(project_bottleneck_improvements(bottleneck))
        rate = format_metric(bn.combined_rate_uph, 0, " UPH")
        insights.append(
            Insight(
                kind="bottleneck",
                message=f"Op {bn.step} ({bn.name}) limits the system to {rate}.",
                steps=[bn.step],
                data=data,
            )
        )

    if analysis.cell_balance_percent < LOW_CELL_BALANCE_PERCENT:
        balance = format_metric(analysis.cell_balance_percent, 1, "%")
        insights.append(
            Insight(
                kind="low_cell_balance",
                message=f"Operations are imbalanced (cell balance {balance}).",
                data={"cellBalancePercent": finite_or_none(analysis.cell_balance_percent, 1)},
            )
        )

    bottleneck_step = analysis.bottleneck_step.step if analysis.bottleneck_step else None
    idle = [
        s
        for s in analysis.steps
        if s.avg_util_percent < UNDERUTILIZED_PERCENT and s.step != bottleneck_step
    ]
    if idle:
        insights.append(
            Insight(
                kind="underutilized",
                message="Operations with significant excess capacity: "
                + ", ".join(f"Op {s.step} ({format_metric(s.avg_util_percent, 0, '%')})" for s in idle),
                steps=[s.step for s in idle],
                data={
                    "spareUPH": {
                        str(s.step): finite_or_none(
                            s.combined_rate_uph - analysis.system_throughput_uph, 1
                        )
                        for s in idle
                    }
                },
            )
        )

    if analysis.total_wip > len(analysis.steps) * HIGH_WIP_PER_OPERATION:
        queue = safe_divide(analysis.total_wip, analysis.system_throughput_uph) * SECONDS_PER_HOUR
        insights.append(
            Insight(
                kind="high_wip",
                message=(
                    f"Total WIP of {analysis.total_wip:g} units adds an estimated "
                    f"{format_duration(queue)} of queue time."
                ),
                data={"totalWip": analysis.total_wip, "queueTimeSec": finite_or_none(queue, 1)},
            )
        )

    return insights
