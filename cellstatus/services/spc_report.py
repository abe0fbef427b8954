"""Per-characteristic SPC reports built from raw measurement records.

A report bundles statistics, histogram bins, the normal-curve overlay, the
run chart and a per-sample data table for one characteristic. Records are
grouped by (part, characteristic) or (machine, characteristic).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from cellstatus.services.chart_geometry import (
    HistogramBin,
    RunChart,
    compute_histogram,
    compute_run_chart,
    normal_curve,
)
from cellstatus.services.numeric import finite_or_none
from cellstatus.services.spc_engine import (
    CPK_CAPABLE,
    CPK_MARGINAL,
    SpcInputError,
    SpcStats,
    classify_capability,
    compute_spc_stats,
    deviation,
    is_out_of_tolerance,
    normalize_spec_limits,
    out_of_tolerance_amount,
    parse_measurement,
)

logger = logging.getLogger(__name__)

UNKNOWN_CHARACTERISTIC = "(unknown)"


class GroupBy(str, Enum):
    PART = "part"
    MACHINE = "machine"


@dataclass
class MeasurementSample:
    """One measurement record. Identifiers are carried for display only."""

    value: Any
    timestamp: datetime
    note: str | None = None
    machine_id: str | None = None
    machine_name: str | None = None
    part_number: str | None = None
    part_name: str | None = None
    char_number: str | None = None
    char_name: str | None = None
    op_name: str | None = None
    char_max: Any = None
    char_min: Any = None

    @property
    def characteristic_key(self) -> str:
        return self.char_number or self.char_name or UNKNOWN_CHARACTERISTIC


@dataclass
class ReportRow:
    index: int
    timestamp: datetime
    machine: str | None
    value: float
    deviation: float | None
    out_of_tol: bool
    out_of_tol_amount: float
    note: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "timestamp": self.timestamp.isoformat(),
            "machine": self.machine,
            "value": self.value,
            "deviation": finite_or_none(self.deviation),
            "outOfTol": self.out_of_tol,
            "outOfTolAmount": finite_or_none(self.out_of_tol_amount) if self.out_of_tol else None,
            "note": self.note,
        }


@dataclass
class SpcReport:
    group_key: str
    char_number: str
    char_name: str
    part_number: str
    part_name: str
    op_name: str
    stats: SpcStats
    histogram: list[HistogramBin] = field(default_factory=list)
    curve: list[tuple[float, float]] = field(default_factory=list)
    run_chart: RunChart | None = None
    rows: list[ReportRow] = field(default_factory=list)
    capable_threshold: float = CPK_CAPABLE
    marginal_threshold: float = CPK_MARGINAL

    @property
    def title(self) -> str:
        title = f"SPC Report: Char #{self.char_number}"
        if self.char_name:
            title += f" ({self.char_name})"
        return title

    def to_dict(self) -> dict[str, Any]:
        status = classify_capability(self.stats.cpk, self.capable_threshold, self.marginal_threshold)
        return {
            "title": self.title,
            "groupKey": self.group_key,
            "charNumber": self.char_number,
            "charName": self.char_name,
            "partNumber": self.part_number,
            "partName": self.part_name,
            "opName": self.op_name,
            "stats": {**self.stats.to_dict(), "status": status.value},
            "histogram": [b.to_dict() for b in self.histogram],
            "curve": [{"x": finite_or_none(x), "y": finite_or_none(y)} for x, y in self.curve],
            "runChart": self.run_chart.to_dict() if self.run_chart else None,
            "rows": [r.to_dict() for r in self.rows],
        }


def group_samples(
    samples: list[MeasurementSample], group_by: GroupBy = GroupBy.PART
) -> dict[tuple[str, str], list[MeasurementSample]]:
    """Group records by (part or machine, characteristic), keeping input order."""
    groups: dict[tuple[str, str], list[MeasurementSample]] = defaultdict(list)
    for s in samples:
        owner = s.part_number if GroupBy(group_by) is GroupBy.PART else s.machine_id
        groups[(owner or "", s.characteristic_key)].append(s)
    return dict(groups)


def build_characteristic_report(
    samples: list[MeasurementSample],
    usl: float | None = None,
    lsl: float | None = None,
    group_key: str = "",
    capable: float = CPK_CAPABLE,
    marginal: float = CPK_MARGINAL,
) -> SpcReport:
    """Build the report for one characteristic.

    Limits default to the first record's stored max/min (with the zero-LSL
    convention). Raises SpcInputError when no record has a numeric value.
    """
    ordered = sorted(samples, key=lambda s: s.timestamp)
    numeric = [(s, v) for s in ordered if (v := parse_measurement(s.value)) is not None]
    if not numeric:
        raise SpcInputError("No numeric measured values to chart")

    if usl is None and lsl is None and samples:
        usl, lsl = normalize_spec_limits(samples[0].char_max, samples[0].char_min)

    values = [v for _, v in numeric]
    stats = compute_spc_stats(values, usl, lsl)

    rows = [
        ReportRow(
            index=i + 1,
            timestamp=s.timestamp,
            machine=s.machine_name or s.machine_id,
            value=v,
            deviation=deviation(v, usl, lsl),
            out_of_tol=is_out_of_tolerance(v, usl, lsl),
            out_of_tol_amount=out_of_tolerance_amount(v, usl, lsl),
            note=s.note or "",
        )
        for i, (s, v) in enumerate(numeric)
    ]

    first = samples[0]
    report = SpcReport(
        group_key=group_key,
        char_number=first.char_number or first.characteristic_key,
        char_name=first.char_name or "",
        part_number=first.part_number or "",
        part_name=first.part_name or "",
        op_name=first.op_name or "",
        stats=stats,
        histogram=compute_histogram(values),
        curve=normal_curve(values, stats.mean, stats.std_dev),
        run_chart=compute_run_chart(
            values, usl, lsl, stats.mean, stats.std_dev, timestamps=[s.timestamp for s, _ in numeric]
        ),
        rows=rows,
        capable_threshold=capable,
        marginal_threshold=marginal,
    )
    skipped = len(samples) - len(numeric)
    if skipped:
        logger.info("SPC report %s: dropped %d non-numeric records", report.char_number, skipped)
    return report


def build_spc_reports(
    samples: list[MeasurementSample],
    group_by: GroupBy = GroupBy.PART,
    capable: float = CPK_CAPABLE,
    marginal: float = CPK_MARGINAL,
) -> list[SpcReport]:
    """One report per characteristic group; groups without numeric data are skipped."""
    reports = []
    for (owner, char_key), items in group_samples(samples, group_by).items():
        key = f"{owner}/{char_key}"
        try:
            reports.append(
                build_characteristic_report(items, group_key=key, capable=capable, marginal=marginal)
            )
        except SpcInputError:
            logger.warning("Skipping SPC group %s: no numeric values in %d records", key, len(items))
    return reports
