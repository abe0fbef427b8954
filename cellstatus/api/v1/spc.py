"""SPC API endpoints: statistics, chart geometry and characteristic reports."""

from fastapi import APIRouter, Depends, HTTPException

from cellstatus.core.config import settings
from cellstatus.core.rate_limit import rate_limit_strict
from cellstatus.schemas.spc import HistogramRequest, RunChartRequest, SpcReportRequest, SpcValuesRequest
from cellstatus.services.chart_geometry import compute_histogram, compute_run_chart, normal_curve
from cellstatus.services.numeric import finite_or_none
from cellstatus.services.spc_engine import (
    SpcInputError,
    SpcStats,
    classify_capability,
    compute_spc_stats,
    numeric_values,
    parse_measurement,
)
from cellstatus.services.spc_report import build_characteristic_report, build_spc_reports

router = APIRouter(prefix="/spc", tags=["spc"])


def _check_size(count: int) -> None:
    if count > settings.SPC_MAX_SAMPLES:
        raise HTTPException(
            status_code=422,
            detail=f"Too many samples: {count} (max {settings.SPC_MAX_SAMPLES})",
        )


def _stats_dict(stats: SpcStats | None) -> dict | None:
    if stats is None:
        return None
    status = classify_capability(stats.cpk, settings.SPC_CPK_CAPABLE, settings.SPC_CPK_MARGINAL)
    return {**stats.to_dict(), "status": status.value}


@router.post("/stats")
async def spc_stats(payload: SpcValuesRequest) -> dict:
    """Descriptive statistics and capability indices.

    Non-numeric values are dropped; ``stats`` is null when none remain.
    """
    _check_size(len(payload.values))
    values = numeric_values(payload.values)
    usl, lsl = payload.limits.resolve()
    return {
        "stats": _stats_dict(compute_spc_stats(values, usl, lsl)),
        "dropped": len(payload.values) - len(values),
    }


@router.post("/histogram")
async def spc_histogram(payload: HistogramRequest) -> dict:
    """Histogram bins plus the fitted normal curve, scaled to counts."""
    _check_size(len(payload.values))
    values = numeric_values(payload.values)
    stats = compute_spc_stats(values)
    curve = normal_curve(values, stats.mean, stats.std_dev, payload.bins) if stats else []
    return {
        "bins": [b.to_dict() for b in compute_histogram(values, payload.bins)],
        "curve": [{"x": finite_or_none(x), "y": finite_or_none(y)} for x, y in curve],
    }


@router.post("/run-chart")
async def spc_run_chart(payload: RunChartRequest) -> dict:
    """Run chart coordinates, ordered by timestamp, with reference lines."""
    _check_size(len(payload.samples))
    parsed = [(s.timestamp, parse_measurement(s.value)) for s in payload.samples]
    kept = [(ts, v) for ts, v in parsed if v is not None]
    values = [v for _, v in kept]
    usl, lsl = payload.limits.resolve()

    stats = compute_spc_stats(values, usl, lsl)
    if stats is None:
        return {"runChart": None}

    chart = compute_run_chart(
        values,
        usl,
        lsl,
        stats.mean,
        stats.std_dev,
        timestamps=[ts for ts, _ in kept],
        width=payload.width,
        height=payload.height,
    )
    return {"runChart": chart.to_dict() if chart else None}


@router.post("/report", dependencies=[Depends(rate_limit_strict)])
async def spc_report(payload: SpcReportRequest) -> dict:
    """Full characteristic reports: stats, histogram, run chart and data table."""
    _check_size(len(payload.records))
    samples = [r.to_sample() for r in payload.records]
    thresholds = {"capable": settings.SPC_CPK_CAPABLE, "marginal": settings.SPC_CPK_MARGINAL}

    if payload.limits is not None:
        usl, lsl = payload.limits.resolve()
        try:
            reports = [build_characteristic_report(samples, usl, lsl, **thresholds)]
        except SpcInputError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
    else:
        reports = build_spc_reports(samples, payload.group_by, **thresholds)
        if not reports:
            raise HTTPException(status_code=422, detail="No numeric measured values to chart")

    return {"reports": [r.to_dict() for r in reports]}
