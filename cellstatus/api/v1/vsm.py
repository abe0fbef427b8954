"""Value stream map API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from cellstatus.core.config import settings
from cellstatus.core.rate_limit import rate_limit_strict
from cellstatus.schemas.vsm import VsmDocumentIn, VsmImportRequest, VsmMetricsRequest, WipSimulationRequest
from cellstatus.services.insights import build_insights
from cellstatus.services.sample_data import sample_vsm_document
from cellstatus.services.step_metrics import analyze_steps
from cellstatus.services.vsm_engine import WaitTimeMode, compute_vsm_metrics
from cellstatus.services.vsm_import import VsmImportError, document_from_model, parse_vsm_document
from cellstatus.services.wip_simulator import WipSimulationError, simulate_wip_flow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vsm", tags=["vsm"])


@router.post("/metrics")
async def vsm_metrics(payload: VsmMetricsRequest) -> dict:
    """Per-station metrics and the stream summary for a station list.

    Non-finite values (from degenerate inputs) are returned as null.
    """
    doc = document_from_model(payload)
    result = compute_vsm_metrics(
        doc.stations,
        raw_material_uph=doc.raw_material_uph,
        wait_time_mode=payload.wait_time_mode or WaitTimeMode(settings.VSM_WAIT_TIME_MODE),
        shift_hours=payload.shift_hours or settings.SHIFT_HOURS,
    )
    return result.to_dict()


@router.post("/steps")
async def vsm_steps(payload: VsmDocumentIn) -> dict:
    """Operation-level analysis (parallel stations combined) with improvement insights."""
    doc = document_from_model(payload)
    analysis = analyze_steps(doc.stations, doc.raw_material_uph, doc.operation_names)
    bottleneck = compute_vsm_metrics(doc.stations).bottleneck
    return {
        "analysis": analysis.to_dict(),
        "insights": [i.to_dict() for i in build_insights(analysis, bottleneck)],
    }


@router.post("/import")
async def import_vsm(payload: VsmImportRequest) -> dict:
    """Validate a VSM JSON file and return the normalized document with its metrics."""
    try:
        doc = parse_vsm_document(payload.content)
    except VsmImportError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    result = compute_vsm_metrics(
        doc.stations,
        raw_material_uph=doc.raw_material_uph,
        wait_time_mode=WaitTimeMode(settings.VSM_WAIT_TIME_MODE),
        shift_hours=settings.SHIFT_HOURS,
    )
    return {"document": doc.to_dict(), "metrics": result.to_dict()}


@router.post("/simulate", dependencies=[Depends(rate_limit_strict)])
async def simulate_wip(payload: WipSimulationRequest) -> dict:
    """Run the WIP flow simulation over the document's operations."""
    doc = document_from_model(payload)
    if not doc.stations:
        raise HTTPException(status_code=422, detail="At least one station is required")

    analysis = analyze_steps(doc.stations, doc.raw_material_uph, doc.operation_names)
    try:
        result = await run_in_threadpool(
            simulate_wip_flow,
            analysis,
            duration_sec=payload.duration_sec,
            speed=payload.speed,
            snapshot_every_sec=payload.snapshot_every_sec,
        )
    except WipSimulationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return result.to_dict()


@router.get("/sample")
async def sample_vsm() -> dict:
    """The bundled gear-line sample document."""
    return sample_vsm_document()
