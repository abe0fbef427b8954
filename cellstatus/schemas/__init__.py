"""Pydantic v2 schemas for request/response validation."""

from cellstatus.schemas.spc import (
    HistogramRequest,
    MeasurementSampleIn,
    RunChartRequest,
    RunChartSample,
    SpcReportRequest,
    SpcValuesRequest,
    SpecLimitsIn,
)
from cellstatus.schemas.vsm import (
    StationIn,
    VsmDocumentIn,
    VsmImportRequest,
    VsmMetricsRequest,
    WipSimulationRequest,
)

__all__ = [
    "HistogramRequest",
    "MeasurementSampleIn",
    "RunChartRequest",
    "RunChartSample",
    "SpcReportRequest",
    "SpcValuesRequest",
    "SpecLimitsIn",
    "StationIn",
    "VsmDocumentIn",
    "VsmImportRequest",
    "VsmMetricsRequest",
    "WipSimulationRequest",
]
