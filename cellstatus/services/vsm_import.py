"""Parsing of VSM interchange documents into engine stations."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from cellstatus.schemas.vsm import VsmDocumentIn
from cellstatus.services.vsm_engine import Station

logger = logging.getLogger(__name__)


class VsmImportError(ValueError):
    """Raised when a VSM document is not valid JSON or has invalid stations."""


@dataclass
class VsmDocument:
    """Validated VSM document ready for the engines."""

    stations: list[Station] = field(default_factory=list)
    operation_names: dict[int, str] = field(default_factory=dict)
    raw_material_uph: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the interchange JSON shape."""
        stations = []
        for s in self.stations:
            item: dict[str, Any] = {
                "id": s.id,
                "name": s.name,
                "cycleTime": s.cycle_time,
                "setupTime": s.setup_time,
                "batchSize": s.batch_size,
                "operators": s.operators,
                "uptimePercent": s.uptime_percent,
                "processStep": s.process_step,
            }
            if s.machine_id is not None:
                item["machineId"] = s.machine_id
            if s.machine_id_display is not None:
                item["machineIdDisplay"] = s.machine_id_display
            if s.wip_before:
                item["wipBefore"] = s.wip_before
            stations.append(item)
        return {
            "stations": stations,
            "operationNames": {str(k): v for k, v in self.operation_names.items()},
            "rawMaterialUPH": self.raw_material_uph,
        }


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def document_from_model(model: VsmDocumentIn) -> VsmDocument:
    return VsmDocument(
        stations=model.to_stations(),
        operation_names=dict(model.operation_names),
        raw_material_uph=model.raw_material_uph or None,
    )


def parse_vsm_document(raw: str | bytes | dict | list) -> VsmDocument:
    """Parse JSON text or a decoded object into a validated document.

    Raises VsmImportError for malformed JSON, an unexpected top-level type,
    or stations that violate the data model.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise VsmImportError(f"Invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})") from exc

    if not isinstance(raw, (dict, list)):
        raise VsmImportError("VSM document must be a JSON object or a list of stations")

    try:
        model = VsmDocumentIn.model_validate(raw)
    except ValidationError as exc:
        raise VsmImportError(f"Invalid VSM document: {_format_errors(exc)}") from exc

    doc = document_from_model(model)
    logger.info(
        "Imported VSM document: %d stations, %d operation names, raw material %s UPH",
        len(doc.stations),
        len(doc.operation_names),
        doc.raw_material_uph,
    )
    return doc
