"""Value stream map Pydantic schemas."""

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cellstatus.services.vsm_engine import Station, WaitTimeMode


class StationIn(BaseModel):
    """A station as it appears in the VSM interchange JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(..., max_length=200)
    cycle_time: float = Field(..., gt=0, description="Seconds per unit")
    setup_time: float = Field(default=0.0, ge=0, description="Seconds per setup")
    batch_size: float = Field(default=1.0, ge=1, description="Units per setup")
    operators: float = Field(default=1.0, ge=1)
    uptime_percent: float = Field(default=100.0, gt=0, le=100)
    process_step: int = Field(default=1, ge=0)
    machine_id: str | None = None
    machine_id_display: str | None = None
    wip_before: float = Field(default=0.0, ge=0, description="Units queued in front of the station")

    @field_validator("process_step", mode="before")
    @classmethod
    def _missing_step_is_first(cls, v: Any) -> Any:
        return 1 if v in (None, 0, "0", "") else v

    @field_validator("setup_time", "batch_size", "operators", "uptime_percent", "wip_before", mode="before")
    @classmethod
    def _null_means_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].default
        return v

    def to_station(self) -> Station:
        return Station(
            id=self.id,
            name=self.name,
            cycle_time=self.cycle_time,
            process_step=self.process_step,
            setup_time=self.setup_time,
            batch_size=self.batch_size,
            operators=self.operators,
            uptime_percent=self.uptime_percent,
            machine_id=self.machine_id,
            machine_id_display=self.machine_id_display,
            wip_before=self.wip_before,
        )


class VsmDocumentIn(BaseModel):
    """A VSM document: stations plus optional operation names and feed rate.

    Accepts a bare station list, ``{"stations": [...]}`` or the saved
    configuration shape ``{"stationsJson": [...]}``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    stations: list[StationIn] = Field(default_factory=list)
    operation_names: dict[int, str] = Field(default_factory=dict, alias="operationNames")
    raw_material_uph: float | None = Field(default=None, ge=0, alias="rawMaterialUPH")

    @model_validator(mode="before")
    @classmethod
    def _accept_alternate_shapes(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"stations": data}
        if isinstance(data, dict) and "stations" not in data and "stationsJson" in data:
            data = {**data, "stations": data["stationsJson"]}
        if isinstance(data, dict) and "operationNames" in data and data["operationNames"] is None:
            data = {**data, "operationNames": {}}
        return data

    def to_stations(self) -> list[Station]:
        return [s.to_station() for s in self.stations]


class VsmMetricsRequest(VsmDocumentIn):
    """Schema for a metrics computation request."""

    wait_time_mode: WaitTimeMode | None = Field(
        default=None, alias="waitTimeMode", description="station (list adjacency) or step (grouped)"
    )
    shift_hours: float | None = Field(default=None, gt=0, le=24, alias="shiftHours")


class WipSimulationRequest(VsmDocumentIn):
    """Schema for a WIP flow simulation run."""

    duration_sec: float = Field(default=60.0, gt=0, le=86400, alias="durationSec")
    speed: float = Field(default=1.0, gt=0, le=100)
    snapshot_every_sec: float | None = Field(default=None, gt=0, alias="snapshotEverySec")


class VsmImportRequest(BaseModel):
    """Raw JSON text of a VSM file, as uploaded or pasted."""

    content: str = Field(..., min_length=1, max_length=1_000_000)
