"""SPC Pydantic schemas."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cellstatus.services.spc_engine import limits_from_tolerance, normalize_spec_limits
from cellstatus.services.spc_report import GroupBy, MeasurementSample


def _assume_utc(value: datetime) -> datetime:
    """Naive timestamps are read as UTC so mixed inputs stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SpecLimitsIn(BaseModel):
    """Spec limits as entered: explicit max/min or nominal ± tolerance.

    A minimum of 0 means the characteristic has no lower limit.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    char_max: float | str | None = Field(default=None, description="Upper spec limit")
    char_min: float | str | None = Field(default=None, description="Lower spec limit; 0 means none")
    nominal: float | None = None
    plus_minus: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _tolerance_or_limits(self) -> "SpecLimitsIn":
        if (self.nominal is None) != (self.plus_minus is None):
            raise ValueError("nominal and plusMinus must be given together")
        if self.nominal is not None and (self.char_max is not None or self.char_min is not None):
            raise ValueError("give either charMax/charMin or nominal/plusMinus, not both")
        return self

    def resolve(self) -> tuple[float | None, float | None]:
        """(usl, lsl) after the zero-LSL convention."""
        if self.nominal is not None and self.plus_minus is not None:
            usl, lsl = limits_from_tolerance(self.nominal, self.plus_minus)
            return normalize_spec_limits(usl, lsl)
        return normalize_spec_limits(self.char_max, self.char_min)


class SpcValuesRequest(BaseModel):
    """Raw measured values (numbers or free text) plus spec limits."""

    values: list[Any] = Field(..., max_length=10000)
    limits: SpecLimitsIn = Field(default_factory=SpecLimitsIn)


class HistogramRequest(SpcValuesRequest):
    bins: int | None = Field(default=None, le=1000, description="Bin count; Sturges' rule when omitted")


class RunChartSample(BaseModel):
    value: Any
    timestamp: datetime

    _utc_timestamp = field_validator("timestamp")(_assume_utc)


class RunChartRequest(BaseModel):
    samples: list[RunChartSample] = Field(..., max_length=10000)
    limits: SpecLimitsIn = Field(default_factory=SpecLimitsIn)
    width: float = Field(default=720, gt=100, le=4000)
    height: float = Field(default=300, gt=120, le=4000)


class MeasurementSampleIn(BaseModel):
    """One measurement record as exported from the audit findings table."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    measured_value: Any = Field(..., description="Numeric value or free text")
    created_at: datetime
    record_note: str | None = None
    machine_id: str | None = None
    machine_name: str | None = None
    part_number: str | None = None
    part_name: str | None = None
    char_number: str | None = None
    char_name: str | None = None
    op_name: str | None = None
    char_max: float | str | None = None
    char_min: float | str | None = None

    _utc_created_at = field_validator("created_at")(_assume_utc)

    def to_sample(self) -> MeasurementSample:
        return MeasurementSample(
            value=self.measured_value,
            timestamp=self.created_at,
            note=self.record_note,
            machine_id=self.machine_id,
            machine_name=self.machine_name,
            part_number=self.part_number,
            part_name=self.part_name,
            char_number=self.char_number,
            char_name=self.char_name,
            op_name=self.op_name,
            char_max=self.char_max,
            char_min=self.char_min,
        )


class SpcReportRequest(BaseModel):
    """Records for one or more characteristics.

    With ``limits`` every record is treated as one characteristic against
    those limits; otherwise records are grouped and each group uses the
    limits stored on its first record.
    """

    model_config = ConfigDict(populate_by_name=True)

    records: list[MeasurementSampleIn] = Field(..., min_length=1, max_length=10000)
    group_by: GroupBy = Field(default=GroupBy.PART, alias="groupBy")
    limits: SpecLimitsIn | None = None
