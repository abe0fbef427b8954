"""Tests for request schema validation."""

from datetime import timezone

import pytest
from pydantic import ValidationError

from cellstatus.schemas import (
    MeasurementSampleIn,
    RunChartRequest,
    SpcReportRequest,
    SpecLimitsIn,
    StationIn,
    VsmDocumentIn,
    VsmMetricsRequest,
    WipSimulationRequest,
)
from cellstatus.services.spc_report import GroupBy
from cellstatus.services.vsm_engine import WaitTimeMode


class TestStationIn:
    def test_camel_case_fields(self):
        station = StationIn.model_validate(
            {"id": "a", "name": "Hob", "cycleTime": 191, "setupTime": 30, "batchSize": 5, "uptimePercent": 90}
        )
        assert station.cycle_time == 191
        assert station.setup_time == 30
        assert station.uptime_percent == 90

    def test_defaults(self):
        station = StationIn(name="Hob", cycle_time=191)
        assert (station.setup_time, station.batch_size, station.operators, station.uptime_percent) == (0, 1, 1, 100)
        assert station.process_step == 1
        assert station.id

    def test_null_optional_numbers_use_defaults(self):
        station = StationIn.model_validate({"name": "Hob", "cycleTime": 10, "batchSize": None, "setupTime": None})
        assert station.batch_size == 1
        assert station.setup_time == 0

    @pytest.mark.parametrize(
        "field,value",
        [
            ("cycleTime", 0),
            ("cycleTime", -5),
            ("setupTime", -1),
            ("batchSize", 0.5),
            ("operators", 0),
            ("uptimePercent", 0),
            ("uptimePercent", 100.1),
        ],
    )
    def test_invariants(self, field, value):
        data = {"name": "Hob", "cycleTime": 10, field: value}
        with pytest.raises(ValidationError):
            StationIn.model_validate(data)

    def test_to_station(self):
        station = StationIn.model_validate(
            {"id": "a", "name": "Hob", "cycleTime": 191, "processStep": 20, "machineIdDisplay": "234628"}
        ).to_station()
        assert station.process_step == 20
        assert station.machine_id_display == "234628"


class TestVsmDocumentIn:
    def test_operation_name_keys_become_ints(self):
        doc = VsmDocumentIn.model_validate({"stations": [], "operationNames": {"70": "Heat Treat"}})
        assert doc.operation_names == {70: "Heat Treat"}

    def test_null_operation_names(self):
        doc = VsmDocumentIn.model_validate({"stations": [], "operationNames": None})
        assert doc.operation_names == {}

    def test_negative_feed_rejected(self):
        with pytest.raises(ValidationError):
            VsmDocumentIn.model_validate({"stations": [], "rawMaterialUPH": -1})

    def test_metrics_request_wait_mode(self):
        req = VsmMetricsRequest.model_validate({"stations": [], "waitTimeMode": "step"})
        assert req.wait_time_mode is WaitTimeMode.STEP

    def test_metrics_request_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            VsmMetricsRequest.model_validate({"stations": [], "waitTimeMode": "diagonal"})

    def test_simulation_bounds(self):
        assert WipSimulationRequest.model_validate({"stations": []}).duration_sec == 60
        with pytest.raises(ValidationError):
            WipSimulationRequest.model_validate({"stations": [], "durationSec": 0})
        with pytest.raises(ValidationError):
            WipSimulationRequest.model_validate({"stations": [], "speed": 1000})


class TestSpecLimitsIn:
    def test_explicit_limits(self):
        assert SpecLimitsIn(char_max="10.5", char_min="9.5").resolve() == (10.5, 9.5)

    def test_zero_min_means_no_lower_limit(self):
        assert SpecLimitsIn.model_validate({"charMax": 0.8, "charMin": "0"}).resolve() == (0.8, None)

    def test_nominal_plus_minus(self):
        assert SpecLimitsIn.model_validate({"nominal": 10, "plusMinus": 0.5}).resolve() == (10.5, 9.5)

    def test_empty(self):
        assert SpecLimitsIn().resolve() == (None, None)

    def test_nominal_requires_tolerance(self):
        with pytest.raises(ValidationError):
            SpecLimitsIn(nominal=10)

    def test_both_forms_rejected(self):
        with pytest.raises(ValidationError):
            SpecLimitsIn(nominal=10, plus_minus=0.5, char_max=11)


class TestSpcReportRequest:
    def test_record_aliases(self):
        req = SpcReportRequest.model_validate(
            {
                "records": [
                    {
                        "measuredValue": "10.02",
                        "createdAt": "2025-03-03T08:00:00Z",
                        "charNumber": "4",
                        "charMax": "10.5",
                        "charMin": "9.5",
                        "recordNote": "first-off",
                    }
                ],
                "groupBy": "machine",
            }
        )
        sample = req.records[0].to_sample()

        assert req.group_by is GroupBy.MACHINE
        assert sample.value == "10.02"
        assert sample.char_number == "4"
        assert sample.note == "first-off"
        assert sample.timestamp.year == 2025

    def test_records_required(self):
        with pytest.raises(ValidationError):
            SpcReportRequest.model_validate({"records": []})

    def test_naive_created_at_read_as_utc(self):
        record = MeasurementSampleIn.model_validate({"measuredValue": 1, "createdAt": "2025-03-03T08:00:00"})
        assert record.created_at.tzinfo is timezone.utc
        assert record.created_at.hour == 8


class TestRunChartRequest:
    def test_naive_timestamp_read_as_utc(self):
        req = RunChartRequest.model_validate(
            {
                "samples": [
                    {"value": 1, "timestamp": "2025-03-03T08:00:00"},
                    {"value": 2, "timestamp": "2025-03-03T09:00:00+02:00"},
                ]
            }
        )
        assert req.samples[0].timestamp.tzinfo is timezone.utc
        assert req.samples[1].timestamp < req.samples[0].timestamp
