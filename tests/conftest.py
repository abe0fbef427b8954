"""Pytest configuration with shared factories and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from cellstatus.core.rate_limit import _memory_limiter
from cellstatus.services.spc_report import MeasurementSample
from cellstatus.services.vsm_engine import Station

BASE_TIME = datetime(2025, 3, 3, 6, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Test Data Factories
# ---------------------------------------------------------------------------


class StationFactory:
    """Factory for creating engine Station records."""

    _counter = 0

    @classmethod
    def create(cls, **overrides: Any) -> Station:
        cls._counter += 1
        defaults = {
            "id": f"st-{cls._counter:03d}",
            "name": f"Station {cls._counter}",
            "cycle_time": 10.0,
            "process_step": cls._counter,
        }
        return Station(**{**defaults, **overrides})

    @classmethod
    def line(cls, cycle_times: list[float], **overrides: Any) -> list[Station]:
        """Sequential stations, one per process step."""
        return [cls.create(cycle_time=ct, **overrides) for ct in cycle_times]


class MeasurementFactory:
    """Factory for creating SPC measurement records, one hour apart."""

    _counter = 0

    @classmethod
    def create(cls, value: Any, **overrides: Any) -> MeasurementSample:
        cls._counter += 1
        defaults = {
            "value": value,
            "timestamp": BASE_TIME + timedelta(hours=cls._counter),
            "machine_id": "m-1",
            "machine_name": "Lathe 617671",
            "part_number": "GEAR-22",
            "part_name": "Output gear",
            "char_number": "4",
            "char_name": "Bore diameter",
            "op_name": "Op 10",
            "char_max": "10.5",
            "char_min": "9.5",
        }
        return MeasurementSample(**{**defaults, **overrides})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def station_factory():
    """Provide StationFactory for tests."""
    StationFactory._counter = 0
    return StationFactory


@pytest.fixture
def measurement_factory():
    """Provide MeasurementFactory for tests."""
    MeasurementFactory._counter = 0
    return MeasurementFactory


@pytest.fixture
def three_stations(station_factory):
    """Cycle times 10, 20, 15 seconds with default setup, batch, operators and uptime."""
    return station_factory.line([10.0, 20.0, 15.0])


@pytest.fixture
def parallel_line(station_factory):
    """Four operations; the second runs on two parallel machines.

    Rates: Op 10 = 100 UPH, Op 20 = 2 x 40 UPH, Op 30 = 120 UPH.
    """
    return [
        station_factory.create(name="Saw", cycle_time=36.0, process_step=10),
        station_factory.create(name="Mill A", cycle_time=90.0, process_step=20),
        station_factory.create(name="Mill B", cycle_time=90.0, process_step=20),
        station_factory.create(name="Deburr", cycle_time=30.0, process_step=30),
    ]


@pytest.fixture
def spc_values():
    return [9.8, 10.0, 10.1, 9.9, 10.2]


@pytest.fixture
def mock_request():
    """Provide a factory for mock Starlette requests."""

    def _make(ip: str = "10.0.0.1", forwarded: str | None = None) -> MagicMock:
        request = MagicMock()
        request.headers = {"X-Forwarded-For": forwarded} if forwarded else {}
        request.client.host = ip
        return request

    return _make


@pytest.fixture(autouse=True)
def _reset_memory_limiter():
    _memory_limiter.reset()
    yield
    _memory_limiter.reset()
