"""Tests for characteristic SPC reports."""

from datetime import timedelta

import pytest

from cellstatus.services.spc_engine import SpcInputError
from cellstatus.services.spc_report import (
    GroupBy,
    build_characteristic_report,
    build_spc_reports,
    group_samples,
)


@pytest.fixture
def bore_samples(measurement_factory):
    return [measurement_factory.create(v) for v in ("9.8", "10.0", "10.1", "9.9", "10.2")]


class TestGrouping:
    def test_group_by_part(self, measurement_factory):
        samples = [
            measurement_factory.create(1, char_number="4"),
            measurement_factory.create(2, char_number="5"),
            measurement_factory.create(3, char_number="4", machine_id="m-2"),
        ]
        groups = group_samples(samples, GroupBy.PART)

        assert set(groups) == {("GEAR-22", "4"), ("GEAR-22", "5")}
        assert len(groups[("GEAR-22", "4")]) == 2

    def test_group_by_machine(self, measurement_factory):
        samples = [
            measurement_factory.create(1),
            measurement_factory.create(2, machine_id="m-2"),
        ]
        groups = group_samples(samples, "machine")
        assert set(groups) == {("m-1", "4"), ("m-2", "4")}

    def test_characteristic_falls_back_to_name(self, measurement_factory):
        samples = [
            measurement_factory.create(1, char_number=None),
            measurement_factory.create(2, char_number=None, char_name=None),
        ]
        keys = {key for _, key in group_samples(samples)}
        assert keys == {"Bore diameter", "(unknown)"}


class TestCharacteristicReport:
    def test_stats_from_stored_limits(self, bore_samples):
        report = build_characteristic_report(bore_samples)

        assert report.stats.n == 5
        assert report.stats.usl == 10.5
        assert report.stats.lsl == 9.5
        assert report.stats.cpk == pytest.approx(1.054, abs=1e-3)
        assert report.title == "SPC Report: Char #4 (Bore diameter)"

    def test_explicit_limits_override(self, bore_samples):
        report = build_characteristic_report(bore_samples, usl=10.15, lsl=9.85)
        assert report.stats.out_of_tol == 2

    def test_rows(self, bore_samples):
        report = build_characteristic_report(bore_samples)
        last = report.rows[-1]

        assert [r.index for r in report.rows] == [1, 2, 3, 4, 5]
        assert last.value == 10.2
        assert last.deviation == pytest.approx(0.2)
        assert last.out_of_tol is False
        assert last.machine == "Lathe 617671"

    def test_out_of_tolerance_row(self, measurement_factory):
        samples = [measurement_factory.create(v) for v in ("10.0", "10.8", "9.1")]
        rows = build_characteristic_report(samples).rows

        assert [r.out_of_tol for r in rows] == [False, True, True]
        assert rows[1].out_of_tol_amount == pytest.approx(0.3)
        assert rows[2].out_of_tol_amount == pytest.approx(0.4)

    def test_rows_ordered_by_time(self, measurement_factory, bore_samples):
        early = measurement_factory.create("9.7", timestamp=bore_samples[0].timestamp - timedelta(days=1))
        report = build_characteristic_report([*bore_samples, early])

        assert report.rows[0].value == 9.7
        assert report.run_chart.points[0].value == 9.7

    def test_non_numeric_dropped(self, measurement_factory, bore_samples):
        report = build_characteristic_report([*bore_samples, measurement_factory.create("n/a")])
        assert report.stats.n == 5
        assert len(report.rows) == 5

    def test_zero_min_is_one_sided(self, measurement_factory):
        samples = [measurement_factory.create(v, char_max="0.8", char_min="0") for v in (0.1, 0.2, 0.3, 0.9)]
        report = build_characteristic_report(samples)

        assert report.stats.lsl is None
        assert report.stats.out_of_tol == 1
        assert report.rows[0].deviation is None
        assert report.stats.cp is None
        assert report.stats.cpk is not None

    def test_charts_included(self, bore_samples):
        report = build_characteristic_report(bore_samples)

        assert sum(b.count for b in report.histogram) == 5
        assert len(report.curve) == 101
        assert len(report.run_chart.points) == 5

    def test_no_numeric_values(self, measurement_factory):
        with pytest.raises(SpcInputError):
            build_characteristic_report([measurement_factory.create("pass")])

    def test_custom_thresholds_in_status(self, bore_samples):
        data = build_characteristic_report(bore_samples, capable=1.0, marginal=0.5).to_dict()
        assert data["stats"]["status"] == "capable"

    def test_to_dict(self, bore_samples):
        data = build_characteristic_report(bore_samples, group_key="GEAR-22/4").to_dict()

        assert data["groupKey"] == "GEAR-22/4"
        assert data["partNumber"] == "GEAR-22"
        assert data["stats"]["status"] == "marginal"
        assert data["rows"][0]["outOfTolAmount"] is None
        assert data["runChart"]["width"] == 720


class TestBuildSpcReports:
    def test_one_report_per_characteristic(self, measurement_factory):
        samples = [measurement_factory.create(v, char_number="4") for v in (1, 2, 3)]
        samples += [measurement_factory.create(v, char_number="7", char_max="5", char_min="0") for v in (1, 2)]
        reports = build_spc_reports(samples)

        assert [r.char_number for r in reports] == ["4", "7"]
        assert reports[1].stats.lsl is None

    def test_groups_without_numbers_skipped(self, measurement_factory, caplog):
        samples = [measurement_factory.create(1.0), measurement_factory.create("OK", char_number="9")]
        with caplog.at_level("WARNING", logger="cellstatus.services.spc_report"):
            reports = build_spc_reports(samples)

        assert len(reports) == 1
        assert "Skipping SPC group" in caplog.text
