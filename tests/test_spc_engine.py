"""Tests for the SPC statistics engine and measurement helpers."""

import math

import pytest

from cellstatus.services.spc_engine import (
    CapabilityStatus,
    classify_capability,
    compute_spc_stats,
    deviation,
    limits_from_tolerance,
    normalize_spec_limits,
    numeric_values,
    out_of_tolerance_amount,
    parse_measurement,
    tolerance_from_limits,
)


# ---------------------------------------------------------------------------
# compute_spc_stats
# ---------------------------------------------------------------------------


class TestComputeSpcStats:
    def test_symmetric_two_sided(self, spc_values):
        stats = compute_spc_stats(spc_values, usl=10.5, lsl=9.5)

        assert stats.n == 5
        assert stats.mean == pytest.approx(10.0)
        assert stats.std_dev == pytest.approx(0.1581, abs=1e-4)
        assert stats.cp == pytest.approx(1.054, abs=1e-3)
        assert stats.cpk == pytest.approx(1.054, abs=1e-3)
        assert stats.nominal == pytest.approx(10.0)
        assert stats.min == 9.8
        assert stats.max == 10.2
        assert stats.range == pytest.approx(0.4)
        assert stats.out_of_tol == 0

    def test_pp_uses_population_sigma(self, spc_values):
        stats = compute_spc_stats(spc_values, usl=10.5, lsl=9.5)

        assert stats.overall_std_dev == pytest.approx(math.sqrt(0.02))
        assert stats.pp == pytest.approx(1 / (6 * math.sqrt(0.02)))
        assert stats.ppk <= stats.pp

    @pytest.mark.parametrize(
        "values,usl,lsl",
        [
            ([9.8, 10.0, 10.1, 9.9, 10.2], 10.5, 9.5),
            ([10.3, 10.4, 10.35, 10.45, 10.38], 10.5, 9.5),
            ([1, 2, 3, 4, 5, 6], 8, 0.5),
            ([5.01, 4.99, 5.02, 4.98], 5.05, 4.9),
        ],
    )
    def test_centering_never_beats_spread(self, values, usl, lsl):
        stats = compute_spc_stats(values, usl, lsl)
        assert stats.cpk <= stats.cp + 1e-12
        assert stats.ppk <= stats.pp + 1e-12

    def test_off_center_process(self):
        stats = compute_spc_stats([10.3, 10.4, 10.35, 10.45, 10.38], usl=10.5, lsl=9.5)
        assert stats.cpk < stats.cp
        assert stats.cpk == pytest.approx((10.5 - stats.mean) / (3 * stats.std_dev))

    def test_usl_only_is_one_sided(self, spc_values):
        stats = compute_spc_stats(spc_values, usl=10.5, lsl=None)

        assert stats.cpk == pytest.approx(0.5 / (3 * stats.std_dev))
        assert stats.cp is None
        assert stats.pp is None
        assert stats.ppk is None
        assert stats.nominal is None

    def test_lsl_only_has_no_indices(self, spc_values):
        stats = compute_spc_stats(spc_values, usl=None, lsl=9.5)
        assert stats.cpk is None
        assert stats.cp is None

    def test_out_of_tolerance_count(self):
        stats = compute_spc_stats([9.0, 10.0, 11.0, 12.0], usl=11.5, lsl=9.5)
        assert stats.out_of_tol == 2

    def test_no_limits(self, spc_values):
        stats = compute_spc_stats(spc_values)
        assert stats.out_of_tol == 0
        assert stats.cpk is None

    def test_empty_returns_none(self):
        assert compute_spc_stats([], 10, 5) is None

    def test_single_value(self):
        stats = compute_spc_stats([4.2], usl=5, lsl=4)
        assert stats.std_dev == 0
        assert stats.cp is None
        assert stats.cpk is None

    def test_zero_spread_indices_absent(self):
        stats = compute_spc_stats([5.0, 5.0, 5.0], usl=6, lsl=4)
        assert stats.cp is None
        assert stats.pp is None
        assert stats.nominal == 5
        assert stats.to_dict()["cpk"] is None
        assert stats.status is CapabilityStatus.UNKNOWN

    def test_zero_lsl_convention(self):
        usl, lsl = normalize_spec_limits("0.8", "0")
        stats = compute_spc_stats([0.05, 0.1, 0.2, 0.9], usl, lsl)

        assert lsl is None
        assert stats.out_of_tol == 1

    def test_squared_deviation_overflow(self):
        stats = compute_spc_stats([1e200, -1e200], usl=1e201, lsl=-1e201)

        assert stats.n == 2
        assert stats.mean == 0
        assert math.isinf(stats.std_dev)
        assert stats.to_dict()["stdDev"] is None

    def test_sum_overflow(self):
        stats = compute_spc_stats([1e308, 1e308])
        assert stats.to_dict()["mean"] is None

    def test_to_dict(self, spc_values):
        data = compute_spc_stats(spc_values, 10.5, 9.5).to_dict()
        assert data["outOfTol"] == 0
        assert data["status"] == "marginal"
        assert data["stdDev"] == pytest.approx(0.1581, abs=1e-4)


# ---------------------------------------------------------------------------
# Measurement parsing and limits
# ---------------------------------------------------------------------------


class TestParseMeasurement:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("10.02", 10.02),
            ("10.02 mm", 10.02),
            (" -3e2", -300.0),
            (".5", 0.5),
            (7, 7.0),
            (7.25, 7.25),
        ],
    )
    def test_numeric(self, raw, expected):
        assert parse_measurement(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["", "OK", "n/a", None, True, float("nan"), float("inf"), [1]])
    def test_non_numeric(self, raw):
        assert parse_measurement(raw) is None

    def test_numeric_values_drops_text(self):
        assert numeric_values(["1.5", "pass", 2, None, "3"]) == [1.5, 2.0, 3.0]


class TestSpecLimits:
    def test_normalize(self):
        assert normalize_spec_limits("10.5", "9.5") == (10.5, 9.5)
        assert normalize_spec_limits(10.5, 0) == (10.5, None)
        assert normalize_spec_limits("", None) == (None, None)

    def test_negative_lsl_kept(self):
        assert normalize_spec_limits(1, -1) == (1, -1)

    def test_tolerance_round_trip(self):
        usl, lsl = limits_from_tolerance(10.0, 0.5)
        assert (usl, lsl) == (10.5, 9.5)
        assert tolerance_from_limits(usl, lsl) == (10.0, 0.5)

    def test_negative_tolerance_is_symmetric(self):
        assert limits_from_tolerance(10.0, -0.5) == (10.5, 9.5)

    def test_one_sided_has_no_tolerance(self):
        assert tolerance_from_limits(10.5, None) is None

    def test_out_of_tolerance_amount(self):
        assert out_of_tolerance_amount(10.7, 10.5, 9.5) == pytest.approx(0.2)
        assert out_of_tolerance_amount(9.2, 10.5, 9.5) == pytest.approx(0.3)
        assert out_of_tolerance_amount(10.0, 10.5, 9.5) == 0

    def test_deviation(self):
        assert deviation(10.2, 10.5, 9.5) == pytest.approx(0.2)
        assert deviation(10.2, 10.5, None) is None


class TestClassifyCapability:
    @pytest.mark.parametrize(
        "cpk,expected",
        [
            (1.67, CapabilityStatus.CAPABLE),
            (1.33, CapabilityStatus.CAPABLE),
            (1.2, CapabilityStatus.MARGINAL),
            (1.0, CapabilityStatus.MARGINAL),
            (0.7, CapabilityStatus.NOT_CAPABLE),
            (None, CapabilityStatus.UNKNOWN),
            (float("nan"), CapabilityStatus.UNKNOWN),
        ],
    )
    def test_default_thresholds(self, cpk, expected):
        assert classify_capability(cpk) is expected

    def test_custom_thresholds(self):
        assert classify_capability(1.5, capable=1.67, marginal=1.33) is CapabilityStatus.MARGINAL
