#!/usr/bin/env python3
"""
Test suite for benchmark_models.py module.

Tests unit recognition and normalization, sample invariants, runs, and
formatting utilities.
"""

import math

import pytest

from benchmark_models import (
    BenchmarkRun,
    BenchmarkSample,
    Classification,
    ComparisonReport,
    ComparisonResult,
    DroppedSample,
    Unit,
    UnknownUnitError,
    format_delta,
    format_time_value,
    normalize,
)


class TestUnit:
    """Test cases for Unit recognition."""

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("ns", Unit.NANOSECONDS),
            ("us", Unit.MICROSECONDS),
            ("µs", Unit.MICROSECONDS),  # micro sign U+00B5
            ("μs", Unit.MICROSECONDS),  # Greek mu U+03BC
            ("ms", Unit.MILLISECONDS),
            ("s", Unit.SECONDS),
            (" ms ", Unit.MILLISECONDS),
        ],
    )
    def test_from_token_known_units(self, token, expected):
        """Test that every supported unit spelling is recognized."""
        assert Unit.from_token(token) is expected

    @pytest.mark.parametrize("token", ["sec", "MS", "min", "Kelem/s", "", "%"])
    def test_from_token_unknown_units(self, token):
        """Test that unsupported tokens raise UnknownUnitError carrying the token."""
        with pytest.raises(UnknownUnitError) as exc_info:
            Unit.from_token(token)
        assert exc_info.value.token == token

    def test_unknown_unit_error_is_value_error(self):
        """Test UnknownUnitError can be handled as a ValueError."""
        assert issubclass(UnknownUnitError, ValueError)


class TestNormalize:
    """Test cases for nanosecond normalization."""

    @pytest.mark.parametrize(
        ("unit", "factor"),
        [
            (Unit.NANOSECONDS, 1.0),
            (Unit.MICROSECONDS, 1_000.0),
            (Unit.MILLISECONDS, 1_000_000.0),
            (Unit.SECONDS, 1_000_000_000.0),
        ],
    )
    @pytest.mark.parametrize("value", [0.0, 1.0, 2.5, 123.456])
    def test_conversion_factors(self, unit, factor, value):
        """Test normalize(v, unit) == v * factor for every unit."""
        assert normalize(value, unit) == pytest.approx(value * factor)

    def test_unit_factor_property(self):
        """Test factor_ns exposes the same factor used by normalize."""
        assert Unit.MILLISECONDS.factor_ns == 1e6
        assert normalize(3.0, Unit.MILLISECONDS) == 3.0 * Unit.MILLISECONDS.factor_ns


class TestBenchmarkSample:
    """Test cases for BenchmarkSample."""

    def test_normalized_value_populated(self):
        """Test the nanosecond value is computed at construction."""
        sample = BenchmarkSample("scan_1k", 100.0, Unit.MILLISECONDS)
        assert sample.normalized_ns == pytest.approx(100_000_000.0)

    def test_zero_value_allowed(self):
        """Test a zero timing is a valid sample."""
        assert BenchmarkSample("noop", 0.0, Unit.NANOSECONDS).normalized_ns == 0.0

    @pytest.mark.parametrize("value", [-1.0, math.inf, math.nan])
    def test_invalid_values_rejected(self, value):
        """Test negative and non-finite timings are rejected."""
        with pytest.raises(ValueError, match="Invalid timing value"):
            BenchmarkSample("bad", value, Unit.NANOSECONDS)

    def test_sample_is_immutable(self):
        """Test samples cannot be mutated after construction."""
        sample = BenchmarkSample("x", 1.0, Unit.MICROSECONDS)
        with pytest.raises(AttributeError):
            sample.raw_value = 2.0  # type: ignore[misc]


class TestBenchmarkRun:
    """Test cases for BenchmarkRun."""

    def test_add_sample_keeps_first(self):
        """Test that a duplicate name is rejected and the first sample kept."""
        run = BenchmarkRun()
        assert run.add_sample(BenchmarkSample("a", 1.0, Unit.MILLISECONDS))
        assert not run.add_sample(BenchmarkSample("a", 2.0, Unit.MILLISECONDS))
        assert run.samples["a"].raw_value == 1.0
        assert len(run) == 1

    def test_names(self, make_run):
        """Test names returns the set of sample names."""
        run = make_run({"a": (1, "ms"), "b": (2, "us")})
        assert run.names == {"a", "b"}

    def test_captured_at_is_timezone_aware(self):
        """Test the default capture time carries a timezone."""
        assert BenchmarkRun().captured_at.tzinfo is not None


class TestDroppedSample:
    """Test cases for DroppedSample."""

    def test_describe_with_detail(self):
        dropped = DroppedSample(7, "scan", "unknown_unit", "fortnights")
        assert dropped.describe() == "line 7: scan dropped: unknown_unit (fortnights)"

    def test_describe_without_detail(self):
        assert DroppedSample(1, "x", "invalid_value").describe() == "line 1: x dropped: invalid_value"


class TestComparisonReport:
    """Test cases for ComparisonReport helpers."""

    def test_improvement_threshold_defaults_to_threshold(self):
        """Test the improvement threshold falls back to the regression threshold."""
        report = ComparisonReport([], set(), set(), {}, 5.0, "b", "c", generated_at=None)  # type: ignore[arg-type]
        assert report.improvement_threshold_percent == 5.0

    def test_bucket_helpers(self):
        """Test regressions/improvements filter by classification in order."""
        results = [
            ComparisonResult("a", 1.0, 2.0, 100.0, Classification.REGRESSION),
            ComparisonResult("b", 2.0, 1.0, -50.0, Classification.IMPROVEMENT),
            ComparisonResult("c", 1.0, 1.0, 0.0, Classification.UNCHANGED),
        ]
        report = ComparisonReport(results, set(), set(), {}, 5.0, "b", "c", generated_at=None)  # type: ignore[arg-type]
        assert [r.name for r in report.regressions] == ["a"]
        assert [r.name for r in report.improvements] == ["b"]
        assert [r.name for r in report.results_for(Classification.UNCHANGED)] == ["c"]


class TestFormatting:
    """Test cases for formatting functions."""

    @pytest.mark.parametrize(
        ("value_ns", "expected"),
        [
            (500.0, "500.00 ns"),
            (1_500.0, "1.50 µs"),
            (130_000_000.0, "130.000 ms"),
            (2_500_000_000.0, "2.5000 s"),
            (0.0, "0.00 ns"),
            (None, "N/A"),
            (math.inf, "N/A"),
        ],
    )
    def test_format_time_value(self, value_ns, expected):
        """Test adaptive unit selection for nanosecond values."""
        assert format_time_value(value_ns) == expected

    @pytest.mark.parametrize(("delta", "expected"), [(30.0, "+30.0%"), (-3.0, "-3.0%"), (0.0, "+0.0%"), (None, "N/A")])
    def test_format_delta(self, delta, expected):
        """Test signed delta formatting."""
        assert format_delta(delta) == expected
