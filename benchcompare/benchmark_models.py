#!/usr/bin/env python3
"""benchmark_models.py - Data models and unit handling for benchmark comparison.

This module contains the data structures shared by the parser, the baseline
store, the comparator and the reporters:

- Units and nanosecond normalization
- Samples and runs parsed from benchmark output
- Classified comparison results and the aggregated report
"""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class UnknownUnitError(ValueError):
    """Raised when a time unit token is not one of ns, us/µs, ms or s."""

    def __init__(self, token: str):
        super().__init__(f"Unknown time unit: {token!r}")
        self.token = token


class Unit(Enum):
    """Time units understood by the parser, valued by their nanosecond factor."""

    NANOSECONDS = "ns"
    MICROSECONDS = "µs"
    MILLISECONDS = "ms"
    SECONDS = "s"

    @classmethod
    def from_token(cls, token: str) -> "Unit":
        """
        Recognize a unit token as printed by benchmark harnesses.

        Both µ (micro sign U+00B5) and μ (Greek mu U+03BC) are accepted, as is
        the ASCII spelling "us".

        Raises:
            UnknownUnitError: If the token is not a supported time unit
        """
        unit = _UNIT_TOKENS.get((token or "").strip())
        if unit is None:
            raise UnknownUnitError(token)
        return unit

    @property
    def factor_ns(self) -> float:
        """Multiplier converting a value in this unit to nanoseconds."""
        return _NS_FACTORS[self]


_UNIT_TOKENS = {
    "ns": Unit.NANOSECONDS,
    "us": Unit.MICROSECONDS,
    "µs": Unit.MICROSECONDS,
    "μs": Unit.MICROSECONDS,
    "ms": Unit.MILLISECONDS,
    "s": Unit.SECONDS,
}

_NS_FACTORS = {
    Unit.NANOSECONDS: 1.0,
    Unit.MICROSECONDS: 1_000.0,
    Unit.MILLISECONDS: 1_000_000.0,
    Unit.SECONDS: 1_000_000_000.0,
}


def normalize(raw_value: float, unit: Unit) -> float:
    """
    Convert a time value to nanoseconds.

    Args:
        raw_value: Value as reported by the benchmark harness
        unit: Unit the value was reported in

    Returns:
        The value expressed in nanoseconds
    """
    return raw_value * unit.factor_ns


class Classification(Enum):
    """Outcome of comparing one benchmark against its baseline."""

    REGRESSION = "regression"
    IMPROVEMENT = "improvement"
    UNCHANGED = "unchanged"
    UNMEASURABLE = "unmeasurable"


class Verdict(Enum):
    """Overall verdict derived from a comparison report."""

    CLEAN = "clean"
    DEGRADED = "degraded"
    BLOCKING = "blocking"


@dataclass(frozen=True)
class BenchmarkSample:
    """A single named timing measurement."""

    name: str
    raw_value: float
    unit: Unit
    normalized_ns: float = field(init=False)

    def __post_init__(self) -> None:
        """Populate the nanosecond value and reject negative or non-finite timings."""
        if not math.isfinite(self.raw_value) or self.raw_value < 0:
            msg = f"Invalid timing value for {self.name!r}: {self.raw_value}"
            raise ValueError(msg)
        object.__setattr__(self, "normalized_ns", normalize(self.raw_value, self.unit))


@dataclass(frozen=True)
class DroppedSample:
    """A sample skipped while parsing, kept for auditability."""

    line_number: int
    name: str
    reason: str  # unknown_unit, invalid_value, duplicate_name
    detail: str = ""

    def describe(self) -> str:
        """One-line human description."""
        suffix = f" ({self.detail})" if self.detail else ""
        return f"line {self.line_number}: {self.name} dropped: {self.reason}{suffix}"


@dataclass
class BenchmarkRun:
    """The complete set of samples captured from one benchmark execution."""

    samples: dict[str, BenchmarkSample] = field(default_factory=dict)
    captured_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    source_ref: str = ""
    dropped: list[DroppedSample] = field(default_factory=list)

    def add_sample(self, sample: BenchmarkSample) -> bool:
        """Add a sample unless its name is already present. Returns True if added."""
        if sample.name in self.samples:
            return False
        self.samples[sample.name] = sample
        return True

    @property
    def names(self) -> set[str]:
        return set(self.samples)

    def __len__(self) -> int:
        return len(self.samples)


@dataclass
class BaselineRecord:
    """A persisted run plus its label and creation time."""

    label: str
    created_at: datetime
    run: BenchmarkRun
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ComparisonResult:
    """Comparison of a benchmark present in both runs."""

    name: str
    baseline_ns: float
    current_ns: float
    delta_percent: float | None
    classification: Classification


@dataclass
class ComparisonReport:
    """Aggregated, classified comparison of a current run against a baseline."""

    results: list[ComparisonResult]
    added: set[str]
    removed: set[str]
    counts: dict[Classification, int]
    threshold_percent: float
    baseline_id: str
    current_id: str
    generated_at: datetime
    improvement_threshold_percent: float | None = None
    dropped: list[tuple[str, DroppedSample]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.improvement_threshold_percent is None:
            self.improvement_threshold_percent = self.threshold_percent

    def results_for(self, classification: Classification) -> list[ComparisonResult]:
        """Results in one classification bucket, in report order."""
        return [r for r in self.results if r.classification is classification]

    @property
    def regressions(self) -> list[ComparisonResult]:
        return self.results_for(Classification.REGRESSION)

    @property
    def improvements(self) -> list[ComparisonResult]:
        return self.results_for(Classification.IMPROVEMENT)


# Formatting functions


def format_time_value(value_ns: float | None) -> str:
    """
    Format a nanosecond value with an appropriate unit.

    Args:
        value_ns: Time in nanoseconds (None for missing values)

    Returns:
        Formatted time string, or "N/A" for missing or non-finite values
    """
    if value_ns is None or not math.isfinite(value_ns):
        return "N/A"

    magnitude = abs(value_ns)
    if magnitude >= 1e9:
        return f"{value_ns / 1e9:.4f} s"
    if magnitude >= 1e6:
        return f"{value_ns / 1e6:.3f} ms"
    if magnitude >= 1e3:
        return f"{value_ns / 1e3:.2f} µs"
    return f"{value_ns:.2f} ns"


def format_delta(delta_percent: float | None) -> str:
    """Format a percentage delta with an explicit sign, or N/A when undefined."""
    if delta_percent is None:
        return "N/A"
    return f"{delta_percent:+.1f}%"
