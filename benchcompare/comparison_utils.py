#!/usr/bin/env python3
"""
comparison_utils.py - Compare benchmark runs and classify performance changes

This module provides:
- ComparisonConfig: thresholds and the critical multiple, with documented defaults
- compare_runs: partition two runs into common/added/removed benchmark names
- classify: map a percentage delta to a Classification
- aggregate: fold classified results into a ComparisonReport
- determine_verdict: reduce a report to CLEAN / DEGRADED / BLOCKING
"""

import logging
import math
import os
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

try:
    # When executed as a script from benchcompare/
    from benchmark_models import (  # type: ignore[no-redef]
        BenchmarkRun,
        Classification,
        ComparisonReport,
        ComparisonResult,
        DroppedSample,
        Verdict,
    )
except ModuleNotFoundError:
    # When imported as a module (e.g., benchcompare.comparison_utils)
    from benchcompare.benchmark_models import (  # type: ignore[no-redef]
        BenchmarkRun,
        Classification,
        ComparisonReport,
        ComparisonResult,
        DroppedSample,
        Verdict,
    )

logger = logging.getLogger(__name__)

DEFAULT_REGRESSION_THRESHOLD = 5.0  # percent slower
DEFAULT_IMPROVEMENT_THRESHOLD = 5.0  # percent faster
DEFAULT_CRITICAL_MULTIPLE = 2.0  # regressions >= 2x threshold block (5% warn, 10% critical)


class ConfigError(ValueError):
    """Raised when comparison thresholds are invalid."""


@dataclass(frozen=True)
class ComparisonConfig:
    """
    Thresholds used by the classifier and the verdict mapping.

    Attributes:
        regression_threshold: A delta strictly above this percentage is a regression
        improvement_threshold: A delta strictly below minus this percentage is an improvement
        critical_multiple: Regressions at or above this multiple of
            regression_threshold make the verdict BLOCKING
    """

    regression_threshold: float = DEFAULT_REGRESSION_THRESHOLD
    improvement_threshold: float = DEFAULT_IMPROVEMENT_THRESHOLD
    critical_multiple: float = DEFAULT_CRITICAL_MULTIPLE

    def __post_init__(self) -> None:
        for name in ("regression_threshold", "improvement_threshold"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                msg = f"{name} must be a finite, non-negative percentage (got {value})"
                raise ConfigError(msg)
        if not math.isfinite(self.critical_multiple) or self.critical_multiple < 1:
            msg = f"critical_multiple must be >= 1 (got {self.critical_multiple})"
            raise ConfigError(msg)

    @classmethod
    def symmetric(cls, threshold: float, critical_multiple: float = DEFAULT_CRITICAL_MULTIPLE) -> "ComparisonConfig":
        """Use the same threshold for regressions and improvements."""
        return cls(threshold, threshold, critical_multiple)

    @classmethod
    def from_env(cls) -> "ComparisonConfig":
        """
        Build a config from environment variables, falling back to defaults.

        Reads BENCHMARK_REGRESSION_THRESHOLD, BENCHMARK_IMPROVEMENT_THRESHOLD
        (defaults to the regression threshold) and BENCHMARK_CRITICAL_MULTIPLE.

        Raises:
            ConfigError: If a variable is not a valid number or threshold
        """
        try:
            regression = float(os.getenv("BENCHMARK_REGRESSION_THRESHOLD", str(DEFAULT_REGRESSION_THRESHOLD)))
            improvement = float(os.getenv("BENCHMARK_IMPROVEMENT_THRESHOLD", str(regression)))
            multiple = float(os.getenv("BENCHMARK_CRITICAL_MULTIPLE", str(DEFAULT_CRITICAL_MULTIPLE)))
        except ValueError as e:
            msg = f"Invalid threshold in environment: {e}"
            raise ConfigError(msg) from e
        return cls(regression, improvement, multiple)

    @property
    def critical_threshold(self) -> float:
        return self.regression_threshold * self.critical_multiple


@dataclass(frozen=True)
class RunPartition:
    """Benchmark names split by presence in the baseline and current runs."""

    common: list[tuple[str, float, float]]
    added: set[str]
    removed: set[str]


def compare_runs(baseline: BenchmarkRun, current: BenchmarkRun) -> RunPartition:
    """
    Partition two runs by benchmark name.

    Args:
        baseline: Reference run
        current: Run under test

    Returns:
        RunPartition whose common entries are (name, baseline_ns, current_ns)
        sorted by name; added holds names only in current, removed names only
        in baseline
    """
    baseline_names = baseline.names
    current_names = current.names

    common = [
        (name, baseline.samples[name].normalized_ns, current.samples[name].normalized_ns)
        for name in sorted(baseline_names & current_names)
    ]
    return RunPartition(common=common, added=current_names - baseline_names, removed=baseline_names - current_names)


def compute_delta(baseline_ns: float, current_ns: float) -> float | None:
    """
    Percentage change of current relative to baseline.

    Returns:
        The delta in percent, or None when the baseline is zero or either
        value is non-finite (no division is attempted)
    """
    if not (math.isfinite(baseline_ns) and math.isfinite(current_ns)) or baseline_ns == 0:
        return None
    return (current_ns - baseline_ns) / baseline_ns * 100


def classify(delta_percent: float | None, regression_threshold: float, improvement_threshold: float) -> Classification:
    """
    Classify a delta. Values exactly on a threshold are UNCHANGED.

    Args:
        delta_percent: Percentage change, or None when unmeasurable
        regression_threshold: Positive percentage above which a change is a regression
        improvement_threshold: Positive percentage; deltas below its negation are improvements

    Returns:
        Classification for the delta
    """
    if delta_percent is None:
        return Classification.UNMEASURABLE
    if delta_percent > regression_threshold:
        return Classification.REGRESSION
    if delta_percent < -improvement_threshold:
        return Classification.IMPROVEMENT
    return Classification.UNCHANGED


def build_results(partition: RunPartition, config: ComparisonConfig) -> list[ComparisonResult]:
    """Compute and classify the delta of every common benchmark, in partition order."""
    results = []
    for name, baseline_ns, current_ns in partition.common:
        delta = compute_delta(baseline_ns, current_ns)
        if delta is None:
            logger.debug("Benchmark %s is unmeasurable (baseline %s ns)", name, baseline_ns)
        results.append(
            ComparisonResult(
                name=name,
                baseline_ns=baseline_ns,
                current_ns=current_ns,
                delta_percent=delta,
                classification=classify(delta, config.regression_threshold, config.improvement_threshold),
            )
        )
    return results


def count_classifications(results: Iterable[ComparisonResult]) -> dict[Classification, int]:
    """Count results per classification; every classification is present."""
    tally = Counter(result.classification for result in results)
    return {classification: tally.get(classification, 0) for classification in Classification}


def aggregate(
    results: list[ComparisonResult],
    added: set[str],
    removed: set[str],
    config: ComparisonConfig,
    baseline_id: str,
    current_id: str,
    dropped: Iterable[tuple[str, DroppedSample]] = (),
    generated_at: datetime | None = None,
) -> ComparisonReport:
    """
    Fold classified results into a ComparisonReport.

    Args:
        results: Classified results for the common benchmarks
        added: Names only present in the current run
        removed: Names only present in the baseline run
        config: Thresholds the results were classified with
        baseline_id: Identifier of the baseline (label or file)
        current_id: Identifier of the current run
        dropped: (run role, DroppedSample) pairs recorded while parsing
        generated_at: Report timestamp (defaults to now, UTC)

    Returns:
        ComparisonReport
    """
    return ComparisonReport(
        results=list(results),
        added=set(added),
        removed=set(removed),
        counts=count_classifications(results),
        threshold_percent=config.regression_threshold,
        improvement_threshold_percent=config.improvement_threshold,
        baseline_id=baseline_id,
        current_id=current_id,
        generated_at=generated_at or datetime.now(UTC),
        dropped=list(dropped),
    )


def compare(
    baseline: BenchmarkRun,
    current: BenchmarkRun,
    config: ComparisonConfig | None = None,
    baseline_id: str = "baseline",
    current_id: str = "current",
    generated_at: datetime | None = None,
) -> ComparisonReport:
    """
    Run the whole comparison pipeline for two parsed runs.

    Returns:
        ComparisonReport including the samples dropped from either run
    """
    config = config or ComparisonConfig()
    partition = compare_runs(baseline, current)
    results = build_results(partition, config)
    dropped = [("baseline", d) for d in baseline.dropped] + [("current", d) for d in current.dropped]

    logger.debug(
        "Compared %d common benchmarks (%d added, %d removed, %d dropped samples)",
        len(partition.common),
        len(partition.added),
        len(partition.removed),
        len(dropped),
    )
    return aggregate(results, partition.added, partition.removed, config, baseline_id, current_id, dropped, generated_at)


def determine_verdict(report: ComparisonReport, config: ComparisonConfig | None = None) -> Verdict:
    """
    Reduce a report to an overall verdict.

    CLEAN when there is no regression, BLOCKING when any regression reaches
    critical_multiple times the regression threshold, DEGRADED otherwise.
    Unmeasurable results never affect the verdict.
    """
    config = config or ComparisonConfig(regression_threshold=report.threshold_percent)
    regressions = report.regressions
    if not regressions:
        return Verdict.CLEAN
    if any(r.delta_percent is not None and r.delta_percent >= config.critical_threshold for r in regressions):
        return Verdict.BLOCKING
    return Verdict.DEGRADED
