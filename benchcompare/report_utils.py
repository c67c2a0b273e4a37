#!/usr/bin/env python3
"""
report_utils.py - Render comparison reports for people and for machines

The narrative rendering (plain text or markdown) is kept separate from the
structured form consumed by gating steps (rows plus report metadata, as a
dict or JSON document).
"""

import json
from typing import Any

try:
    # When executed as a script from benchcompare/
    from benchmark_models import Classification, ComparisonReport, ComparisonResult, Verdict, format_delta, format_time_value  # type: ignore[no-redef]
    from comparison_utils import ComparisonConfig, determine_verdict  # type: ignore[no-redef]
except ModuleNotFoundError:
    # When imported as a module (e.g., benchcompare.report_utils)
    from benchcompare.benchmark_models import (  # type: ignore[no-redef]
        Classification,
        ComparisonReport,
        ComparisonResult,
        Verdict,
        format_delta,
        format_time_value,
    )
    from benchcompare.comparison_utils import ComparisonConfig, determine_verdict  # type: ignore[no-redef]

ROW_COLUMNS = ("benchmark_name", "baseline_ns", "current_ns", "delta_percent", "classification")

_SECTION_TITLES = {
    Classification.REGRESSION: "⚠️  Regressions",
    Classification.IMPROVEMENT: "✅ Improvements",
    Classification.UNCHANGED: "Unchanged",
    Classification.UNMEASURABLE: "❓ Unmeasurable",
}

_STATUS_LABELS = {
    Classification.REGRESSION: "⚠️ REGRESSION",
    Classification.IMPROVEMENT: "✅ IMPROVEMENT",
    Classification.UNCHANGED: "✅ OK",
    Classification.UNMEASURABLE: "❓ N/A",
}

_VERDICT_LINES = {
    Verdict.CLEAN: "✅ CLEAN: no performance regressions detected",
    Verdict.DEGRADED: "⚠️  DEGRADED: regressions below the critical threshold",
    Verdict.BLOCKING: "🚨 BLOCKING: regressions at or above the critical threshold",
}


def sorted_bucket(report: ComparisonReport, classification: Classification) -> list[ComparisonResult]:
    """
    Results of one bucket in display order.

    Regressions are listed worst first (descending delta) and improvements
    biggest win first (ascending delta); other buckets keep name order.
    """
    bucket = report.results_for(classification)
    if classification is Classification.REGRESSION:
        return sorted(bucket, key=lambda r: (-(r.delta_percent or 0.0), r.name))
    if classification is Classification.IMPROVEMENT:
        return sorted(bucket, key=lambda r: (r.delta_percent or 0.0, r.name))
    return sorted(bucket, key=lambda r: r.name)


def format_summary_line(report: ComparisonReport) -> str:
    """One-line count summary of a report."""
    counts = report.counts
    return (
        f"Summary: {len(report.results)} compared "
        f"({counts[Classification.REGRESSION]} regressed, "
        f"{counts[Classification.IMPROVEMENT]} improved, "
        f"{counts[Classification.UNCHANGED]} unchanged, "
        f"{counts[Classification.UNMEASURABLE]} unmeasurable), "
        f"{len(report.added)} added, {len(report.removed)} removed, "
        f"{len(report.dropped)} dropped samples"
    )


def _format_result(result: ComparisonResult) -> str:
    line = f"  {result.name}: {format_time_value(result.baseline_ns)} -> {format_time_value(result.current_ns)} ({format_delta(result.delta_percent)})"
    if result.classification is Classification.UNMEASURABLE:
        line += " [baseline is zero or invalid]"
    return line


def render_report(report: ComparisonReport, config: ComparisonConfig | None = None, notes: list[str] | None = None) -> str:
    """
    Render a human-readable comparison report.

    Args:
        report: Report to render
        config: Thresholds used for the verdict line (defaults to the report's threshold)
        notes: Extra lines (e.g., hardware compatibility warnings) shown after the header

    Returns:
        Report text grouped by classification bucket
    """
    generated = report.generated_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    lines = [
        "Benchmark Comparison Results",
        "============================",
        f"Baseline: {report.baseline_id}",
        f"Current: {report.current_id}",
        f"Generated: {generated}",
        f"Thresholds: regression >{report.threshold_percent}%, improvement <-{report.improvement_threshold_percent}%",
        "",
    ]
    if notes:
        lines.extend(notes)
        lines.append("")

    lines.extend([format_summary_line(report), ""])

    for classification in Classification:
        bucket = sorted_bucket(report, classification)
        if not bucket:
            continue
        lines.append(f"{_SECTION_TITLES[classification]} ({len(bucket)}):")
        lines.extend(_format_result(result) for result in bucket)
        lines.append("")

    if report.added:
        lines.append(f"Added benchmarks ({len(report.added)}): {', '.join(sorted(report.added))}")
    if report.removed:
        lines.append(f"Removed benchmarks ({len(report.removed)}): {', '.join(sorted(report.removed))}")
    if report.added or report.removed:
        lines.append("")

    lines.append(f"Dropped samples: {len(report.dropped)}")
    for role, dropped in report.dropped:
        lines.append(f"  [{role}] {dropped.describe()}")
    lines.append("")

    lines.append(_VERDICT_LINES[determine_verdict(report, config)])
    lines.append("")
    return "\n".join(lines)


def render_markdown(report: ComparisonReport, config: ComparisonConfig | None = None) -> str:
    """
    Render the report as a markdown document with one comparison table.

    Rows follow the same bucket order as render_report.
    """
    lines = [
        "# Benchmark Comparison",
        "",
        f"**Baseline**: `{report.baseline_id}`",
        f"**Current**: `{report.current_id}`",
        f"**Generated**: {report.generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        f"**Thresholds**: regression >{report.threshold_percent}%, improvement <-{report.improvement_threshold_percent}%",
        "",
        format_summary_line(report),
        "",
        "| Benchmark | Baseline | Current | Change | Status |",
        "|-----------|----------|---------|--------|--------|",
    ]

    for classification in Classification:
        for result in sorted_bucket(report, classification):
            lines.append(
                f"| {result.name} | {format_time_value(result.baseline_ns)} | {format_time_value(result.current_ns)} "
                f"| {format_delta(result.delta_percent)} | {_STATUS_LABELS[classification]} |"
            )

    if report.added or report.removed:
        lines.extend(["", "## Added / Removed", ""])
        lines.extend(f"- Added: `{name}`" for name in sorted(report.added))
        lines.extend(f"- Removed: `{name}`" for name in sorted(report.removed))

    if report.dropped:
        lines.extend(["", "## Dropped Samples", ""])
        lines.extend(f"- [{role}] {dropped.describe()}" for role, dropped in report.dropped)

    lines.extend(["", f"**Verdict**: {_VERDICT_LINES[determine_verdict(report, config)]}", ""])
    return "\n".join(lines)


def report_to_rows(report: ComparisonReport) -> list[dict[str, Any]]:
    """Tabular form: one row per compared benchmark, in report order."""
    return [
        {
            "benchmark_name": result.name,
            "baseline_ns": result.baseline_ns,
            "current_ns": result.current_ns,
            "delta_percent": result.delta_percent,
            "classification": result.classification.value,
        }
        for result in report.results
    ]


def report_to_dict(report: ComparisonReport, config: ComparisonConfig | None = None) -> dict[str, Any]:
    """Structured form of the report for downstream gating steps."""
    return {
        "metadata": {
            "threshold_percent": report.threshold_percent,
            "improvement_threshold_percent": report.improvement_threshold_percent,
            "baseline_id": report.baseline_id,
            "current_id": report.current_id,
            "generated_at": report.generated_at.isoformat(),
        },
        "columns": list(ROW_COLUMNS),
        "results": report_to_rows(report),
        "added": sorted(report.added),
        "removed": sorted(report.removed),
        "counts": {classification.value: count for classification, count in report.counts.items()},
        "dropped": [
            {"run": role, "line_number": d.line_number, "name": d.name, "reason": d.reason, "detail": d.detail}
            for role, d in report.dropped
        ],
        "verdict": determine_verdict(report, config).value,
    }


def report_to_json(report: ComparisonReport, config: ComparisonConfig | None = None) -> str:
    """Serialize the structured report as indented JSON."""
    return json.dumps(report_to_dict(report, config), indent=2, ensure_ascii=False) + "\n"
