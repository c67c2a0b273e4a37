#!/usr/bin/env python3
"""
Test suite for report_utils.py module.

Tests text, markdown and structured renderings of comparison reports.
"""

import json
from datetime import UTC, datetime

import pytest

from benchmark_models import Classification, DroppedSample
from comparison_utils import ComparisonConfig, compare
from report_utils import (
    ROW_COLUMNS,
    format_summary_line,
    render_markdown,
    render_report,
    report_to_dict,
    report_to_json,
    report_to_rows,
    sorted_bucket,
)

GENERATED = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def mixed_report(make_run):
    """Report with every bucket populated plus added, removed and dropped entries."""
    baseline = make_run(
        {
            "scan_small": (100, "ms"),
            "scan_large": (100, "ms"),
            "steady": (100, "ms"),
            "parse_1": (500, "ns"),
            "parse_2": (500, "ns"),
            "noop": (0, "ns"),
            "legacy": (1, "ms"),
        }
    )
    baseline.dropped.append(DroppedSample(12, "odd", "unknown_unit", "min"))
    current = make_run(
        {
            "scan_small": (107, "ms"),
            "scan_large": (150, "ms"),
            "steady": (101, "ms"),
            "parse_1": (450, "ns"),
            "parse_2": (200, "ns"),
            "noop": (5, "ns"),
            "fresh": (2, "ms"),
        }
    )
    return compare(baseline, current, baseline_id="v1.0", current_id="HEAD", generated_at=GENERATED)


class TestSortedBucket:
    """Test cases for bucket ordering."""

    def test_regressions_worst_first(self, mixed_report):
        assert [r.name for r in sorted_bucket(mixed_report, Classification.REGRESSION)] == ["scan_large", "scan_small"]

    def test_improvements_biggest_win_first(self, mixed_report):
        assert [r.name for r in sorted_bucket(mixed_report, Classification.IMPROVEMENT)] == ["parse_2", "parse_1"]

    def test_other_buckets_by_name(self, mixed_report):
        assert [r.name for r in sorted_bucket(mixed_report, Classification.UNCHANGED)] == ["steady"]
        assert [r.name for r in sorted_bucket(mixed_report, Classification.UNMEASURABLE)] == ["noop"]


class TestRenderReport:
    """Test cases for the plain text report."""

    def test_summary_line(self, mixed_report):
        assert format_summary_line(mixed_report) == (
            "Summary: 6 compared (2 regressed, 2 improved, 1 unchanged, 1 unmeasurable), 1 added, 1 removed, 1 dropped samples"
        )

    def test_header_and_sections(self, mixed_report):
        """Test header metadata and bucket sections appear in order."""
        text = render_report(mixed_report)

        assert text.startswith("Benchmark Comparison Results\n")
        assert "Baseline: v1.0" in text
        assert "Current: HEAD" in text
        assert "Generated: 2025-01-15 12:00:00 UTC" in text
        assert "Thresholds: regression >5.0%, improvement <-5.0%" in text

        positions = [text.index(title) for title in ("Regressions (2):", "Improvements (2):", "Unchanged (1):", "Unmeasurable (1):")]
        assert positions == sorted(positions)
        assert text.index("scan_large:") < text.index("scan_small:")

    def test_result_lines(self, mixed_report):
        text = render_report(mixed_report)
        assert "  scan_large: 100.000 ms -> 150.000 ms (+50.0%)" in text
        assert "  parse_2: 500.00 ns -> 200.00 ns (-60.0%)" in text
        assert "  noop: 0.00 ns -> 5.00 ns (N/A) [baseline is zero or invalid]" in text

    def test_added_removed_and_dropped(self, mixed_report):
        text = render_report(mixed_report)
        assert "Added benchmarks (1): fresh" in text
        assert "Removed benchmarks (1): legacy" in text
        assert "Dropped samples: 1" in text
        assert "  [baseline] line 12: odd dropped: unknown_unit (min)" in text

    def test_verdict_line_last(self, mixed_report):
        """Test the verdict closes the report (+50% is past the 10% critical threshold)."""
        text = render_report(mixed_report)
        assert text.rstrip().splitlines()[-1].startswith("🚨 BLOCKING")

    def test_verdict_uses_given_config(self, make_run):
        report = compare(make_run({"a": (100, "ms")}), make_run({"a": (112, "ms")}), generated_at=GENERATED)
        assert "DEGRADED" in render_report(report, ComparisonConfig(critical_multiple=3.0))
        assert "BLOCKING" in render_report(report)

    def test_clean_report_has_no_bucket_sections(self, make_run):
        report = compare(make_run({"a": (100, "ms")}), make_run({"a": (100, "ms")}), generated_at=GENERATED)
        text = render_report(report)

        assert "Regressions" not in text
        assert "Dropped samples: 0" in text
        assert "✅ CLEAN: no performance regressions detected" in text

    def test_notes_included(self, mixed_report):
        text = render_report(mixed_report, notes=["⚠️  CPU differs: 'A' vs baseline 'B'"])
        assert text.index("CPU differs") < text.index("Summary:")


class TestRenderMarkdown:
    """Test cases for the markdown report."""

    def test_table(self, mixed_report):
        text = render_markdown(mixed_report)

        assert "| Benchmark | Baseline | Current | Change | Status |" in text
        assert "| scan_large | 100.000 ms | 150.000 ms | +50.0% | ⚠️ REGRESSION |" in text
        assert "| noop | 0.00 ns | 5.00 ns | N/A | ❓ N/A |" in text
        assert text.count("\n| ") == 7  # header plus six compared benchmarks

    def test_sections(self, mixed_report):
        text = render_markdown(mixed_report)
        assert "- Added: `fresh`" in text
        assert "- Removed: `legacy`" in text
        assert "## Dropped Samples" in text
        assert "**Verdict**: 🚨 BLOCKING" in text

    def test_header_shows_both_thresholds(self, make_run):
        """Test asymmetric thresholds are both printed in the markdown header."""
        run = make_run({"a": (1, "ms")})
        report = compare(run, run, ComparisonConfig(4.0, 6.0))

        text = render_markdown(report)
        assert "**Thresholds**: regression >4.0%, improvement <-6.0%" in text
        assert "±" not in text


class TestStructuredOutput:
    """Test cases for rows, dict and JSON output."""

    def test_rows_follow_report_order(self, mixed_report):
        rows = report_to_rows(mixed_report)

        assert [row["benchmark_name"] for row in rows] == [r.name for r in mixed_report.results]
        assert all(tuple(row) == ROW_COLUMNS for row in rows)
        noop = next(row for row in rows if row["benchmark_name"] == "noop")
        assert noop["delta_percent"] is None
        assert noop["classification"] == "unmeasurable"

    def test_dict_keys(self, mixed_report):
        data = report_to_dict(mixed_report)

        assert set(data) == {"metadata", "columns", "results", "added", "removed", "counts", "dropped", "verdict"}
        assert data["metadata"] == {
            "threshold_percent": 5.0,
            "improvement_threshold_percent": 5.0,
            "baseline_id": "v1.0",
            "current_id": "HEAD",
            "generated_at": "2025-01-15T12:00:00+00:00",
        }
        assert data["counts"] == {"regression": 2, "improvement": 2, "unchanged": 1, "unmeasurable": 1}
        assert data["added"] == ["fresh"]
        assert data["removed"] == ["legacy"]
        assert data["dropped"] == [{"run": "baseline", "line_number": 12, "name": "odd", "reason": "unknown_unit", "detail": "min"}]
        assert data["verdict"] == "blocking"

    def test_json_is_loadable(self, mixed_report):
        data = json.loads(report_to_json(mixed_report))
        assert data["columns"] == list(ROW_COLUMNS)
        assert len(data["results"]) == 6
