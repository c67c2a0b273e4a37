#!/usr/bin/env python3
"""
benchmark_utils.py - Baseline management and regression comparison CLI

This module provides commands for:
- Creating labelled performance baselines from captured benchmark output
- Listing, showing and pruning stored baselines
- Comparing a captured run against a baseline and reporting regressions
- Mapping the comparison verdict to an exit code for CI gating

Exit codes for "compare": 0 clean, 1 degraded, 2 blocking, 3 error.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

try:
    # When executed as a script from benchcompare/
    from baseline_store import BaselineStore, LabelConflictError, StoreError, generate_label  # type: ignore[no-redef]
    from benchmark_models import BaselineRecord, ComparisonReport, Verdict, format_time_value  # type: ignore[no-redef]
    from benchmark_parser import ParseError, parse_file  # type: ignore[no-redef]
    from comparison_utils import ComparisonConfig, compare, determine_verdict  # type: ignore[no-redef]
    from hardware_utils import HardwareComparator, HardwareInfo  # type: ignore[no-redef]
    from report_utils import render_markdown, render_report, report_to_json  # type: ignore[no-redef]
except ModuleNotFoundError:
    # When imported as a module (e.g., benchcompare.benchmark_utils)
    from benchcompare.baseline_store import BaselineStore, LabelConflictError, StoreError, generate_label  # type: ignore[no-redef]
    from benchcompare.benchmark_models import BaselineRecord, ComparisonReport, Verdict, format_time_value  # type: ignore[no-redef]
    from benchcompare.benchmark_parser import ParseError, parse_file  # type: ignore[no-redef]
    from benchcompare.comparison_utils import ComparisonConfig, compare, determine_verdict  # type: ignore[no-redef]
    from benchcompare.hardware_utils import HardwareComparator, HardwareInfo  # type: ignore[no-redef]
    from benchcompare.report_utils import render_markdown, render_report, report_to_json  # type: ignore[no-redef]

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = "benchmarks/baselines"

VERDICT_EXIT_CODES = {
    Verdict.CLEAN: 0,
    Verdict.DEGRADED: 1,
    Verdict.BLOCKING: 2,
}
EXIT_ERROR = 3


class BaselineManager:
    """Create and inspect stored performance baselines."""

    def __init__(self, store: BaselineStore, hardware: HardwareInfo | None = None):
        self.store = store
        self.hardware = hardware or HardwareInfo()

    def create_baseline(self, input_file: Path, label: str | None = None, force: bool = False) -> BaselineRecord:
        """
        Parse captured benchmark output and store it as a baseline.

        Args:
            input_file: Captured benchmark output (text or hyperfine JSON)
            label: Baseline label (defaults to a timestamp-derived label)
            force: Replace an existing baseline with the same label

        Returns:
            The stored BaselineRecord

        Raises:
            ParseError: If the output holds no valid samples
            LabelConflictError: If the label exists and force is False
        """
        run = parse_file(input_file)
        label = label or generate_label()
        environment = self.hardware.get_hardware_info()

        if force:
            return self.store.force_save(run, label, environment)
        return self.store.save(run, label, environment)

    def list_baselines(self) -> list[BaselineRecord]:
        return self.store.list_records()

    def format_baseline_list(self) -> str:
        """Format stored baselines as a table, newest first."""
        records = self.list_baselines()
        if not records:
            return f"No baselines found in {self.store.store_dir}\n"

        lines = [
            "| Label | Created | Samples | Source |",
            "|-------|---------|---------|--------|",
        ]
        for record in records:
            created = record.created_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
            lines.append(f"| {record.label} | {created} | {len(record.run)} | {record.run.source_ref or '-'} |")
        return "\n".join(lines) + "\n"

    def format_baseline(self, label: str | None = None) -> str:
        """
        Describe one baseline (the latest when no label is given).

        Raises:
            BaselineNotFoundError: If the baseline does not exist
        """
        record = self.store.load_record(label) if label else self.store.load_latest_record()
        lines = [
            f"Baseline: {record.label}",
            f"Created: {record.created_at.isoformat()}",
            f"Source: {record.run.source_ref or '-'}",
            f"Captured: {record.run.captured_at.isoformat()}",
            "",
        ]
        if record.environment:
            lines.append(self.hardware.format_hardware_info(record.environment))

        lines.append(f"Samples ({len(record.run)}):")
        for name in sorted(record.run.samples):
            sample = record.run.samples[name]
            lines.append(f"  {name}: {sample.raw_value} {sample.unit.value} ({format_time_value(sample.normalized_ns)})")
        if record.run.dropped:
            lines.append(f"Dropped while parsing: {len(record.run.dropped)}")
        return "\n".join(lines) + "\n"


class PerformanceComparator:
    """Compare a captured benchmark run against a baseline."""

    def __init__(self, store: BaselineStore, config: ComparisonConfig | None = None, hardware: HardwareInfo | None = None):
        self.store = store
        self.config = config or ComparisonConfig()
        self.hardware = hardware or HardwareInfo()

    def compare_with_baseline(
        self,
        current_file: Path,
        baseline_file: Path | None = None,
        baseline_label: str | None = None,
    ) -> tuple[ComparisonReport, list[str]]:
        """
        Compare current benchmark output against a baseline.

        The baseline is, in order of preference: a captured output file, a
        stored baseline label, or the latest stored baseline.

        Args:
            current_file: Captured output of the current run
            baseline_file: Captured output of the baseline run
            baseline_label: Label of a stored baseline

        Returns:
            Tuple of (report, hardware compatibility notes)

        Raises:
            ParseError: If either run has no valid samples
            StoreError: If the stored baseline is missing or unreadable
        """
        notes: list[str] = []
        if baseline_file is not None:
            baseline_run = parse_file(baseline_file)
            baseline_id = str(baseline_file)
        else:
            record = self.store.load_record(baseline_label) if baseline_label else self.store.load_latest_record()
            baseline_run = record.run
            baseline_id = record.label
            if record.environment:
                notes = HardwareComparator.compare_hardware(self.hardware.get_hardware_info(), record.environment)

        current_run = parse_file(current_file)
        logger.debug("Comparing %d current samples against %d baseline samples", len(current_run), len(baseline_run))

        report = compare(baseline_run, current_run, self.config, baseline_id=baseline_id, current_id=str(current_file))
        return report, notes

    def write_outputs(
        self,
        report: ComparisonReport,
        notes: list[str],
        output_file: Path | None = None,
        json_output: Path | None = None,
    ) -> str:
        """
        Render the report and write the requested output files.

        A ".md" output file gets the markdown rendering, anything else the text one.

        Returns:
            The text rendering (for display)
        """
        text = render_report(report, self.config, notes)

        if output_file is not None:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            content = render_markdown(report, self.config) if output_file.suffix == ".md" else text
            output_file.write_text(content, encoding="utf-8")
            print(f"📊 Comparison report saved: {output_file}", file=sys.stderr)

        if json_output is not None:
            json_output.parent.mkdir(parents=True, exist_ok=True)
            json_output.write_text(report_to_json(report, self.config), encoding="utf-8")
            print(f"📦 Machine-readable report saved: {json_output}", file=sys.stderr)

        return text


class WorkflowHelper:
    """Helper functions for GitHub Actions workflow integration."""

    @staticmethod
    def write_github_output(values: dict[str, str]) -> bool:
        """
        Append key=value pairs to $GITHUB_OUTPUT when running in GitHub Actions.

        Returns:
            True if the values were written
        """
        github_output = os.getenv("GITHUB_OUTPUT")
        if not github_output:
            return False

        with open(github_output, "a", encoding="utf-8") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        return True


def build_config(args: argparse.Namespace) -> ComparisonConfig:
    """
    Combine CLI flags with environment defaults.

    The improvement threshold follows the regression threshold unless it is
    set explicitly (flag or BENCHMARK_IMPROVEMENT_THRESHOLD).

    Raises:
        ConfigError: If a threshold is invalid
    """
    env_config = ComparisonConfig.from_env()
    regression = args.threshold if args.threshold is not None else env_config.regression_threshold

    improvement = args.improvement_threshold
    if improvement is None:
        improvement = env_config.improvement_threshold if os.getenv("BENCHMARK_IMPROVEMENT_THRESHOLD") else regression

    multiple = args.critical_multiple if args.critical_multiple is not None else env_config.critical_multiple
    return ComparisonConfig(regression, improvement, multiple)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(description="Benchmark baseline management and regression comparison")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--store-dir",
        type=Path,
        default=Path(os.getenv("BENCHMARK_BASELINE_DIR", DEFAULT_STORE_DIR)),
        help=f"Baseline store directory (default: {DEFAULT_STORE_DIR}, from BENCHMARK_BASELINE_DIR env)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Compare command
    cmp_parser = subparsers.add_parser("compare", help="Compare captured benchmark output against a baseline")
    cmp_parser.add_argument("--current", type=Path, required=True, help="Captured output of the current run")
    baseline_group = cmp_parser.add_mutually_exclusive_group()
    baseline_group.add_argument("--baseline-file", type=Path, help="Captured output of the baseline run")
    baseline_group.add_argument("--baseline", type=str, help="Stored baseline label (default: latest stored baseline)")
    cmp_parser.add_argument("--output", type=Path, help="Write the report to this file (.md for markdown)")
    cmp_parser.add_argument("--json-output", type=Path, help="Write the machine-readable report to this file")
    cmp_parser.add_argument(
        "--threshold", type=float, help="Regression threshold in percent (default: 5.0, from BENCHMARK_REGRESSION_THRESHOLD env)"
    )
    cmp_parser.add_argument(
        "--improvement-threshold",
        type=float,
        help="Improvement threshold in percent (default: same as --threshold, from BENCHMARK_IMPROVEMENT_THRESHOLD env)",
    )
    cmp_parser.add_argument(
        "--critical-multiple",
        type=float,
        help="Regressions at or above this multiple of the threshold are blocking (default: 2.0, from BENCHMARK_CRITICAL_MULTIPLE env)",
    )
    cmp_parser.add_argument("--quiet", "-q", action="store_true", help="Do not print the report to stdout")

    # Baseline commands
    create_parser = subparsers.add_parser("create-baseline", help="Store captured benchmark output as a baseline")
    create_parser.add_argument("--input", type=Path, required=True, help="Captured benchmark output (text or hyperfine JSON)")
    create_parser.add_argument("--label", type=str, default=os.getenv("BASELINE_LABEL"), help="Baseline label (default: baseline-<timestamp>)")
    create_parser.add_argument("--force", action="store_true", help="Overwrite an existing baseline with the same label")

    subparsers.add_parser("list-baselines", help="List stored baselines, newest first")

    show_parser = subparsers.add_parser("show-baseline", help="Show the samples of a stored baseline")
    show_parser.add_argument("--label", type=str, help="Baseline label (default: latest)")

    prune_parser = subparsers.add_parser("prune-baselines", help="Delete all but the newest baselines")
    prune_parser.add_argument("--keep", type=int, default=5, help="Number of baselines to keep (default: 5)")

    hw_parser = subparsers.add_parser("hardware", help="Show the hardware information recorded with baselines")
    hw_parser.add_argument("--json", action="store_true", help="Output in JSON format")

    return parser


def execute_compare(args: argparse.Namespace, store: BaselineStore) -> int:
    """Run the compare command and map the verdict to an exit code."""
    config = build_config(args)
    comparator = PerformanceComparator(store, config)
    report, notes = comparator.compare_with_baseline(args.current, baseline_file=args.baseline_file, baseline_label=args.baseline)
    text = comparator.write_outputs(report, notes, output_file=args.output, json_output=args.json_output)

    if not args.quiet:
        print(text)

    verdict = determine_verdict(report, config)
    WorkflowHelper.write_github_output({"verdict": verdict.value, "regressions": str(len(report.regressions))})
    return VERDICT_EXIT_CODES[verdict]


def execute_baseline_commands(args: argparse.Namespace, store: BaselineStore) -> int:
    """Execute baseline management commands."""
    manager = BaselineManager(store)

    if args.command == "create-baseline":
        try:
            record = manager.create_baseline(args.input, label=args.label, force=args.force)
        except LabelConflictError as e:
            print(f"❌ {e}", file=sys.stderr)
            print("   Use a new --label, or --force to overwrite", file=sys.stderr)
            return EXIT_ERROR
        print(f"✅ Created baseline {record.label} with {len(record.run)} samples", file=sys.stderr)
        if record.run.dropped:
            print(f"⚠️  {len(record.run.dropped)} samples were dropped while parsing", file=sys.stderr)
        print(record.label)  # Output label to stdout
        return 0

    if args.command == "list-baselines":
        print(manager.format_baseline_list(), end="")
        return 0

    if args.command == "show-baseline":
        print(manager.format_baseline(args.label), end="")
        return 0

    if args.command == "prune-baselines":
        removed = store.prune(args.keep)
        print(f"🧹 Removed {len(removed)} baselines (kept newest {args.keep})")
        for label in removed:
            print(f"   {label}")
        return 0

    return EXIT_ERROR


def execute_command(args: argparse.Namespace) -> int:
    """Execute the selected command and return its exit code."""
    store = BaselineStore(args.store_dir)

    if args.command == "compare":
        return execute_compare(args, store)

    if args.command in ("create-baseline", "list-baselines", "show-baseline", "prune-baselines"):
        return execute_baseline_commands(args, store)

    if args.command == "hardware":
        hardware = HardwareInfo()
        if args.json:
            print(json.dumps(hardware.get_hardware_info(), indent=2))
        else:
            print(hardware.format_hardware_info(), end="")
        return 0

    return EXIT_ERROR


def main():
    """Command-line interface for benchmark comparison utilities."""
    parser = create_argument_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(EXIT_ERROR)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        exit_code = execute_command(args)
    except ParseError as e:
        print(f"❌ Benchmark output could not be parsed: {e}", file=sys.stderr)
        print("   The benchmark execution may have failed or produced no usable output", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except StoreError as e:
        print(f"❌ Baseline error: {e}", file=sys.stderr)
        print("💡 Create one with: benchmark-compare create-baseline --input <output.txt>", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except ValueError as e:
        # ConfigError is a ValueError
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except OSError as e:
        print(f"❌ I/O error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
