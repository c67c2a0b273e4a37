#!/usr/bin/env python3
"""
benchmark_parser.py - Parse benchmark harness output into benchmark runs

Turns the captured stdout of a benchmark execution into a BenchmarkRun with
every timing normalized to nanoseconds. Supported shapes:

- Criterion: "name  time: [lo unit est unit hi unit]", or the name on its own
  line followed by an indented "time:" line (the point estimate is used)
- hyperfine text: "Benchmark 1: <command>" followed by "Time (mean ± σ): ..."
- Plain "name = 1.5 ms" / "name: 1.5 ms" lines
- A name line followed, not necessarily immediately, by a "<value> <unit>" line
- hyperfine --export-json documents

When a benchmark block holds more than one timing line the FIRST one is used;
later ones are ignored. A line such as "100 samples" inside a block is not a
timing; the block only drops its sample (recorded on the run) when no valid
timing follows before the next benchmark, and parsing carries on.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path

try:
    # When executed as a script from benchcompare/
    from benchmark_models import BenchmarkRun, BenchmarkSample, DroppedSample, Unit, UnknownUnitError  # type: ignore[no-redef]
except ModuleNotFoundError:
    # When imported as a module (e.g., benchcompare.benchmark_parser)
    from benchcompare.benchmark_models import BenchmarkRun, BenchmarkSample, DroppedSample, Unit, UnknownUnitError  # type: ignore[no-redef]

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Raised when benchmark output cannot be turned into a run."""


class EmptyResultError(ParseError):
    """Raised when no valid sample could be extracted from benchmark output."""

    def __init__(self, msg: str, dropped: list[DroppedSample] | None = None):
        super().__init__(msg)
        self.dropped = dropped or []


_NUMBER = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?"
# Anything that could be a unit token, recognized or not
_TOKEN = r"[^\s\d\[\]()±,;]+"

# Criterion progress chatter, e.g. "Benchmarking foo: Warming up for 3.0000 s"
_PROGRESS_RE = re.compile(r"^Benchmarking\s")
# hyperfine header, e.g. "Benchmark 1: sleep 0.1"
_HYPERFINE_HEADER_RE = re.compile(r"^Benchmark\s+\d+:\s*(?P<name>.+)$")
# A line holding a single identifier, e.g. "construction/2D/1000v" or "scan_1k:"
_NAME_LINE_RE = re.compile(r"^(?P<name>[A-Za-z_][\w:./\-]*?):?$")
# Criterion single-line form: "<name>   time:   [...]"
_CRITERION_INLINE_RE = re.compile(r"^(?P<name>[A-Za-z_][\w:./\-]*)\s+(?P<rest>time:.*)$")
# "<name> = <value> <unit>" or "<name>: <value> <unit>"
_ASSIGN_RE = re.compile(rf"^(?P<name>[A-Za-z_][\w:./\-]*?)\s*[:=]\s*(?P<value>{_NUMBER})\s?(?P<token>{_TOKEN})(?:\s|$)")
# "time: ..." and "Time (mean ± σ): ..."
_LABELLED_TIME_RE = re.compile(r"^time\b[^:]*:\s*(?P<rest>.*)$", re.IGNORECASE)
_TRIPLE_RE = re.compile(rf"^\[\s*{_NUMBER}\s?{_TOKEN}\s+(?P<value>{_NUMBER})\s?(?P<token>{_TOKEN})\s+{_NUMBER}\s?{_TOKEN}\s*\]")
_LEADING_VALUE_RE = re.compile(rf"^\[?\s*(?P<value>{_NUMBER})\s?(?P<token>{_TOKEN})")
# A line that is nothing but "<value> <unit>"
_BARE_RE = re.compile(rf"^(?P<value>{_NUMBER})\s?(?P<token>{_TOKEN})$")
# Known units embedded anywhere in a line
_KNOWN_TIMING_RE = re.compile(rf"(?<![\w.])(?P<value>{_NUMBER})[ \t]?(?P<token>ns|us|µs|μs|ms|s)(?![\w/])")

# Labels that introduce a measurement rather than name a benchmark
_MEASUREMENT_LABELS = frozenset({"time", "mean", "median", "min", "max", "range", "change", "thrpt", "throughput", "user", "system"})


def _match_measurement(text: str) -> tuple[str, str] | None:
    """
    Find the timing value on a line inside a benchmark block.

    Args:
        text: Stripped line content

    Returns:
        Tuple of (value, unit token) or None when the line carries no timing.
        The token may be an unrecognized unit for measurement-shaped lines.
    """
    labelled = _LABELLED_TIME_RE.match(text)
    if labelled:
        rest = labelled.group("rest")
        match = _TRIPLE_RE.match(rest) or _LEADING_VALUE_RE.match(rest)
        if match:
            return match.group("value"), match.group("token")
        return None

    assigned = _ASSIGN_RE.match(text)
    if assigned and assigned.group("name").lower() in _MEASUREMENT_LABELS:
        return assigned.group("value"), assigned.group("token")

    match = _BARE_RE.match(text) or _KNOWN_TIMING_RE.search(text)
    if match:
        return match.group("value"), match.group("token")
    return None


def _match_inline(text: str) -> tuple[str, str, str] | None:
    """
    Match a line that names a benchmark and carries its timing.

    Returns:
        Tuple of (name, value, unit token) or None
    """
    criterion = _CRITERION_INLINE_RE.match(text)
    if criterion:
        measurement = _match_measurement(criterion.group("rest"))
        if measurement:
            return criterion.group("name"), *measurement

    assigned = _ASSIGN_RE.match(text)
    if assigned and assigned.group("name").lower() not in _MEASUREMENT_LABELS:
        return assigned.group("name"), assigned.group("value"), assigned.group("token")
    return None


def _match_name(text: str) -> str | None:
    """Match a line that opens a benchmark block without carrying a timing."""
    header = _HYPERFINE_HEADER_RE.match(text)
    if header:
        return header.group("name").strip()

    name_line = _NAME_LINE_RE.match(text)
    if name_line and name_line.group("name").lower() not in _MEASUREMENT_LABELS:
        return name_line.group("name")
    return None


class BenchmarkOutputParser:
    """Parse captured benchmark output text into a BenchmarkRun."""

    def __init__(self, source_ref: str = "", captured_at: datetime | None = None):
        self.source_ref = source_ref
        self.captured_at = captured_at

    def _new_run(self) -> BenchmarkRun:
        run = BenchmarkRun(source_ref=self.source_ref)
        if self.captured_at is not None:
            run.captured_at = self.captured_at
        return run

    def parse(self, raw_text: str) -> BenchmarkRun:
        """
        Parse benchmark output text.

        Args:
            raw_text: Complete captured output of one benchmark execution

        Returns:
            BenchmarkRun with one sample per benchmark name

        Raises:
            EmptyResultError: If no valid sample was found
        """
        run = self._new_run()
        block_name: str | None = None
        block_measured = False
        # Unusable timing in the open block, dropped only if no valid timing follows
        pending: DroppedSample | None = None

        for line_number, line in enumerate(raw_text.splitlines(), start=1):
            text = line.strip()
            if not text or _PROGRESS_RE.match(text):
                continue

            inline = _match_inline(text)
            if inline:
                self._flush(run, pending)
                name, value, token = inline
                pending = self._take(run, name, value, token, line_number)
                block_name, block_measured = name, pending is None
                continue

            name = _match_name(text)
            if name:
                self._flush(run, pending)
                block_name, block_measured, pending = name, False, None
                continue

            if block_name is None:
                continue

            measurement = _match_measurement(text)
            if measurement is None:
                continue

            if block_measured:
                logger.debug("Ignoring additional timing on line %d for %s (first occurrence kept)", line_number, block_name)
                continue

            failure = self._take(run, block_name, *measurement, line_number)
            if failure is None:
                if pending is not None:
                    logger.debug("Ignoring non-timing line %d for %s: %s", pending.line_number, block_name, pending.detail)
                block_measured, pending = True, None
            elif pending is None:
                pending = failure

        self._flush(run, pending)
        return self._finish(run)

    def parse_hyperfine_json(self, raw_json: str) -> BenchmarkRun:
        """
        Parse a hyperfine --export-json document.

        Each entry of "results" becomes a sample named by its command, using
        the mean (reported by hyperfine in seconds).

        Raises:
            ParseError: If the document is not valid hyperfine JSON
            EmptyResultError: If no entry has a usable mean
        """
        try:
            document = json.loads(raw_json)
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON benchmark output: {e}"
            raise ParseError(msg) from e

        results = document.get("results") if isinstance(document, dict) else None
        if not isinstance(results, list):
            msg = "JSON benchmark output has no 'results' array"
            raise ParseError(msg)

        run = self._new_run()
        for index, entry in enumerate(results, start=1):
            if not isinstance(entry, dict):
                continue
            name = str(entry.get("command") or f"result_{index}")
            mean = entry.get("mean")
            if isinstance(mean, bool) or not isinstance(mean, int | float):
                self._drop(run, DroppedSample(index, name, "invalid_value", repr(mean)))
                continue
            self._flush(run, self._take(run, name, str(mean), Unit.SECONDS.value, index))

        return self._finish(run)

    def _take(self, run: BenchmarkRun, name: str, value: str, token: str, line_number: int) -> DroppedSample | None:
        """
        Add one sample to the run.

        Returns:
            None when the sample was taken (or dropped as a duplicate name),
            otherwise the DroppedSample explaining why the value is unusable
        """
        try:
            unit = Unit.from_token(token)
        except UnknownUnitError:
            return DroppedSample(line_number, name, "unknown_unit", token)

        try:
            sample = BenchmarkSample(name, float(value), unit)
        except ValueError:
            return DroppedSample(line_number, name, "invalid_value", f"{value} {token}")

        if not run.add_sample(sample):
            self._drop(run, DroppedSample(line_number, name, "duplicate_name", "first occurrence kept"))
            return None

        logger.debug("Parsed %s = %s %s (%.1f ns)", name, value, unit.value, sample.normalized_ns)
        return None

    @staticmethod
    def _drop(run: BenchmarkRun, dropped: DroppedSample) -> None:
        logger.warning("Dropping sample: %s", dropped.describe())
        run.dropped.append(dropped)

    def _flush(self, run: BenchmarkRun, pending: DroppedSample | None) -> None:
        if pending is not None:
            self._drop(run, pending)

    def _finish(self, run: BenchmarkRun) -> BenchmarkRun:
        if not run.samples:
            msg = "No valid benchmark samples found"
            if self.source_ref:
                msg += f" in {self.source_ref}"
            if run.dropped:
                msg += f" ({len(run.dropped)} dropped)"
            raise EmptyResultError(msg, run.dropped)
        return run


def parse(raw_text: str, source_ref: str = "", captured_at: datetime | None = None) -> BenchmarkRun:
    """
    Parse benchmark output text into a BenchmarkRun.

    Raises:
        EmptyResultError: If no valid sample was found
    """
    return BenchmarkOutputParser(source_ref, captured_at).parse(raw_text)


def parse_hyperfine_json(raw_json: str, source_ref: str = "", captured_at: datetime | None = None) -> BenchmarkRun:
    """Parse a hyperfine JSON export into a BenchmarkRun."""
    return BenchmarkOutputParser(source_ref, captured_at).parse_hyperfine_json(raw_json)


def parse_file(path: Path, source_ref: str | None = None) -> BenchmarkRun:
    """
    Parse a captured benchmark output file, detecting hyperfine JSON exports.

    Args:
        path: File holding the captured output
        source_ref: Reference recorded on the run (defaults to the file path)

    Raises:
        OSError: If the file cannot be read
        ParseError: If the content holds no usable samples
    """
    content = path.read_text(encoding="utf-8", errors="replace")
    ref = source_ref if source_ref is not None else str(path)
    if content.lstrip().startswith("{"):
        return parse_hyperfine_json(content, ref)
    return parse(content, ref)
