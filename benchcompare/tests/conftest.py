"""
Shared pytest fixtures and utilities for test modules.

Provides benchmark output samples and run builders reused across test files.
"""

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

# Ensure `benchcompare/` is on sys.path for test imports
# This must be done before importing any local modules
_package_dir = Path(__file__).resolve().parents[1]
if str(_package_dir) not in sys.path:
    sys.path.insert(0, str(_package_dir))

from benchmark_models import BenchmarkRun, BenchmarkSample, Unit  # noqa: E402

FIXED_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def make_run():
    """
    Pytest fixture returning a builder for BenchmarkRun objects.

    Usage:
        def test_something(make_run):
            run = make_run({"scan_1k": (100, "ms")})
    """

    def _make_run(samples: dict[str, tuple[float, str]], source_ref: str = "test") -> BenchmarkRun:
        run = BenchmarkRun(captured_at=FIXED_TIME, source_ref=source_ref)
        for name, (value, unit) in samples.items():
            run.add_sample(BenchmarkSample(name, float(value), Unit.from_token(unit)))
        return run

    return _make_run


@pytest.fixture
def criterion_output():
    """Sample Criterion stdout with inline and wrapped benchmark names."""
    return """
Gnuplot not found, using plotters backend
Benchmarking construction/2D/1000v: Warming up for 3.0000 s
Benchmarking construction/2D/1000v: Collecting 100 samples in estimated 5.0 s (1000 iterations)
construction/2D/1000v   time:   [12.345 ms 12.456 ms 12.567 ms]
                        change: [+2.5% +3.1% +3.8%] (p = 0.00 < 0.05)
                        Performance has regressed.
Found 3 outliers among 100 measurements (3.00%)
iteration/vertices/1000v
                        time:   [5.123 µs 5.234 µs 5.345 µs]
queries/neighbors/1000v
                        time:   [8.901 ns 9.012 ns 9.123 ns]
"""


@pytest.fixture
def hyperfine_output():
    """Sample hyperfine text output for two commands."""
    return """
Benchmark 1: prtip -sS -p 1-1000 127.0.0.1
  Time (mean ± σ):     102.3 ms ±   0.5 ms    [User: 0.6 ms, System: 1.0 ms]
  Range (min … max):   101.5 ms … 103.2 ms    10 runs

Benchmark 2: prtip -sT -p 80 127.0.0.1
  Time (mean ± σ):      1.250 s ±  0.010 s    [User: 0.2 s, System: 0.3 s]
  Range (min … max):    1.240 s …  1.270 s    10 runs

Summary
  'prtip -sS -p 1-1000 127.0.0.1' ran
   12.22 ± 0.12 times faster than 'prtip -sT -p 80 127.0.0.1'
"""
