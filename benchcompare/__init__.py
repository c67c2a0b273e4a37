"""Benchmark regression detection: parse benchmark output, compare against baselines, report."""
