#!/usr/bin/env python3
"""
baseline_store.py - Filesystem persistence for performance baselines

Each baseline is one JSON document named after its label inside the store
directory. Saving never overwrites an existing label unless force_save() is
used, and documents are written to a temporary file first and then linked or
renamed into place so readers never observe a partially written baseline.
"""

import contextlib
import json
import logging
import os
import re
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

try:
    # When executed as a script from benchcompare/
    from benchmark_models import BaselineRecord, BenchmarkRun, BenchmarkSample, DroppedSample, Unit  # type: ignore[no-redef]
except ModuleNotFoundError:
    # When imported as a module (e.g., benchcompare.baseline_store)
    from benchcompare.benchmark_models import BaselineRecord, BenchmarkRun, BenchmarkSample, DroppedSample, Unit  # type: ignore[no-redef]

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
_LABEL_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class StoreError(Exception):
    """Base exception for baseline store failures."""


class BaselineNotFoundError(StoreError):
    """Raised when a requested baseline (or any baseline at all) is absent."""


class LabelConflictError(StoreError):
    """Raised when saving would overwrite an existing baseline label."""


class InvalidLabelError(StoreError):
    """Raised when a label cannot be used as a baseline name."""


def generate_label(prefix: str = "baseline", now: datetime | None = None) -> str:
    """
    Generate a timestamp-derived baseline label.

    Args:
        prefix: Label prefix (e.g., "baseline" or a version tag)
        now: Timestamp to use (defaults to the current UTC time)

    Returns:
        Label like "baseline-20250101-120000"
    """
    now = now or datetime.now(UTC)
    clean_prefix = re.sub(r"[^A-Za-z0-9._-]", "_", prefix) or "baseline"
    return f"{clean_prefix}-{now.strftime('%Y%m%d-%H%M%S')}"


def _as_utc(value: datetime) -> datetime:
    """Timestamps without a timezone are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _run_to_dict(run: BenchmarkRun) -> dict[str, Any]:
    return {
        "source_ref": run.source_ref,
        "captured_at": _as_utc(run.captured_at).isoformat(),
        "samples": [
            {
                "name": sample.name,
                "raw_value": sample.raw_value,
                "unit": sample.unit.value,
                "normalized_ns": sample.normalized_ns,
            }
            for sample in sorted(run.samples.values(), key=lambda s: s.name)
        ],
        "dropped": [
            {"line_number": d.line_number, "name": d.name, "reason": d.reason, "detail": d.detail} for d in run.dropped
        ],
    }


def _run_from_dict(data: dict[str, Any]) -> BenchmarkRun:
    run = BenchmarkRun(
        captured_at=_as_utc(datetime.fromisoformat(data["captured_at"])),
        source_ref=data.get("source_ref", ""),
    )
    for entry in data["samples"]:
        run.add_sample(BenchmarkSample(entry["name"], float(entry["raw_value"]), Unit.from_token(entry["unit"])))
    run.dropped = [DroppedSample(**entry) for entry in data.get("dropped", [])]
    return run


class BaselineStore:
    """Persist and retrieve labelled benchmark runs in a directory."""

    def __init__(self, store_dir: Path):
        self.store_dir = Path(store_dir)

    def _path_for(self, label: str) -> Path:
        if not _LABEL_RE.match(label or ""):
            msg = f"Invalid baseline label: {label!r} (use letters, digits, '.', '_' and '-')"
            raise InvalidLabelError(msg)
        return self.store_dir / f"{label}.json"

    def exists(self, label: str) -> bool:
        return self._path_for(label).exists()

    def save(
        self, run: BenchmarkRun, label: str, environment: dict[str, str] | None = None, created_at: datetime | None = None
    ) -> BaselineRecord:
        """
        Save a run under a new label.

        Args:
            run: Run to persist
            label: New, unused label
            environment: Hardware/environment description stored alongside
            created_at: Creation time (defaults to now, UTC)

        Returns:
            The persisted BaselineRecord

        Raises:
            LabelConflictError: If the label already exists
            InvalidLabelError: If the label is not a valid name
        """
        return self._write(run, label, environment, created_at, overwrite=False)

    def force_save(
        self, run: BenchmarkRun, label: str, environment: dict[str, str] | None = None, created_at: datetime | None = None
    ) -> BaselineRecord:
        """Save a run, explicitly replacing any baseline with the same label."""
        return self._write(run, label, environment, created_at, overwrite=True)

    def _write(
        self, run: BenchmarkRun, label: str, environment: dict[str, str] | None, created_at: datetime | None, overwrite: bool
    ) -> BaselineRecord:
        path = self._path_for(label)
        if not overwrite and path.exists():
            msg = f"Baseline '{label}' already exists; choose a new label or force the overwrite"
            raise LabelConflictError(msg)

        record = BaselineRecord(label=label, created_at=_as_utc(created_at or datetime.now(UTC)), run=run, environment=dict(environment or {}))
        document = {
            "format_version": FORMAT_VERSION,
            "label": record.label,
            "created_at": record.created_at.isoformat(),
            "environment": record.environment,
            "run": _run_to_dict(run),
        }

        self.store_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{label}.", suffix=".tmp", dir=self.store_dir)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())

            if overwrite:
                os.replace(tmp_path, path)
            else:
                # link() refuses to clobber, so a concurrent save of the same label loses cleanly
                try:
                    os.link(tmp_path, path)
                except FileExistsError as e:
                    msg = f"Baseline '{label}' already exists; choose a new label or force the overwrite"
                    raise LabelConflictError(msg) from e
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_path.unlink()

        logger.info("Saved baseline %s with %d samples to %s", label, len(run), path)
        return record

    def load_record(self, label: str) -> BaselineRecord:
        """
        Load a baseline record by label.

        Raises:
            BaselineNotFoundError: If no baseline has this label
            StoreError: If the stored document is unreadable
        """
        path = self._path_for(label)
        if not path.exists():
            msg = f"Baseline not found: {label}"
            raise BaselineNotFoundError(msg)
        return self._read(path)

    def load(self, label: str) -> BenchmarkRun:
        """Load the run stored under a label."""
        return self.load_record(label).run

    def _read(self, path: Path) -> BaselineRecord:
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
            return BaselineRecord(
                label=document["label"],
                created_at=_as_utc(datetime.fromisoformat(document["created_at"])),
                run=_run_from_dict(document["run"]),
                environment=dict(document.get("environment") or {}),
            )
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            msg = f"Corrupted baseline document {path}: {e}"
            raise StoreError(msg) from e

    def _scan(self) -> list[tuple[Path, BaselineRecord]]:
        """Readable documents with the file each was read from, newest first."""
        if not self.store_dir.is_dir():
            return []

        entries = []
        for path in self.store_dir.glob("*.json"):
            try:
                entries.append((path, self._read(path)))
            except StoreError as e:
                logger.warning("Skipping unreadable baseline: %s", e)
        entries.sort(key=lambda entry: (entry[1].created_at, entry[1].label), reverse=True)
        return entries

    def list_records(self) -> list[BaselineRecord]:
        """
        List stored baselines, newest first.

        Unreadable documents are skipped with a warning.
        """
        return [record for _, record in self._scan()]

    def load_latest_record(self) -> BaselineRecord:
        """
        Load the most recently created baseline (by created_at).

        Raises:
            BaselineNotFoundError: If the store holds no baseline
        """
        records = self.list_records()
        if not records:
            msg = f"No baselines found in {self.store_dir}"
            raise BaselineNotFoundError(msg)
        return records[0]

    def load_latest(self) -> BenchmarkRun:
        """Load the run of the most recently created baseline."""
        return self.load_latest_record().run

    def prune(self, keep: int) -> list[str]:
        """
        Delete all but the newest `keep` baselines.

        Returns:
            Labels that were removed
        """
        if keep < 0:
            msg = "keep must be >= 0"
            raise ValueError(msg)

        removed = []
        for path, record in self._scan()[keep:]:
            path.unlink(missing_ok=True)
            removed.append(record.label)
            logger.info("Removed baseline %s (%s)", record.label, path.name)
        return removed
