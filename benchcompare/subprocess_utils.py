#!/usr/bin/env python3
"""
subprocess_utils.py - Running the hardware queries behind hardware_utils

Only used for `sysctl` on macOS, where the CPU model and memory size are not
available from the standard library. The executable is resolved to a full
path first and a non-zero exit raises unless the caller opts out.
"""

import shutil
import subprocess
from collections.abc import Sequence
from typing import Any

# Hardware queries answer instantly; anything slower is treated as unavailable
DEFAULT_TIMEOUT_SECONDS = 10


class ExecutableNotFoundError(Exception):
    """Raised when a required executable is not on PATH."""


def get_safe_executable(command: str) -> str:
    """Resolve `command` (e.g. "sysctl") to its full path or raise ExecutableNotFoundError."""
    full_path = shutil.which(command)
    if full_path is None:
        msg = f"Required executable '{command}' not found in PATH"
        raise ExecutableNotFoundError(msg)
    return full_path


def run_safe_command(command: str, args: Sequence[str] = (), **kwargs: Any) -> subprocess.CompletedProcess[str]:
    """
    Run a command and capture its output as UTF-8 text.

    Defaults are check=True and a 10 second timeout; keyword arguments are
    passed to subprocess.run and override them.

    Raises:
        ExecutableNotFoundError: If the executable is not on PATH
        subprocess.CalledProcessError: If the command exits non-zero and check=True
        subprocess.TimeoutExpired: If the command does not finish in time
    """
    run_kwargs: dict[str, Any] = {
        "capture_output": True,
        "encoding": "utf-8",
        "check": True,
        "timeout": DEFAULT_TIMEOUT_SECONDS,
        **kwargs,
    }
    return subprocess.run([get_safe_executable(command), *args], **run_kwargs)  # noqa: S603  # full path, no shell
