#!/usr/bin/env python3
"""
hardware_utils.py - Describe the benchmark machine and check baseline compatibility

Baselines record the machine they were captured on; comparisons warn when the
current machine differs, since timing deltas across machines are not directly
comparable.
"""

import logging
import os
import platform
import re
import subprocess

try:
    # When executed as a script from benchcompare/
    from subprocess_utils import ExecutableNotFoundError, run_safe_command  # type: ignore[no-redef,import-not-found]
except ModuleNotFoundError:
    # When imported as a module (e.g., benchcompare.hardware_utils)
    from benchcompare.subprocess_utils import ExecutableNotFoundError, run_safe_command  # type: ignore[no-redef,import-not-found]

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
HARDWARE_KEYS = ("OS", "ARCH", "CPU", "CPU_THREADS", "MEMORY")


class HardwareInfo:
    """Cross-platform hardware information detection."""

    def __init__(self):
        self.os_type = platform.system()
        self.machine = platform.machine()

    def get_cpu_model(self) -> str:
        """
        Get the CPU model name.

        Returns:
            CPU model name or "Unknown"
        """
        try:
            if self.os_type == "Darwin":
                return self._run_command(["sysctl", "-n", "machdep.cpu.brand_string"]) or UNKNOWN
            if self.os_type == "Linux":
                return self._get_linux_cpu_model()
            if self.os_type == "Windows":
                return platform.processor() or UNKNOWN
        except (OSError, ExecutableNotFoundError, subprocess.SubprocessError) as e:
            logger.debug("Failed to get CPU model for OS %s: %s", self.os_type, e)
        return UNKNOWN

    def _get_linux_cpu_model(self) -> str:
        try:
            with open("/proc/cpuinfo", encoding="utf-8") as f:
                for line in f:
                    if line.startswith(("model name", "Processor")):
                        return line.split(":", 1)[1].strip()
        except (FileNotFoundError, PermissionError):
            pass
        return UNKNOWN

    def get_memory_info(self) -> str:
        """
        Get total memory as a string like "16.0 GB".

        Returns:
            Memory size or "Unknown"
        """
        try:
            if self.os_type == "Darwin":
                mem_bytes = int(self._run_command(["sysctl", "-n", "hw.memsize"]))
                return f"{mem_bytes / (1024**3):.1f} GB"
            if self.os_type == "Linux":
                with open("/proc/meminfo", encoding="utf-8") as f:
                    for line in f:
                        if line.startswith("MemTotal:"):
                            mem_kb = int(line.split()[1])
                            return f"{mem_kb / (1024**2):.1f} GB"
        except (OSError, ValueError, IndexError, ExecutableNotFoundError, subprocess.SubprocessError) as e:
            logger.debug("Failed to get memory info for OS %s: %s", self.os_type, e)
        return UNKNOWN

    def get_hardware_info(self) -> dict[str, str]:
        """
        Get hardware information stored alongside baselines.

        Returns:
            Dictionary keyed by HARDWARE_KEYS
        """
        os_name_map = {"Darwin": "macOS", "Linux": "Linux", "Windows": "Windows"}
        threads = os.cpu_count()

        return {
            "OS": os_name_map.get(self.os_type, f"Unknown ({self.os_type})"),
            "ARCH": self.machine or UNKNOWN,
            "CPU": self.get_cpu_model(),
            "CPU_THREADS": str(threads) if threads else UNKNOWN,
            "MEMORY": self.get_memory_info(),
        }

    def format_hardware_info(self, info: dict[str, str] | None = None) -> str:
        """Format hardware information as a readable block."""
        if info is None:
            info = self.get_hardware_info()

        return f"""Hardware Information:
  OS: {info.get("OS", UNKNOWN)}
  Arch: {info.get("ARCH", UNKNOWN)}
  CPU: {info.get("CPU", UNKNOWN)}
  CPU Threads: {info.get("CPU_THREADS", UNKNOWN)}
  Memory: {info.get("MEMORY", UNKNOWN)}
"""

    def _run_command(self, cmd: list[str]) -> str:
        """
        Run a hardware query command and return its stripped output.

        Raises:
            ValueError: If the command list is empty
            subprocess.CalledProcessError: If the command fails
        """
        if not cmd:
            error_msg = "Command list cannot be empty"
            raise ValueError(error_msg)

        result = run_safe_command(cmd[0], cmd[1:])
        return result.stdout.strip()


class HardwareComparator:
    """Compare hardware configurations for baseline compatibility."""

    @staticmethod
    def compare_hardware(current_info: dict[str, str], baseline_info: dict[str, str]) -> list[str]:
        """
        Compare the current machine with the one a baseline was captured on.

        Keys unknown on either side are not compared.

        Returns:
            Warning lines; empty when the configurations are compatible
        """
        labels = {"OS": "OS", "ARCH": "Architecture", "CPU": "CPU", "CPU_THREADS": "CPU thread count"}
        warnings = []

        for key, label in labels.items():
            current = current_info.get(key, UNKNOWN)
            baseline = baseline_info.get(key, UNKNOWN)
            if UNKNOWN in (current, baseline):
                continue
            if current != baseline:
                warnings.append(f"⚠️  {label} differs: '{current}' vs baseline '{baseline}'")

        current_mem = HardwareComparator._extract_memory_value(current_info.get("MEMORY", UNKNOWN))
        baseline_mem = HardwareComparator._extract_memory_value(baseline_info.get("MEMORY", UNKNOWN))
        if current_mem is not None and baseline_mem is not None and abs(current_mem - baseline_mem) > 0.1:
            warnings.append(f"⚠️  Memory differs: {current_info['MEMORY']} vs baseline {baseline_info['MEMORY']}")

        if warnings:
            warnings.append("   Results may not be directly comparable")
        return warnings

    @staticmethod
    def _extract_memory_value(memory_str: str) -> float | None:
        """Extract numeric memory value from string like '16.0 GB'."""
        match = re.search(r"([0-9]+(?:\.[0-9]+)?)", memory_str.replace(",", "."))
        if match:
            return float(match.group(1))
        return None
