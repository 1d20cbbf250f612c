"""System characterization for benchmark reports.

Captures the hardware, OS, and Python details printed next to every
report so results from different machines can be told apart.

Supports Linux and macOS. Each capture function dispatches to a
platform-specific implementation; unsupported platforms get defaults.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import subprocess
import sys
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import rulebench

log = logging.getLogger("rulebench")


# ---------------------------------------------------------------------------
# SystemProfile
# ---------------------------------------------------------------------------


@dataclass
class SystemProfile:
    """The machine and interpreter a benchmark ran on."""

    # CPU
    cpu_model: str = "unknown"
    cpu_cores_logical: int = 0
    cpu_freq_mhz: float | None = None
    cpu_architecture: str = ""

    # Memory
    ram_total_gb: float = 0.0

    # OS
    os_name: str = ""
    os_release: str = ""

    # Python running the benchmark
    python_version: str = ""
    python_implementation: str = ""
    rulebench_version: str = ""

    # Environment
    hostname: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ---------------------------------------------------------------------------
# Capture functions (platform dispatch)
# ---------------------------------------------------------------------------


def capture_system_profile() -> SystemProfile:
    """Capture a system profile.

    All operations are best-effort; individual failures leave default
    values rather than raising.
    """
    profile = SystemProfile(
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        hostname=platform.node(),
        cpu_architecture=platform.machine(),
        cpu_cores_logical=os.cpu_count() or 0,
        os_name=platform.system(),
        os_release=platform.release(),
        python_version=platform.python_version(),
        python_implementation=platform.python_implementation(),
        rulebench_version=rulebench.__version__,
    )

    if sys.platform == "linux":
        _capture_cpu_info_linux(profile)
        _capture_memory_info_linux(profile)
    elif sys.platform == "darwin":
        _capture_cpu_info_darwin(profile)
        _capture_memory_info_darwin(profile)
    else:
        log.debug("Hardware info capture not supported on %s", sys.platform)

    return profile


# ---------------------------------------------------------------------------
# Linux capture implementations
# ---------------------------------------------------------------------------


def _capture_cpu_info_linux(profile: SystemProfile) -> None:
    """Populate CPU model and frequency from /proc/cpuinfo."""
    try:
        cpuinfo = Path("/proc/cpuinfo").read_text()
    except OSError:
        return

    for line in cpuinfo.splitlines():
        if line.startswith("model name") and profile.cpu_model == "unknown":
            profile.cpu_model = line.split(":", 1)[1].strip()
        elif line.startswith("cpu MHz") and profile.cpu_freq_mhz is None:
            try:
                profile.cpu_freq_mhz = float(line.split(":", 1)[1].strip())
            except ValueError:
                pass


def _capture_memory_info_linux(profile: SystemProfile) -> None:
    """Populate total RAM from /proc/meminfo."""
    try:
        meminfo = Path("/proc/meminfo").read_text()
    except OSError:
        return

    for line in meminfo.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "MemTotal:":
            # Value is in kB.
            profile.ram_total_gb = int(parts[1]) / (1024 * 1024)
            break


# ---------------------------------------------------------------------------
# macOS capture implementations
# ---------------------------------------------------------------------------


def _sysctl(key: str) -> str | None:
    """Read a sysctl value on macOS. Returns None on failure."""
    try:
        proc = subprocess.run(
            ["sysctl", "-n", key],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if proc.returncode == 0:
        return proc.stdout.strip()
    return None


def _sysctl_int(key: str) -> int | None:
    """Read an integer sysctl value on macOS. Returns None on failure."""
    value = _sysctl(key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _capture_cpu_info_darwin(profile: SystemProfile) -> None:
    """Populate CPU fields using sysctl on macOS."""
    model = _sysctl("machdep.cpu.brand_string")
    if model:
        profile.cpu_model = model

    # Apple Silicon does not expose hw.cpufrequency; leave it as None there.
    freq_hz = _sysctl_int("hw.cpufrequency")
    if freq_hz is not None:
        profile.cpu_freq_mhz = freq_hz / 1_000_000


def _capture_memory_info_darwin(profile: SystemProfile) -> None:
    """Populate total RAM using sysctl on macOS."""
    total_bytes = _sysctl_int("hw.memsize")
    if total_bytes is not None:
        profile.ram_total_gb = total_bytes / (1024**3)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def format_system_profile(profile: SystemProfile) -> str:
    """Format a system profile for terminal display."""
    lines = [
        "System Information",
        "─" * 18,
    ]

    freq = f", {profile.cpu_freq_mhz:.0f} MHz" if profile.cpu_freq_mhz else ""
    lines.append(
        f"CPU:      {profile.cpu_model} ({profile.cpu_cores_logical} cores{freq})"
    )
    lines.append(f"RAM:      {profile.ram_total_gb:.1f} GB")
    lines.append(
        f"OS:       {profile.os_name} {profile.os_release} ({profile.cpu_architecture})"
    )
    lines.append(
        f"Python:   {profile.python_version} ({profile.python_implementation})"
    )
    lines.append(f"rulebench: {profile.rulebench_version}")
    lines.append(f"Hostname: {profile.hostname}")

    return "\n".join(lines)
