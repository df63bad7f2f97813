"""System characterization printed before a run.

Captures the CPU, OS and interpreter the benchmark runs on, and flags
anything in the interpreter that distorts timings (an active trace or
profile function, a debug build).

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
import sysconfig
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import click

log = logging.getLogger("kvbench")


# ---------------------------------------------------------------------------
# SystemProfile
# ---------------------------------------------------------------------------


@dataclass
class SystemProfile:
    """Characterization of the machine and interpreter running a benchmark."""

    # CPU
    cpu_model: str = "unknown"
    cpu_cores_physical: int = 0
    cpu_cores_logical: int = 0
    cpu_architecture: str = ""

    # OS
    os_name: str = ""
    os_kernel_version: str = ""

    # Python
    python_version: str = ""
    python_implementation: str = ""
    debug_build: bool = False
    trace_active: bool = False
    profile_active: bool = False

    # State at capture time
    load_avg_1m: float = 0.0
    load_avg_5m: float = 0.0
    load_avg_15m: float = 0.0

    hostname: str = ""
    timestamp: str = ""

    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


def _sysctl(key: str) -> str | None:
    """Read a sysctl string value. Returns None on failure."""
    try:
        proc = subprocess.run(
            ["sysctl", "-n", key],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        log.debug("sysctl %s failed: %s", key, exc)
        return None
    if proc.returncode == 0 and proc.stdout.strip():
        return proc.stdout.strip()
    return None


def capture_system_profile() -> SystemProfile:
    """Capture the system profile.

    All operations are best-effort: individual failures produce default
    values rather than exceptions.
    """
    profile = SystemProfile(
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        hostname=platform.node(),
        cpu_architecture=platform.machine(),
        cpu_cores_logical=os.cpu_count() or 0,
        os_name=platform.system(),
        os_kernel_version=platform.release(),
        python_version=platform.python_version(),
        python_implementation=platform.python_implementation(),
        debug_build=bool(sysconfig.get_config_var("Py_DEBUG")),
        trace_active=sys.gettrace() is not None,
        profile_active=sys.getprofile() is not None,
    )

    if sys.platform == "linux":
        _capture_cpu_info_linux(profile)
    elif sys.platform == "darwin":
        _capture_cpu_info_darwin(profile)
    else:
        log.debug("CPU info capture not supported on %s", sys.platform)
    if not profile.cpu_cores_physical:
        profile.cpu_cores_physical = profile.cpu_cores_logical

    try:
        profile.load_avg_1m, profile.load_avg_5m, profile.load_avg_15m = (
            round(v, 2) for v in os.getloadavg()
        )
    except (AttributeError, OSError):
        log.debug("Load average not available")

    if profile.trace_active:
        profile.warnings.append("a trace function is active (debugger or coverage)")
    if profile.profile_active:
        profile.warnings.append("a profile function is active")
    if profile.debug_build:
        profile.warnings.append("the interpreter is a debug build")

    return profile


def _capture_cpu_info_linux(profile: SystemProfile) -> None:
    """Populate CPU fields from /proc/cpuinfo."""
    try:
        cpuinfo = Path("/proc/cpuinfo").read_text()
    except OSError as exc:
        log.debug("Cannot read /proc/cpuinfo: %s", exc)
        return

    for line in cpuinfo.splitlines():
        if line.startswith("model name"):
            profile.cpu_model = line.split(":", 1)[1].strip()
            break

    # Physical cores: count unique (physical id, core id) pairs.
    physical_ids: set[tuple[str, str]] = set()
    current_physical: str | None = None
    for line in cpuinfo.splitlines():
        if line.startswith("physical id"):
            current_physical = line.split(":", 1)[1].strip()
        elif line.startswith("core id") and current_physical is not None:
            physical_ids.add((current_physical, line.split(":", 1)[1].strip()))
            current_physical = None
    profile.cpu_cores_physical = len(physical_ids)


def _capture_cpu_info_darwin(profile: SystemProfile) -> None:
    """Populate CPU fields using sysctl on macOS."""
    model = _sysctl("machdep.cpu.brand_string")
    if model:
        profile.cpu_model = model
    phys = _sysctl("hw.physicalcpu")
    if phys is not None and phys.isdigit():
        profile.cpu_cores_physical = int(phys)


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def _on_off(flag: bool) -> str:
    return click.style("On", fg="red") if flag else "Off"


def format_system_profile(profile: SystemProfile) -> str:
    """Format a system profile for terminal display."""
    cores = f"{profile.cpu_cores_physical} cores"
    if profile.cpu_cores_logical != profile.cpu_cores_physical:
        cores += f" / {profile.cpu_cores_logical} threads"

    lines = [
        f"Setting up on {profile.cpu_model} ({cores}, {profile.cpu_architecture})",
        f"Using Python {profile.python_version} ({profile.python_implementation}) "
        f"(trace: {_on_off(profile.trace_active)}, "
        f"profile: {_on_off(profile.profile_active)}, "
        f"debug build: {_on_off(profile.debug_build)})",
        f"OS: {profile.os_name} {profile.os_kernel_version}, "
        f"load {profile.load_avg_1m} / {profile.load_avg_5m} / {profile.load_avg_15m}",
    ]
    return "\n".join(lines)

