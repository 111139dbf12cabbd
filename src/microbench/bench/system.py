"""Host characterization for benchmark results.

Captures the environment descriptor attached to every result and the
memory snapshots taken before each measured iteration.

Supports Linux and macOS. Each capture function dispatches to a
platform-specific implementation; unsupported platforms get defaults.
"""

from __future__ import annotations

import json
import os
import platform
import resource
import subprocess
import sys
import tracemalloc
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from microbench.logging import get_logger

log = get_logger("system")


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@dataclass
class Environment:
    """Description of the host a benchmark ran on."""

    platform: str = ""  # sys.platform, e.g. "linux"
    arch: str = ""
    cpus: int = 0  # logical CPU count
    cpu_model: str = "unknown"
    total_memory: int = 0  # bytes
    free_memory: int = 0  # bytes
    python_version: str = ""
    python_implementation: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Environment:
        """Deserialize from a dict, ignoring unknown fields."""
        known = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known}
        return cls(**filtered)

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ---------------------------------------------------------------------------
# MemorySnapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemorySnapshot:
    """Process memory captured before one measured iteration (bytes)."""

    heap_used: int
    rss: int
    external: int


def capture_memory_snapshot() -> MemorySnapshot:
    """Capture the current process memory usage.

    ``heap_used`` is the tracemalloc traced size when tracemalloc is
    running, otherwise the anonymous resident memory.  ``external`` is
    resident memory outside the heap (file-backed and shared pages).
    """
    status = _read_proc_status() if sys.platform == "linux" else {}

    if status:
        rss = status.get("VmRSS", 0)
        heap_used = status.get("RssAnon", rss)
        external = status.get("RssFile", 0) + status.get("RssShmem", 0)
    else:
        rss = _peak_rss_bytes()
        heap_used = 0
        external = 0

    if tracemalloc.is_tracing():
        heap_used = tracemalloc.get_traced_memory()[0]

    return MemorySnapshot(heap_used=heap_used, rss=rss, external=external)


def _read_proc_status() -> dict[str, int]:
    """Parse the kB-valued fields of /proc/self/status into bytes."""
    values: dict[str, int] = {}
    try:
        text = Path("/proc/self/status").read_text()
    except OSError:
        return values
    for line in text.splitlines():
        parts = line.split()
        # Lines look like "VmRSS:     12345 kB".
        if len(parts) == 3 and parts[2] == "kB":
            try:
                values[parts[0].rstrip(":")] = int(parts[1]) * 1024
            except ValueError:
                continue
    return values


def _peak_rss_bytes() -> int:
    """Peak RSS from getrusage.  ru_maxrss is bytes on macOS, KB elsewhere."""
    maxrss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform == "darwin":
        return int(maxrss)
    return int(maxrss) * 1024


# ---------------------------------------------------------------------------
# macOS sysctl helpers
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
        if proc.returncode == 0 and proc.stdout.strip():
            return proc.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass
    return None


def _sysctl_int(key: str) -> int | None:
    """Read a sysctl integer value. Returns None on failure."""
    val = _sysctl(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            pass
    return None


def _darwin_free_bytes() -> int | None:
    """Free plus inactive pages from vm_stat, in bytes."""
    try:
        proc = subprocess.run(["vm_stat"], capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError):
        return None
    if proc.returncode != 0:
        return None

    page_size = 16384
    pages = 0
    for line in proc.stdout.splitlines():
        if "page size of" in line:
            parts = line.split()
            try:
                page_size = int(parts[parts.index("of") + 1])
            except (ValueError, IndexError):
                pass
        elif line.startswith(("Pages free:", "Pages inactive:")):
            try:
                pages += int(line.split(":")[1].strip().rstrip("."))
            except (IndexError, ValueError):
                pass
    return pages * page_size


# ---------------------------------------------------------------------------
# Capture functions (platform dispatch)
# ---------------------------------------------------------------------------


def capture_environment() -> Environment:
    """Capture the environment descriptor.

    All operations are best-effort: individual failures leave the
    default value in place rather than raising.
    """
    env = Environment(
        platform=sys.platform,
        arch=platform.machine(),
        cpus=os.cpu_count() or 0,
        python_version=platform.python_version(),
        python_implementation=platform.python_implementation(),
    )

    if sys.platform == "linux":
        _capture_linux(env)
    elif sys.platform == "darwin":
        _capture_darwin(env)
    else:
        log.debug("Environment capture not supported on %s", sys.platform)

    if env.cpu_model == "unknown" and platform.processor():
        env.cpu_model = platform.processor()

    return env


def _capture_linux(env: Environment) -> None:
    """Populate CPU model and memory from /proc."""
    try:
        cpuinfo = Path("/proc/cpuinfo").read_text()
        # All cores report the same model; take the first.
        for line in cpuinfo.splitlines():
            if line.startswith("model name"):
                env.cpu_model = line.split(":", 1)[1].strip()
                break
    except OSError:
        pass

    try:
        meminfo = Path("/proc/meminfo").read_text()
        for line in meminfo.splitlines():
            parts = line.split()
            if len(parts) < 2:
                continue
            # Values are in kB.
            if parts[0] == "MemTotal:":
                env.total_memory = int(parts[1]) * 1024
            elif parts[0] == "MemAvailable:":
                env.free_memory = int(parts[1]) * 1024
    except (OSError, ValueError):
        pass


def _capture_darwin(env: Environment) -> None:
    """Populate CPU model and memory using sysctl and vm_stat."""
    model = _sysctl("machdep.cpu.brand_string")
    if model:
        env.cpu_model = model

    total = _sysctl_int("hw.memsize")
    if total is not None:
        env.total_memory = total

    free = _darwin_free_bytes()
    if free is not None:
        env.free_memory = free


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def format_environment(env: Environment) -> str:
    """Format an environment descriptor for terminal display."""
    gib = 1024**3
    lines = [
        "Environment",
        "\u2500" * 11,
        f"Platform: {env.platform} ({env.arch})",
        f"CPU:      {env.cpu_model} ({env.cpus} logical)",
        f"RAM:      {env.total_memory / gib:.1f} GB total, {env.free_memory / gib:.1f} GB free",
        f"Python:   {env.python_version} ({env.python_implementation})",
    ]
    return "\n".join(lines)
