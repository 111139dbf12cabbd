"""Clock and CPU-time capture for benchmark iterations.

Wall-clock intervals use ``time.perf_counter`` (monotonic, highest
available resolution).  Process CPU time uses resource.getrusage and
is measured as a single delta across a whole measurement phase.
"""

from __future__ import annotations

import gc
import resource
import time
from dataclasses import dataclass
from typing import Any, Callable

# A zero-argument callable that forces a garbage collection.  The
# harness treats it as a blocking call and ignores its return value.
GcTrigger = Callable[[], Any]

DEFAULT_GC_TRIGGER: GcTrigger = gc.collect


def now_ms() -> float:
    """Current monotonic time in milliseconds."""
    return time.perf_counter() * 1000.0


# ---------------------------------------------------------------------------
# CPU time
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CpuTimes:
    """Cumulative process CPU-time counters at one instant."""

    user_ms: float
    system_ms: float

    @classmethod
    def capture(cls) -> CpuTimes:
        """Read the current process's user and system CPU time."""
        usage = resource.getrusage(resource.RUSAGE_SELF)
        return cls(user_ms=usage.ru_utime * 1000.0, system_ms=usage.ru_stime * 1000.0)


@dataclass(frozen=True)
class CpuUsage:
    """CPU time consumed over an interval, in milliseconds."""

    user_ms: float
    system_ms: float

    @property
    def total_ms(self) -> float:
        """Total CPU time (user + system)."""
        return self.user_ms + self.system_ms

    def to_dict(self) -> dict[str, float]:
        """Serialize to a dict."""
        return {"user_ms": self.user_ms, "system_ms": self.system_ms}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CpuUsage:
        """Deserialize from a dict."""
        return cls(user_ms=float(data["user_ms"]), system_ms=float(data["system_ms"]))


def cpu_delta(start: CpuTimes, end: CpuTimes) -> CpuUsage:
    """CPU time spent between two counter readings.

    Counters are cumulative, so a negative delta can only come from
    clock granularity; it is clamped to zero.
    """
    return CpuUsage(
        user_ms=max(end.user_ms - start.user_ms, 0.0),
        system_ms=max(end.system_ms - start.system_ms, 0.0),
    )
