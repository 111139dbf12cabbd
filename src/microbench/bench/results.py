"""Benchmark result data structures and serialization.

Hierarchy::

    BenchResult (one run of one candidate)
      → stats: DurationStats
      → memory: MemoryStats | None
        → heap_used / rss / external: FieldStats
      → cpu: CpuUsage | None
      → environment: Environment

A BenchResult is the only value that outlives a run.  Results are
serialized to JSON text for reporting; writing them anywhere is left
to the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from microbench.bench.stats import DurationStats, MemoryStats
from microbench.bench.system import Environment
from microbench.bench.timing import CpuUsage


@dataclass
class BenchResult:
    """Outcome of one benchmark run."""

    name: str
    samples: int  # number of measured iterations
    stats: DurationStats
    total_time_ms: float  # wall time of the measurement phase
    environment: Environment
    timestamp: str  # ISO-8601, completion time
    memory: MemoryStats | None = None
    cpu: CpuUsage | None = None
    timeout_ms: int = 0  # advisory budget the run was given
    exceeded_timeout: bool = False

    @property
    def mean_ms(self) -> float:
        """Post-filter mean duration."""
        return self.stats.mean

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        d: dict[str, Any] = {
            "name": self.name,
            "samples": self.samples,
            "stats": self.stats.to_dict(),
            "total_time_ms": self.total_time_ms,
            "environment": self.environment.to_dict(),
            "timestamp": self.timestamp,
            "timeout_ms": self.timeout_ms,
            "exceeded_timeout": self.exceeded_timeout,
        }
        if self.memory is not None:
            d["memory"] = self.memory.to_dict()
        if self.cpu is not None:
            d["cpu"] = self.cpu.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BenchResult:
        """Deserialize from a dict."""
        memory = data.get("memory")
        cpu = data.get("cpu")
        return cls(
            name=data["name"],
            samples=int(data["samples"]),
            stats=DurationStats.from_dict(data["stats"]),
            total_time_ms=float(data.get("total_time_ms", 0.0)),
            environment=Environment.from_dict(data.get("environment", {})),
            timestamp=data.get("timestamp", ""),
            memory=MemoryStats.from_dict(memory) if memory else None,
            cpu=CpuUsage.from_dict(cpu) if cpu else None,
            timeout_ms=int(data.get("timeout_ms", 0)),
            exceeded_timeout=bool(data.get("exceeded_timeout", False)),
        )

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> BenchResult:
        """Deserialize from a JSON string."""
        return cls.from_dict(json.loads(text))


# ---------------------------------------------------------------------------
# Result lists
# ---------------------------------------------------------------------------


def dump_results(results: list[BenchResult], indent: int | None = 2) -> str:
    """Serialize a list of results to a JSON array."""
    return json.dumps([r.to_dict() for r in results], indent=indent)


def load_results(text: str) -> list[BenchResult]:
    """Parse results produced by dump_results or BenchResult.to_json.

    Accepts a single result object, an array of results, or a mapping
    of label -> result (the shape of a comparison run).

    Raises:
        ValueError: If the document has none of those shapes.
    """
    data = json.loads(text)
    if isinstance(data, list) and all(isinstance(item, dict) for item in data):
        return [BenchResult.from_dict(item) for item in data]
    if isinstance(data, dict):
        if "stats" in data:
            return [BenchResult.from_dict(data)]
        if all(isinstance(v, dict) and "stats" in v for v in data.values()):
            return [BenchResult.from_dict(v) for v in data.values()]
    raise ValueError("Expected a benchmark result, a list of results, or a label -> result mapping")
