"""Statistical reduction of benchmark samples.

Turns the raw per-iteration durations of one run into an
outlier-robust summary, and the per-iteration memory snapshots into
per-field aggregates.  Everything here is a pure function of its
input: reducing the same samples twice gives identical results.

Outliers are removed with a single, non-iterative 3-sigma pass using
the population standard deviation of the full sample.  Percentiles
use linear interpolation between order statistics, equivalent to
numpy.percentile with method='linear'.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Any, Sequence

from microbench.bench.errors import DegenerateStatistics
from microbench.bench.system import MemorySnapshot

# Samples further than this many standard deviations from the mean
# are discarded.  Fixed, not configurable.
OUTLIER_SIGMA = 3.0

REPORTED_PERCENTILES = (50, 75, 90, 95, 99)


# ---------------------------------------------------------------------------
# Percentile
# ---------------------------------------------------------------------------


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Compute the p-th percentile (0-100) using linear interpolation.

    Percentile *p* maps to the fractional rank ``p/100 * (n-1)``.  When
    the rank is a whole number that order statistic is returned as is;
    otherwise the two bracketing order statistics are blended.
    Assumes sorted_values is already sorted in ascending order.

    Raises:
        ValueError: If *p* is outside [0, 100].
        DegenerateStatistics: If *sorted_values* is empty.
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be within [0, 100] (got {p})")
    n = len(sorted_values)
    if n == 0:
        raise DegenerateStatistics("Cannot compute a percentile of an empty sample")

    k = (p / 100) * (n - 1)
    f = math.floor(k)
    c = math.ceil(k)
    if f == c:
        return sorted_values[int(k)]
    d = k - f
    return sorted_values[f] * (1 - d) + sorted_values[c] * d


# ---------------------------------------------------------------------------
# Duration summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DurationStats:
    """Summary statistics for the durations of one run (milliseconds)."""

    min: float
    max: float
    mean: float
    median: float
    p50: float
    p75: float
    p90: float
    p95: float
    p99: float
    std_dev: float  # population stdev of the unfiltered sample
    throughput: float  # operations per second
    outliers: int

    def to_dict(self) -> dict[str, float | int]:
        """Serialize to a dict; floats keep full precision."""
        d: dict[str, float | int] = {
            name: getattr(self, name)
            for name in (
                "min",
                "max",
                "mean",
                "median",
                "p50",
                "p75",
                "p90",
                "p95",
                "p99",
                "std_dev",
                "throughput",
            )
        }
        d["outliers"] = self.outliers
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DurationStats:
        """Deserialize from a dict."""
        return cls(
            min=float(data["min"]),
            max=float(data["max"]),
            mean=float(data["mean"]),
            median=float(data["median"]),
            p50=float(data["p50"]),
            p75=float(data["p75"]),
            p90=float(data["p90"]),
            p95=float(data["p95"]),
            p99=float(data["p99"]),
            std_dev=float(data["std_dev"]),
            throughput=float(data["throughput"]),
            outliers=int(data["outliers"]),
        )


def filter_outliers(
    sorted_values: Sequence[float],
    mean: float,
    std_dev: float,
) -> list[float]:
    """Keep the samples within ``mean +/- 3 * std_dev``.

    The interval is closed, so a zero standard deviation keeps every
    sample instead of discarding the whole run.
    """
    limit = OUTLIER_SIGMA * std_dev
    return [v for v in sorted_values if abs(v - mean) <= limit]


def summarize_durations(samples: Sequence[float]) -> DurationStats:
    """Reduce raw durations (ms) to summary statistics.

    The standard deviation describes the full sample; every other
    statistic is computed after the 3-sigma outlier filter.

    Args:
        samples: Per-iteration durations in milliseconds, in iteration
            order.  Not modified.

    Raises:
        DegenerateStatistics: If the sample is empty or contains a
            non-finite value, or if the filtered mean is zero (the
            throughput would be infinite).
    """
    if not samples:
        raise DegenerateStatistics("Cannot summarize an empty sample")
    if not all(math.isfinite(v) for v in samples):
        raise DegenerateStatistics("Duration samples must be finite")

    sorted_v = sorted(samples)
    mean = statistics.fmean(sorted_v)
    std_dev = statistics.pstdev(sorted_v, mu=mean)

    filtered = filter_outliers(sorted_v, mean, std_dev)
    if not filtered:
        # Unreachable with the closed interval, kept as a hard stop.
        raise DegenerateStatistics("Outlier filter removed every sample")

    filtered_mean = statistics.fmean(filtered)
    if filtered_mean == 0:
        raise DegenerateStatistics(
            "Mean duration is zero; throughput is undefined. "
            "The candidate is faster than the clock resolution."
        )

    pct = {p: percentile(filtered, p) for p in REPORTED_PERCENTILES}

    return DurationStats(
        min=filtered[0],
        max=filtered[-1],
        mean=filtered_mean,
        median=pct[50],
        p50=pct[50],
        p75=pct[75],
        p90=pct[90],
        p95=pct[95],
        p99=pct[99],
        std_dev=std_dev,
        throughput=1000.0 / filtered_mean,
        outliers=len(sorted_v) - len(filtered),
    )


# ---------------------------------------------------------------------------
# Memory summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldStats:
    """Aggregates for one memory field (bytes)."""

    min: float
    max: float
    mean: float
    median: float

    def to_dict(self) -> dict[str, float]:
        """Serialize to a dict with rounded values."""
        return {
            "min": round(self.min, 3),
            "max": round(self.max, 3),
            "mean": round(self.mean, 3),
            "median": round(self.median, 3),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldStats:
        """Deserialize from a dict."""
        return cls(
            min=float(data["min"]),
            max=float(data["max"]),
            mean=float(data["mean"]),
            median=float(data["median"]),
        )


@dataclass(frozen=True)
class MemoryStats:
    """Per-field summary of the memory snapshots of one run."""

    heap_used: FieldStats
    rss: FieldStats
    external: FieldStats

    def to_dict(self) -> dict[str, dict[str, float]]:
        """Serialize to a JSON-compatible dict."""
        return {
            "heap_used": self.heap_used.to_dict(),
            "rss": self.rss.to_dict(),
            "external": self.external.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MemoryStats:
        """Deserialize from a dict."""
        return cls(
            heap_used=FieldStats.from_dict(data["heap_used"]),
            rss=FieldStats.from_dict(data["rss"]),
            external=FieldStats.from_dict(data["external"]),
        )


def summarize_field(values: Sequence[float]) -> FieldStats:
    """Min, max, mean, and median of a non-empty sample."""
    sorted_v = sorted(values)
    return FieldStats(
        min=float(sorted_v[0]),
        max=float(sorted_v[-1]),
        mean=statistics.fmean(sorted_v),
        median=float(percentile(sorted_v, 50)),
    )


def summarize_memory(snapshots: Sequence[MemorySnapshot]) -> MemoryStats | None:
    """Reduce memory snapshots to per-field aggregates.

    Returns None when no snapshots were taken.
    """
    if not snapshots:
        return None
    return MemoryStats(
        heap_used=summarize_field([s.heap_used for s in snapshots]),
        rss=summarize_field([s.rss for s in snapshots]),
        external=summarize_field([s.external for s in snapshots]),
    )
