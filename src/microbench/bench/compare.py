"""Benchmark result comparison.

Compares a current run against a baseline run (speedup, heap memory
reduction, regression flag) and ranks the candidates of a comparison
run.  These are plain ratios of the summary statistics; no
significance testing is involved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from microbench.bench.errors import DegenerateStatistics
from microbench.bench.results import BenchResult
from microbench.logging import get_logger

log = get_logger("compare")

# A current run slower than 95% of the baseline speed is a regression.
REGRESSION_THRESHOLD = 0.95


# ---------------------------------------------------------------------------
# Baseline vs current
# ---------------------------------------------------------------------------


@dataclass
class ResultComparison:
    """Comparison of one benchmark between a baseline and a current run."""

    baseline: BenchResult
    current: BenchResult
    speedup: float  # > 1.0 means current is faster
    memory_reduction: float | None  # fraction of baseline heap saved
    regression: bool

    @property
    def name(self) -> str:
        """Name of the compared benchmark."""
        return self.current.name

    @property
    def change_pct(self) -> float:
        """Change in mean duration as a percentage (negative is faster)."""
        return (self.current.mean_ms / self.baseline.mean_ms - 1.0) * 100

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "name": self.name,
            "baseline_mean_ms": self.baseline.mean_ms,
            "current_mean_ms": self.current.mean_ms,
            "speedup": self.speedup,
            "memory_reduction": self.memory_reduction,
            "regression": self.regression,
        }


def _check_mean(result: BenchResult) -> None:
    if not result.mean_ms > 0:
        raise DegenerateStatistics(
            f"'{result.name}' has a non-positive mean ({result.mean_ms!r} ms); cannot form a ratio"
        )


def compare_results(
    baseline: BenchResult,
    current: BenchResult,
    *,
    regression_threshold: float = REGRESSION_THRESHOLD,
) -> ResultComparison:
    """Compare a current result against its baseline.

    Args:
        baseline: The reference measurement.
        current: The new measurement of the same benchmark.
        regression_threshold: Speedups below this flag a regression.

    Returns:
        ResultComparison with speedup = baseline mean / current mean.
        memory_reduction is None unless both runs collected memory and
        the baseline heap mean is positive.

    Raises:
        DegenerateStatistics: If either mean is not positive, as in a
            hand-edited or truncated result document.
    """
    _check_mean(baseline)
    _check_mean(current)
    speedup = baseline.mean_ms / current.mean_ms

    memory_reduction: float | None = None
    if baseline.memory is not None and current.memory is not None:
        base_heap = baseline.memory.heap_used.mean
        if base_heap > 0:
            memory_reduction = 1.0 - current.memory.heap_used.mean / base_heap

    return ResultComparison(
        baseline=baseline,
        current=current,
        speedup=speedup,
        memory_reduction=memory_reduction,
        regression=speedup < regression_threshold,
    )


def compare_runs(
    baseline: list[BenchResult],
    current: list[BenchResult],
    *,
    regression_threshold: float = REGRESSION_THRESHOLD,
) -> list[ResultComparison]:
    """Pair results by name and compare each pair.

    Results are returned in the order of *current*.  Names present in
    only one of the runs are skipped.
    """
    by_name = {r.name: r for r in baseline}
    comparisons: list[ResultComparison] = []
    for result in current:
        base = by_name.get(result.name)
        if base is None:
            log.debug("No baseline for '%s', skipping", result.name)
            continue
        comparisons.append(
            compare_results(base, result, regression_threshold=regression_threshold)
        )
    return comparisons


# ---------------------------------------------------------------------------
# Candidate ranking
# ---------------------------------------------------------------------------


@dataclass
class RankedResult:
    """One candidate of a comparison run, placed relative to the fastest."""

    label: str
    result: BenchResult
    relative: float  # mean / fastest mean, 1.0 for the fastest

    @property
    def slowdown_pct(self) -> float:
        """How much slower than the fastest candidate, in percent."""
        return (self.relative - 1.0) * 100


def rank_results(results: Mapping[str, BenchResult]) -> list[RankedResult]:
    """Order the results of a comparison run fastest first.

    Ties keep the order in which the candidates were run.
    """
    if not results:
        return []
    for result in results.values():
        _check_mean(result)
    ordered = sorted(results.items(), key=lambda item: item[1].mean_ms)
    fastest = ordered[0][1].mean_ms
    return [
        RankedResult(label=label, result=result, relative=result.mean_ms / fastest)
        for label, result in ordered
    ]
