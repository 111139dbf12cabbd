"""Error taxonomy for benchmark runs.

Every failure surfaces to the immediate caller.  Nothing here is
retried or recovered from: a failed measurement is a failed
measurement, not a data point.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from microbench.bench.config import ValidationError


class BenchError(Exception):
    """Base class for all microbench errors."""


class InvalidConfiguration(BenchError, ValueError):
    """The resolved configuration failed validation.

    Raised before the candidate is invoked, so no partial work has been
    performed.
    """

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = list(errors)
        lines = [f"  {e.field}: {e.message}" for e in self.errors]
        super().__init__("Invalid benchmark configuration:\n" + "\n".join(lines))


class CandidateFailure(BenchError):
    """The candidate raised during warmup or measurement."""

    def __init__(self, name: str, phase: str, iteration: int) -> None:
        self.name = name
        self.phase = phase
        self.iteration = iteration  # 1-based within its phase
        super().__init__(f"Candidate '{name}' failed during {phase} iteration {iteration}")


class DegenerateStatistics(BenchError, ArithmeticError):
    """The samples cannot be reduced to finite summary statistics."""


class ComparisonFailure(BenchError):
    """A candidate failed, aborting the whole comparison."""

    def __init__(self, name: str, label: str) -> None:
        self.name = name
        self.label = label
        super().__init__(f"Comparison '{name}' aborted: candidate '{label}' failed")


class RunTimeout(BenchError):
    """An enforced run budget was exhausted."""

    def __init__(self, name: str, timeout_ms: int, phase: str) -> None:
        self.name = name
        self.timeout_ms = timeout_ms
        self.phase = phase
        super().__init__(f"Benchmark '{name}' exceeded its {timeout_ms} ms budget during {phase}")
