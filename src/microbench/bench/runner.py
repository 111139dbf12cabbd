"""Benchmark execution engine.

Orchestrates one run of a candidate:
1. Configuration resolution and validation
2. Warmup phase (untimed, optional forced GC after each call)
3. Measurement phase (forced GC, memory snapshot, timed call)
4. CPU-time accounting across the whole measurement phase
5. Statistical reduction and environment capture

and the comparison protocol, which runs several candidates one after
another under identical configuration.

Everything is strictly sequential.  The only suspension point is the
await on an asynchronous candidate; iterations, phases, and candidates
never overlap.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Coroutine, Mapping, TypeVar

from microbench.bench.config import (
    BenchConfig,
    ValidationError,
    apply_overrides,
    resolve_config,
)
from microbench.bench.errors import (
    CandidateFailure,
    ComparisonFailure,
    DegenerateStatistics,
    InvalidConfiguration,
    RunTimeout,
)
from microbench.bench.results import BenchResult
from microbench.bench.stats import summarize_durations, summarize_memory
from microbench.bench.system import (
    Environment,
    MemorySnapshot,
    capture_environment,
    capture_memory_snapshot,
)
from microbench.bench.timing import (
    DEFAULT_GC_TRIGGER,
    CpuTimes,
    GcTrigger,
    cpu_delta,
    now_ms,
)
from microbench.logging import get_logger

log = get_logger("runner")

T = TypeVar("T")

# A zero-argument callable; it may return an awaitable, which is awaited.
Candidate = Callable[[], Any]


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class BenchProgress:
    """Progress info passed to the callback."""

    phase: str  # "warmup", "measure", "done"
    name: str
    iteration: int  # 1-based within the phase
    total_iterations: int
    duration_ms: float = 0.0  # measured iterations only


ProgressCallback = Callable[[BenchProgress], None]


# ---------------------------------------------------------------------------
# BenchRunner
# ---------------------------------------------------------------------------


class BenchRunner:
    """Runs candidates under the warmup/measurement protocol.

    Usage::

        runner = BenchRunner({"iterations": 50})
        result = runner.run("sort 1k", lambda: sorted(data))
        results = runner.run_comparison(
            "lookup",
            {"dict": lambda: d[key], "list": lambda: lst.index(key)},
        )

    The harness defaults are fixed at construction; per-call overrides
    are layered on top for a single run.  No state is carried from one
    run to the next.
    """

    def __init__(
        self,
        defaults: BenchConfig | Mapping[str, Any] | None = None,
        *,
        gc_trigger: GcTrigger | None = DEFAULT_GC_TRIGGER,
        memory_probe: Callable[[], MemorySnapshot] = capture_memory_snapshot,
        environment_probe: Callable[[], Environment] = capture_environment,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.defaults: BenchConfig = apply_overrides(BenchConfig(), defaults)
        self.gc_trigger = gc_trigger
        self.memory_probe = memory_probe
        self.environment_probe = environment_probe
        self.progress: ProgressCallback = progress_callback or self._default_progress

    def resolve(
        self,
        overrides: BenchConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> BenchConfig:
        """Resolve the effective configuration for one call.

        Raises:
            InvalidConfiguration: If the merged configuration is invalid.
        """
        return resolve_config(self.defaults, overrides, kwargs or None)

    # -- Single run ---------------------------------------------------------

    def run(
        self,
        name: str,
        candidate: Candidate,
        overrides: BenchConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> BenchResult:
        """Benchmark one candidate and return its result.

        Keyword arguments are treated as per-call overrides, e.g.
        ``runner.run("x", fn, iterations=20)``.

        Raises:
            InvalidConfiguration: Before the candidate is ever called.
            CandidateFailure: If the candidate raises; no partial
                result is produced.
            DegenerateStatistics: If the samples cannot be reduced.
            RunTimeout: If ``enforce_timeout`` is set and the budget
                runs out.
        """
        return _run_blocking(lambda: self.run_async(name, candidate, overrides, **kwargs))

    async def run_async(
        self,
        name: str,
        candidate: Candidate,
        overrides: BenchConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> BenchResult:
        """Coroutine form of run(), for callers inside an event loop."""
        config = self.resolve(overrides, **kwargs)
        return await self._execute(name, candidate, config)

    # -- Comparison ---------------------------------------------------------

    def run_comparison(
        self,
        name: str,
        candidates: Mapping[str, Candidate],
        overrides: BenchConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, BenchResult]:
        """Benchmark each candidate in turn under the same configuration.

        Results are keyed by label, in the order the candidates were
        supplied.  Each result is named ``"<name> - <label>"``.

        Raises:
            InvalidConfiguration: Before any candidate is called.
            ComparisonFailure: If any candidate's run fails; the
                results of the candidates that already finished are
                discarded.
        """
        return _run_blocking(
            lambda: self.run_comparison_async(name, candidates, overrides, **kwargs)
        )

    async def run_comparison_async(
        self,
        name: str,
        candidates: Mapping[str, Candidate],
        overrides: BenchConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, BenchResult]:
        """Coroutine form of run_comparison()."""
        if not candidates:
            raise InvalidConfiguration(
                [ValidationError(field="candidates", message="At least one candidate is required.")]
            )
        config = self.resolve(overrides, **kwargs)

        log.info("Comparing %d candidates for '%s'", len(candidates), name)
        results: dict[str, BenchResult] = {}
        for label, candidate in candidates.items():
            try:
                results[label] = await self._execute(f"{name} - {label}", candidate, config)
            except (CandidateFailure, DegenerateStatistics, RunTimeout) as exc:
                log.error("Candidate '%s' failed: %s", label, exc)
                raise ComparisonFailure(name, label) from exc
        return results

    # -- Protocol -----------------------------------------------------------

    async def _execute(
        self,
        name: str,
        candidate: Candidate,
        config: BenchConfig,
    ) -> BenchResult:
        """Run the warmup and measurement phases and reduce the samples."""
        log.info(
            "Benchmarking '%s' (%d warmup + %d measured iterations)",
            name,
            config.warmup_iterations,
            config.iterations,
        )
        log.debug("'%s': config %s", name, config.to_dict())
        gc_trigger = self.gc_trigger if config.force_gc else None
        run_start = now_ms()
        deadline = run_start + config.timeout_ms if config.enforce_timeout else None

        # Phase 1: Warmup.  Nothing is recorded.
        if config.warmup_iterations:
            log.debug("'%s': warmup phase", name)
        for i in range(config.warmup_iterations):
            timeout_s = self._remaining_s(deadline, name, config.timeout_ms, "warmup")
            await self._call(candidate, name, "warmup", i + 1, timeout_s, config.timeout_ms)
            if gc_trigger is not None:
                gc_trigger()
            self.progress(
                BenchProgress(
                    phase="warmup",
                    name=name,
                    iteration=i + 1,
                    total_iterations=config.warmup_iterations,
                )
            )

        # Phase 2: Measurement.
        log.debug("'%s': measurement phase", name)
        durations: list[float] = []
        memory_samples: list[MemorySnapshot] = []

        cpu_start = CpuTimes.capture()
        phase_start = now_ms()
        for i in range(config.iterations):
            if gc_trigger is not None:
                gc_trigger()
            if config.collect_memory:
                memory_samples.append(self.memory_probe())

            timeout_s = self._remaining_s(deadline, name, config.timeout_ms, "measure")
            start = now_ms()
            await self._call(candidate, name, "measure", i + 1, timeout_s, config.timeout_ms)
            end = now_ms()
            durations.append(end - start)

            self.progress(
                BenchProgress(
                    phase="measure",
                    name=name,
                    iteration=i + 1,
                    total_iterations=config.iterations,
                    duration_ms=end - start,
                )
            )
        phase_end = now_ms()
        cpu_end = CpuTimes.capture()
        # A synchronous call can only be caught after it returns.
        self._remaining_s(deadline, name, config.timeout_ms, "measure")

        # Phase 3: Reduction.
        stats = summarize_durations(durations)
        memory = summarize_memory(memory_samples) if config.collect_memory else None
        environment = self.environment_probe()

        elapsed = now_ms() - run_start
        exceeded = elapsed > config.timeout_ms
        if exceeded:
            log.warning(
                "'%s' took %.0f ms, over its advisory %d ms timeout",
                name,
                elapsed,
                config.timeout_ms,
            )

        result = BenchResult(
            name=name,
            samples=len(durations),
            stats=stats,
            total_time_ms=phase_end - phase_start,
            environment=environment,
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            memory=memory,
            cpu=cpu_delta(cpu_start, cpu_end) if config.collect_cpu else None,
            timeout_ms=config.timeout_ms,
            exceeded_timeout=exceeded,
        )

        self.progress(
            BenchProgress(
                phase="done",
                name=name,
                iteration=config.iterations,
                total_iterations=config.iterations,
                duration_ms=stats.mean,
            )
        )
        log.info(
            "'%s': mean %.4f ms, p95 %.4f ms, %d outlier(s)",
            name,
            stats.mean,
            stats.p95,
            stats.outliers,
        )
        return result

    @staticmethod
    def _remaining_s(
        deadline: float | None,
        name: str,
        timeout_ms: int,
        phase: str,
    ) -> float | None:
        """Seconds left before the enforced deadline, None if not enforced.

        Raises:
            RunTimeout: If the deadline has already passed.
        """
        if deadline is None:
            return None
        remaining = deadline - now_ms()
        if remaining <= 0:
            raise RunTimeout(name, timeout_ms, phase)
        return remaining / 1000.0

    async def _call(
        self,
        candidate: Candidate,
        name: str,
        phase: str,
        iteration: int,
        timeout_s: float | None,
        timeout_ms: int,
    ) -> None:
        """Invoke the candidate once and wait for it to finish.

        Raises:
            CandidateFailure: Wrapping whatever the candidate raised.
            RunTimeout: If an enforced deadline expires.
        """
        try:
            outcome = candidate()
            if inspect.isawaitable(outcome):
                if timeout_s is None:
                    await outcome
                else:
                    await _await_within(outcome, timeout_s, name, timeout_ms, phase)
        except RunTimeout:
            raise
        except Exception as exc:
            raise CandidateFailure(name, phase, iteration) from exc

    @staticmethod
    def _default_progress(progress: BenchProgress) -> None:
        """Default progress callback: log at DEBUG."""
        if progress.phase == "done":
            return
        marker = "W" if progress.phase == "warmup" else "M"
        line = f"  {progress.name:30s} {marker}{progress.iteration}/{progress.total_iterations}"
        if progress.duration_ms:
            line += f" {progress.duration_ms:10.4f}ms"
        log.debug(line)


# ---------------------------------------------------------------------------
# Event loop helpers
# ---------------------------------------------------------------------------


async def _await_within(
    outcome: Awaitable[Any],
    timeout_s: float,
    name: str,
    timeout_ms: int,
    phase: str,
) -> None:
    """Await *outcome*, cancelling it if it outlives *timeout_s*.

    Errors raised by the awaitable itself propagate unchanged, so a
    candidate that raises TimeoutError is not mistaken for an overrun.
    """
    task = asyncio.ensure_future(outcome)
    done, _ = await asyncio.wait({task}, timeout=timeout_s)
    if not done:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise RunTimeout(name, timeout_ms, phase)
    task.result()


def _run_blocking(make_coro: Callable[[], Coroutine[Any, Any, T]]) -> T:
    """Drive a coroutine to completion from synchronous code."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(make_coro())
    raise RuntimeError(
        "BenchRunner.run() cannot be called from a running event loop; "
        "await run_async() or run_comparison_async() instead."
    )
