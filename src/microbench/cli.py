"""Command-line interface for microbench.

Subcommands:
    microbench run       Benchmark one callable, or compare several
    microbench system    Print the environment descriptor
    microbench compare   Compare two saved JSON result documents
"""

from __future__ import annotations

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Callable, NoReturn

import click

from microbench import __version__
from microbench.bench.errors import BenchError
from microbench.bench.results import BenchResult
from microbench.logging import setup_logging

log = logging.getLogger("microbench")

_FORMATS = click.Choice(["console", "markdown", "json"])


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """microbench: measure how fast Python callables run."""


def _fail(exc: BaseException) -> NoReturn:
    """Report *exc* on stderr and exit with status 1."""
    click.echo(f"Error: {exc}", err=True)
    cause = exc.__cause__
    while cause is not None:
        click.echo(f"  caused by {type(cause).__name__}: {cause}", err=True)
        cause = cause.__cause__
    raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Target loading
# ---------------------------------------------------------------------------


def load_target(ref: str) -> tuple[str, Callable[[], Any]]:
    """Resolve ``[label=]module:attr`` to a (label, callable) pair.

    *attr* may be dotted (``module:Class.method``).  The label defaults
    to the last component of *attr*.

    Raises:
        ValueError: If *ref* is malformed, cannot be imported, or
            does not name a callable.
    """
    label, sep, target = ref.partition("=")
    if not sep:
        label, target = "", ref

    module_name, colon, attr_path = target.partition(":")
    if not colon or not module_name or not attr_path:
        raise ValueError(f"Invalid target '{ref}': expected [label=]module:attr")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import module '{module_name}': {exc}") from exc
    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise ValueError(f"'{module_name}' has no attribute '{attr_path}'") from exc

    if not callable(obj):
        raise ValueError(f"Target '{target}' is not callable")
    return label or attr_path.rsplit(".", 1)[-1], obj


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.argument("targets", nargs=-1, required=True)
@click.option("--name", type=str, default=None, help="Benchmark name (default: target label).")
@click.option("--iterations", type=int, default=None, help="Measured iterations (default: 100).")
@click.option(
    "--warmup",
    "warmup_iterations",
    type=int,
    default=None,
    help="Warmup iterations (default: 10).",
)
@click.option(
    "--timeout-ms",
    type=int,
    default=None,
    help="Run time budget in milliseconds (default: 60000).",
)
@click.option("--memory/--no-memory", "collect_memory", default=None, help="Sample memory.")
@click.option("--cpu/--no-cpu", "collect_cpu", default=None, help="Measure CPU time.")
@click.option(
    "--gc/--no-gc",
    "force_gc",
    default=None,
    help="Force a garbage collection around every iteration.",
)
@click.option(
    "--enforce-timeout/--advisory-timeout",
    "enforce_timeout",
    default=None,
    help="Abort the run when the budget runs out.",
)
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML profile with default settings.",
)
@click.option("--format", "output_format", type=_FORMATS, default="console", show_default=True)
@click.option("-v", "--verbose", is_flag=True, help="Show per-iteration progress.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write a DEBUG log to this file.",
)
def run(  # noqa: PLR0913
    targets: tuple[str, ...],
    name: str | None,
    iterations: int | None,
    warmup_iterations: int | None,
    timeout_ms: int | None,
    collect_memory: bool | None,
    collect_cpu: bool | None,
    force_gc: bool | None,
    enforce_timeout: bool | None,
    profile_path: Path | None,
    output_format: str,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Benchmark one or more callables.

    Each TARGET is ``module:attr`` or ``label=module:attr`` and must be
    callable without arguments.  Several targets are run as a
    comparison under the same settings.

    \b
    Examples:
        microbench run time:perf_counter
        microbench run --iterations 500 \\
            "sorted=mymod:sort_copy" "inplace=mymod:sort_inplace"
        microbench run --profile quick.yaml --format json mymod:work
    """
    from microbench.bench.config import config_from_profile, load_profile
    from microbench.bench.runner import BenchRunner

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)

    overrides = {
        "iterations": iterations,
        "warmup_iterations": warmup_iterations,
        "timeout_ms": timeout_ms,
        "collect_memory": collect_memory,
        "collect_cpu": collect_cpu,
        "force_gc": force_gc,
        "enforce_timeout": enforce_timeout,
    }

    try:
        defaults: dict[str, Any] | None = None
        if profile_path is not None:
            profile = load_profile(profile_path)
            defaults = config_from_profile(profile)
            if name is None and isinstance(profile.get("name"), str):
                name = profile["name"]
            log.debug("Loaded profile %s: %s", profile_path, defaults)

        loaded = [load_target(t) for t in targets]
        runner = BenchRunner(defaults)

        if len(loaded) == 1:
            label, candidate = loaded[0]
            result = runner.run(name or label, candidate, overrides)
            _echo_single(result, output_format)
        else:
            labels = [label for label, _ in loaded]
            if len(set(labels)) != len(labels):
                raise ValueError(
                    "Comparison targets need distinct labels; use label=module:attr"
                )
            results = runner.run_comparison(name or "comparison", dict(loaded), overrides)
            _echo_comparison(results, output_format)
    except (BenchError, ValueError, OSError) as exc:
        _fail(exc)
    except KeyboardInterrupt:
        click.echo("\nBenchmark interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904


def _echo_single(result: BenchResult, output_format: str) -> None:
    from microbench.bench.display import format_markdown, format_result
    from microbench.bench.system import format_environment

    if output_format == "json":
        click.echo(result.to_json())
    elif output_format == "markdown":
        click.echo(format_markdown([result]), nl=False)
    else:
        click.echo(format_environment(result.environment))
        click.echo()
        click.echo(format_result(result))


def _echo_comparison(results: dict[str, BenchResult], output_format: str) -> None:
    from microbench.bench.compare import rank_results
    from microbench.bench.display import format_markdown, format_ranking, format_results_table
    from microbench.bench.system import format_environment

    if output_format == "json":
        click.echo(json.dumps({label: r.to_dict() for label, r in results.items()}, indent=2))
    elif output_format == "markdown":
        click.echo(format_markdown(list(results.values())), nl=False)
    else:
        first = next(iter(results.values()))
        click.echo(format_environment(first.environment))
        click.echo()
        click.echo(format_results_table(list(results.values())))
        click.echo()
        click.echo(format_ranking(rank_results(results)))


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def system(as_json: bool) -> None:
    """Print the environment descriptor attached to every result."""
    from microbench.bench.system import capture_environment, format_environment

    env = capture_environment()
    if as_json:
        click.echo(env.to_json())
    else:
        click.echo(format_environment(env))


# ---------------------------------------------------------------------------
# compare
# ---------------------------------------------------------------------------


@main.command()
@click.argument("baseline", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("current", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--threshold",
    type=float,
    default=0.95,
    show_default=True,
    help="Speedups below this count as regressions.",
)
@click.option("--format", "output_format", type=_FORMATS, default="console", show_default=True)
@click.option(
    "--fail-on-regression",
    is_flag=True,
    help="Exit with status 1 if any benchmark regressed.",
)
def compare(
    baseline: Path,
    current: Path,
    threshold: float,
    output_format: str,
    fail_on_regression: bool,
) -> None:
    """Compare two result documents written by ``run --format json``.

    Benchmarks are matched by name; names present in only one document
    are skipped.
    """
    from microbench.bench.compare import compare_runs
    from microbench.bench.display import format_comparison, format_comparison_markdown
    from microbench.bench.results import load_results

    try:
        base_results = load_results(baseline.read_text(encoding="utf-8"))
        current_results = load_results(current.read_text(encoding="utf-8"))
        comparisons = compare_runs(
            base_results, current_results, regression_threshold=threshold
        )
    except (BenchError, ValueError, KeyError, OSError) as exc:
        _fail(exc)

    if output_format == "json":
        click.echo(json.dumps([c.to_dict() for c in comparisons], indent=2))
    elif output_format == "markdown":
        click.echo(format_comparison_markdown(comparisons), nl=False)
    else:
        click.echo(format_comparison(comparisons))

    if fail_on_regression and any(c.regression for c in comparisons):
        raise SystemExit(1)
