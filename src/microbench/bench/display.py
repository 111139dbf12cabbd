"""Terminal and markdown display of benchmark results.

Console output uses aligned text tables with box-drawing rules;
markdown output is meant for pasting into issues and reports.
Durations use adaptive units, memory is shown in MB.
"""

from __future__ import annotations

from microbench.bench.compare import RankedResult, ResultComparison
from microbench.bench.results import BenchResult
from microbench.formatting import (
    format_markdown_table,
    format_mb,
    format_ms,
    format_ops,
    format_section_header,
    format_signed_pct,
    format_table,
)


# ---------------------------------------------------------------------------
# Single results
# ---------------------------------------------------------------------------


def format_result(result: BenchResult) -> str:
    """Format one result as a multi-line block."""
    s = result.stats
    lines = [
        result.name,
        "\u2500" * max(len(result.name), 20),
        f"  Samples:    {result.samples} ({s.outliers} outliers removed)",
        f"  Mean:       {format_ms(s.mean)}",
        f"  Median:     {format_ms(s.median)}",
        f"  Min/Max:    {format_ms(s.min)} / {format_ms(s.max)}",
        f"  P95/P99:    {format_ms(s.p95)} / {format_ms(s.p99)}",
        f"  Std Dev:    {format_ms(s.std_dev)}",
        f"  Throughput: {format_ops(s.throughput)} ops/s",
    ]
    if result.cpu is not None:
        lines.append(
            f"  CPU:        {format_ms(result.cpu.user_ms)} user, "
            f"{format_ms(result.cpu.system_ms)} system "
            f"({format_ms(result.cpu.total_ms)} total)"
        )
    if result.memory is not None:
        lines.append(f"  Heap:       {format_mb(result.memory.heap_used.mean)} MB")
        lines.append(f"  RSS:        {format_mb(result.memory.rss.mean)} MB")
    if result.exceeded_timeout:
        lines.append(f"  \u26a0 Exceeded timeout of {result.timeout_ms} ms")
    return "\n".join(lines)


def format_results_table(results: list[BenchResult]) -> str:
    """Format several results as one aligned console table."""
    if not results:
        return "No results."
    headers = ["Benchmark", "Mean", "Median", "P95", "P99", "ops/s", "Outliers"]
    rows = [
        [
            r.name,
            format_ms(r.mean_ms),
            format_ms(r.stats.median),
            format_ms(r.stats.p95),
            format_ms(r.stats.p99),
            format_ops(r.stats.throughput),
            str(r.stats.outliers),
        ]
        for r in results
    ]
    return format_table(headers, rows, alignments=["l", "r", "r", "r", "r", "r", "r"])


# ---------------------------------------------------------------------------
# Markdown report
# ---------------------------------------------------------------------------


def format_markdown(results: list[BenchResult]) -> str:
    """Format results as a markdown report.

    The environment header comes from the first result; the memory
    table is only included when at least one result collected memory.
    """
    lines = ["# Benchmark Results", ""]
    if not results:
        lines.append("No results.")
        return "\n".join(lines) + "\n"

    env = results[0].environment
    lines.append(f"**Date:** {results[-1].timestamp}")
    lines.append(f"**Environment:** {env.platform} {env.arch}")
    lines.append(f"**Python:** {env.python_implementation} {env.python_version}")
    lines.append(f"**CPU:** {env.cpu_model} ({env.cpus} cores)")
    lines.append("")

    lines.append("## Performance Metrics")
    lines.append("")
    lines.append(
        format_markdown_table(
            [
                "Benchmark",
                "Mean",
                "Median",
                "P95",
                "P99",
                "Throughput (ops/s)",
            ],
            [
                [
                    r.name,
                    format_ms(r.mean_ms),
                    format_ms(r.stats.median),
                    format_ms(r.stats.p95),
                    format_ms(r.stats.p99),
                    format_ops(r.stats.throughput),
                ]
                for r in results
            ],
        )
    )

    with_memory = [r for r in results if r.memory is not None]
    if with_memory:
        lines.append("")
        lines.append("## Memory Usage")
        lines.append("")
        lines.append(
            format_markdown_table(
                ["Benchmark", "Heap Mean (MB)", "RSS Mean (MB)", "External Mean (MB)"],
                [
                    [
                        r.name,
                        format_mb(r.memory.heap_used.mean),
                        format_mb(r.memory.rss.mean),
                        format_mb(r.memory.external.mean),
                    ]
                    for r in with_memory
                    if r.memory is not None
                ],
            )
        )

    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Comparisons
# ---------------------------------------------------------------------------


def _speedup_text(speedup: float) -> str:
    if speedup >= 1:
        return f"{speedup:.2f}x faster"
    return f"{1 / speedup:.2f}x slower"


def _memory_text(reduction: float | None) -> str:
    if reduction is None:
        return "N/A"
    if reduction >= 0:
        return f"{reduction * 100:.1f}% less"
    return f"{-reduction * 100:.1f}% more"


def format_comparison(comparisons: list[ResultComparison]) -> str:
    """Format baseline-vs-current comparisons for the console."""
    if not comparisons:
        return "No matching benchmarks to compare."

    lines = [format_section_header("Performance comparison"), ""]
    headers = ["Benchmark", "Baseline", "Current", "Change", "Speedup", "Memory", "Status"]
    rows = [
        [
            c.name,
            format_ms(c.baseline.mean_ms),
            format_ms(c.current.mean_ms),
            format_signed_pct(c.change_pct),
            _speedup_text(c.speedup),
            _memory_text(c.memory_reduction),
            "\u26a0 REGRESSION" if c.regression else "\u2713 ok",
        ]
        for c in comparisons
    ]
    lines.append(format_table(headers, rows, alignments=["l", "r", "r", "r", "r", "r", "l"]))

    regressions = sum(1 for c in comparisons if c.regression)
    lines.append("")
    lines.append(f"{len(comparisons)} compared, {regressions} regressed")
    return "\n".join(lines)


def format_comparison_markdown(comparisons: list[ResultComparison]) -> str:
    """Format baseline-vs-current comparisons as a markdown report."""
    lines = ["# Performance Comparison", ""]
    if not comparisons:
        lines.append("No matching benchmarks to compare.")
        return "\n".join(lines) + "\n"
    lines.append(
        format_markdown_table(
            ["Benchmark", "Baseline", "Current", "Speedup", "Memory Change", "Status"],
            [
                [
                    c.name,
                    format_ms(c.baseline.mean_ms),
                    format_ms(c.current.mean_ms),
                    _speedup_text(c.speedup),
                    _memory_text(c.memory_reduction),
                    "\u26a0 Regression" if c.regression else "\u2713 OK",
                ]
                for c in comparisons
            ],
        )
    )
    return "\n".join(lines) + "\n"


def format_ranking(ranked: list[RankedResult]) -> str:
    """Format the ranking of a comparison run, fastest first."""
    if not ranked:
        return "No results."
    headers = ["#", "Candidate", "Mean", "ops/s", "vs fastest"]
    rows = [
        [
            str(i),
            r.label,
            format_ms(r.result.mean_ms),
            format_ops(r.result.stats.throughput),
            "fastest" if i == 1 else format_signed_pct(r.slowdown_pct),
        ]
        for i, r in enumerate(ranked, start=1)
    ]
    return format_table(headers, rows, alignments=["r", "l", "r", "r", "r"])
