"""Shared text formatting helpers for microbench.

Unit-aware number formatting and plain-text / markdown tables used by
the result display and the CLI.
"""

from __future__ import annotations

import math

_MB = 1024 * 1024


def format_ms(ms: float, precision: int = 3) -> str:
    """Format a duration given in milliseconds with adaptive units.

    Examples: ``'45ns'``, ``'850\u00b5s'``, ``'1.234ms'``, ``'2.500s'``.
    """
    if math.isnan(ms):
        return "N/A"
    if abs(ms) < 0.001:
        return f"{ms * 1_000_000:.0f}ns"
    if abs(ms) < 1:
        return f"{ms * 1000:.0f}\u00b5s"
    if abs(ms) < 1000:
        return f"{ms:.{precision}f}ms"
    return f"{ms / 1000:.{precision}f}s"


def format_mb(num_bytes: float, precision: int = 2) -> str:
    """Format a byte count as mebibytes, without the unit."""
    return f"{num_bytes / _MB:.{precision}f}"


def format_ops(throughput: float) -> str:
    """Format operations per second with thousands separators."""
    if throughput >= 100:
        return f"{throughput:,.0f}"
    return f"{throughput:,.2f}"


def format_signed_pct(value: float, precision: int = 1) -> str:
    """Format a percentage with an explicit sign: ``'+4.2%'``, ``'-0.5%'``."""
    if math.isnan(value):
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{precision}f}%"


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    indent: int = 2,
) -> str:
    """Format rows as an aligned text table.

    Column widths are computed from the content.  Short rows are padded
    with empty cells and long rows are cut to the header count.

    Args:
        headers: Column header strings.
        rows: Rows of cell strings.
        alignments: Per-column ``'l'`` or ``'r'``; missing entries are ``'l'``.
        indent: Leading spaces on every line.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))

    cells = [(list(row) + [""] * ncols)[:ncols] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for ci, cell in enumerate(row):
            widths[ci] = max(widths[ci], len(cell))

    def _line(values: list[str]) -> str:
        parts = [
            v.rjust(widths[i]) if aligns[i] == "r" else v.ljust(widths[i])
            for i, v in enumerate(values)
        ]
        return (" " * indent + "  ".join(parts)).rstrip()

    lines = [_line(list(headers))]
    lines.append(" " * indent + "  ".join("\u2500" * w for w in widths))
    lines.extend(_line(row) for row in cells)
    return "\n".join(lines)


def format_markdown_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format rows as a GitHub-flavoured markdown table."""
    if not headers:
        return ""
    ncols = len(headers)
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("-" * (len(h) + 2) for h in headers) + "|",
    ]
    for row in rows:
        cells = (list(row) + [""] * ncols)[:ncols]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def format_section_header(title: str, width: int = 60) -> str:
    """Format a section header: ``'\u2500\u2500\u2500 Title \u2500\u2500...'``."""
    prefix = "\u2500\u2500\u2500 "
    fill = width - len(prefix) - len(title) - 1
    return prefix + title + " " + "\u2500" * max(0, fill)
