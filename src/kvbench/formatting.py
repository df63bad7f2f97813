"""Shared text formatting helpers for kvbench.

Provides aligned tables and signed percentages used by the reporter.
"""

from __future__ import annotations

import math


def format_table(
    headers: list[str],
    rows: list[list[str]],
    *,
    alignments: list[str] | None = None,
    max_col_width: dict[int, int] | None = None,
    indent: int = 2,
) -> str:
    """Format a list of rows as an aligned text table.

    Auto-calculates column widths from content. Truncates columns that
    exceed *max_col_width* (with ``'...'`` suffix). Right-aligns columns
    marked ``'r'`` in *alignments*.

    Args:
        headers: Column header strings.
        rows: List of rows, each a list of cell strings.
        alignments: Per-column alignment: ``'l'``, ``'r'``, or ``'c'``.
        max_col_width: Column index to max width mapping.
        indent: Number of leading spaces per line.

    Returns:
        The formatted table as a string.
    """
    if not headers:
        return ""

    ncols = len(headers)
    aligns = list(alignments or [])
    aligns += ["l"] * (ncols - len(aligns))

    cells = [list(headers)]
    for row in rows:
        padded = list(row) + [""] * (ncols - len(row))
        cells.append(padded[:ncols])

    for ci, max_w in (max_col_width or {}).items():
        if ci >= ncols:
            continue
        for line in cells:
            line[ci] = truncate(line[ci], max_w)

    widths = [max(len(line[ci]) for line in cells) for ci in range(ncols)]
    rule = ["─" * w for w in widths]

    def _cell(text: str, width: int, align: str) -> str:
        if align == "r":
            return text.rjust(width)
        if align == "c":
            return text.center(width)
        return text.ljust(width)

    prefix = " " * indent
    lines = [
        prefix + "  ".join(_cell(line[i], widths[i], aligns[i]) for i in range(ncols)).rstrip()
        for line in [cells[0], rule, *cells[1:]]
    ]
    return "\n".join(lines)


def format_pct(value: float, precision: int = 1) -> str:
    """Format a percentage with sign: ``'+300.0%'``, ``'-12.5%'``."""
    if math.isnan(value):
        return "N/A"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{precision}f}%"


def truncate(text: str, max_len: int, suffix: str = "...") -> str:
    """Truncate text to *max_len*, adding *suffix* if truncated."""
    if len(text) <= max_len:
        return text
    if max_len <= len(suffix):
        return suffix[:max_len]
    return text[: max_len - len(suffix)] + suffix
