"""Output formatting utilities for the CLI."""

from typing import Iterable, List, Sequence

import click

STATUS_STYLES = {
    "draft": {"fg": "white"},
    "sent": {"fg": "blue"},
    "viewed": {"fg": "cyan"},
    "paid": {"fg": "green"},
    "overdue": {"fg": "red", "bold": True},
    "cancelled": {"fg": "bright_black"},
    "refunded": {"fg": "magenta"},
    "active": {"fg": "green"},
    "paused": {"fg": "yellow"},
    "completed": {"fg": "bright_black"},
}


def format_success(message: str) -> str:
    return click.style(f"✓ {message}", fg="green", bold=True)


def format_error(message: str) -> str:
    return click.style(f"✗ {message}", fg="red", bold=True)


def format_warning(message: str) -> str:
    return click.style(f"⚠ {message}", fg="yellow", bold=True)


def format_info(message: str) -> str:
    return click.style(f"ℹ {message}", fg="blue")


def format_status(status: str) -> str:
    """Colour an invoice or schedule status; unknown statuses are left plain."""
    return click.style(status, **STATUS_STYLES.get(status, {}))


def format_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[object]],
    max_width: int = 40,
    align_right: Iterable[int] = (),
) -> str:
    """Format rows as a boxed plain-text table.

    Args:
        headers: Column headers
        rows: Data rows; cells are converted with ``str()``
        max_width: Cells longer than this are truncated
        align_right: Indexes of columns to right-align (money, counts)

    Returns:
        The table as a string, or "" when there are no headers

    Example:
        >>> print(format_table(["Number", "Total"], [["INV-2025-0001", "110.00"]],
        ...                    align_right=[1]))
        +---------------+--------+
        | Number        |  Total |
        +---------------+--------+
        | INV-2025-0001 | 110.00 |
        +---------------+--------+
    """
    if not headers:
        return ""

    cells: List[List[str]] = [
        [str(cell)[:max_width] for cell in row[: len(headers)]] for row in rows
    ]
    widths = [min(len(h), max_width) for h in headers]
    for row in cells:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    right = set(align_right)

    def render(values: Sequence[str]) -> str:
        padded = []
        for i, width in enumerate(widths):
            value = values[i] if i < len(values) else ""
            padded.append(f" {value:>{width}} " if i in right else f" {value:<{width}} ")
        return "|" + "|".join(padded) + "|"

    separator = "+" + "+".join("-" * (w + 2) for w in widths) + "+"
    lines = [separator, render([str(h)[:max_width] for h in headers]), separator]
    if cells:
        lines.extend(render(row) for row in cells)
        lines.append(separator)
    return "\n".join(lines)
