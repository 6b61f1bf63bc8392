"""Rich console output utilities for the tsgen CLI.

Formatted console output with Rich: colored success/error/info
messages, the run summary table, and NO_COLOR support.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from tsgen.plan import RunPlan

# Rich automatically respects NO_COLOR, but we also support --no-color flag
_force_no_color = os.environ.get("NO_COLOR") is not None


def create_console(no_color: bool = False) -> Console:
    """Create a Rich Console instance with appropriate color settings.

    Args:
        no_color: If True, disable colored output. Also respects NO_COLOR env var.

    Returns:
        Configured Console instance.
    """
    force_terminal = None
    if no_color or _force_no_color:
        force_terminal = False
    return Console(force_terminal=force_terminal, no_color=no_color or _force_no_color)


# Default console instance
console = create_console()


def success(message: str, **kwargs: Any) -> None:
    """Print a success message with green checkmark.

    Example:
        >>> success("Wrote 3 shards")
        ✓ Wrote 3 shards
    """
    console.print(f"[green]✓[/green] {message}", **kwargs)


def error(message: str, **kwargs: Any) -> None:
    """Print an error message with red X.

    Markup in the message is not interpreted.

    Example:
        >>> error("error writing shard 2: disk full")
        ✗ error writing shard 2: disk full
    """
    console.print(f"[red]✗[/red] {escape(message)}", **kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print an informational message."""
    console.print(message, **kwargs)


def print_summary(plan: RunPlan) -> None:
    """Print the run summary as a two-column table.

    Args:
        plan: Run to describe.
    """
    table = Table(box=box.SIMPLE, show_header=False, pad_edge=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for label, value in plan.rows():
        table.add_row(label, Text(value))
    console.print(table)


def set_no_color(no_color: bool) -> None:
    """Update the global console to enable/disable colors.

    Args:
        no_color: If True, disable colored output.
    """
    global console
    console = create_console(no_color=no_color)
