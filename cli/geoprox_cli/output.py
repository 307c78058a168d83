"""
Output formatting utilities for the GeoProx CLI.

Timing lines go to stdout as plain text (`<label> = <seconds> s`) so other
processes can parse them; status messages and tables go through rich.
"""

from typing import Any, Dict, Iterable, Optional, Sequence

import click
from rich.console import Console
from rich.table import Table


# Global console instance
console = Console()
error_console = Console(stderr=True)

MISSING = "-"


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str, details: Optional[str] = None) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗ Error:[/red] {message}")
    if details:
        error_console.print(f"  [dim]{details}[/dim]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    error_console.print(f"[yellow]⚠[/yellow] {message}")


def print_timing_lines(lines: Iterable[str]) -> None:
    """Emit machine-readable timing lines unchanged."""
    for line in lines:
        click.echo(line)


def format_seconds(value: Optional[float]) -> str:
    """Format a duration for the timing table; '-' when absent."""
    if value is None:
        return MISSING
    return f"{value:.6f}"


def timing_table(
    labels: Sequence[str],
    columns: Dict[str, Dict[str, float]],
    title: Optional[str] = None,
) -> Table:
    """
    Build a timing comparison table.

    Args:
        labels: Row labels in display order
        columns: Column header -> {label: seconds}
        title: Optional table title

    Returns:
        rich Table with one row per label present in any column
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Step", style="cyan")
    for header in columns:
        table.add_column(header, justify="right")

    for label in labels:
        values = [column.get(label) for column in columns.values()]
        if all(value is None for value in values):
            continue
        table.add_row(label, *(format_seconds(value) for value in values))

    return table


def dict_table(data: Dict[str, Any], title: Optional[str] = None) -> Table:
    """Two-column key/value table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key.replace("_", " ").title(), _format_value(value))

    return table


def _format_value(value: Any) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, bool):
        return "[green]Yes[/green]" if value else "[red]No[/red]"
    if isinstance(value, float):
        return f"{value:.6g}"
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items())
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)
