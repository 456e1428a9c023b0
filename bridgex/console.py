"""Rich console helpers for bridgex CLI output.

All user-facing command output goes through this module so that colour
handling (NO_COLOR, CI) lives in one place. Diagnostic output belongs in the
logger instead.
"""

from __future__ import annotations

import os
from typing import Any, List, Optional

from rich.console import Console
from rich.table import Table

_console: Optional[Console] = None


def get_console() -> Console:
    """Get or create the shared Rich Console.

    Returns:
        Console: Rich Console instance
    """
    global _console
    if _console is None:
        no_color = os.getenv("NO_COLOR", "").lower() in ("1", "true", "yes")
        is_ci = os.getenv("CI", "").lower() in ("1", "true", "yes")

        _console = Console(
            force_terminal=not (no_color or is_ci),
            no_color=no_color,
            highlight=False,
        )
    return _console


def success(message: str, emoji: bool = True) -> None:
    """Print a green success line."""
    prefix = "✓ " if emoji else ""
    get_console().print(f"[green]{prefix}{message}[/green]")


def error(message: str, emoji: bool = True) -> None:
    """Print a red error line."""
    prefix = "✗ " if emoji else ""
    get_console().print(f"[red]{prefix}{message}[/red]")


def warning(message: str, emoji: bool = True) -> None:
    """Print a yellow warning line."""
    prefix = "⚠ " if emoji else ""
    get_console().print(f"[yellow]{prefix}{message}[/yellow]")


def info(message: str, bold: bool = False) -> None:
    get_console().print(message, style="bold" if bold else "")


def status(message: str) -> None:
    get_console().print(f"[blue]{message}[/blue]")


def newline() -> None:
    get_console().print()


def table(
    data: List[List[Any]],
    headers: List[str],
    title: Optional[str] = None,
) -> None:
    """Display rows in a Rich table.

    Headers mentioning rows, errors or counts are right aligned.

    Args:
        data: List of rows (each row is a list of values)
        headers: Column headers
        title: Optional table title
    """
    rich_table = Table(
        title=title,
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )

    for header in headers:
        lowered = header.lower()
        numeric = any(word in lowered for word in ("count", "rows", "errors"))
        rich_table.add_column(header, justify="right" if numeric else "left")

    for row in data:
        rich_table.add_row(*["" if cell is None else str(cell) for cell in row])

    get_console().print(rich_table)


def inline_status_start(message: str) -> None:
    get_console().print(message, end=" ")


def inline_status_end(ok: bool, success_msg: str = "OK", error_msg: str = "Failed") -> None:
    if ok:
        get_console().print(f"[green]✓ {success_msg}[/green]")
    else:
        get_console().print(f"[red]✗ {error_msg}[/red]")
