"""Shared utility functions for platform builds.

Provides Rich-based status reporting at the verbosity levels used throughout
the build (verbose, info, status, warning, error), raw process output, JSON
output for run summaries and small formatting helpers.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()

_verbose = False


def set_verbose(enabled: bool) -> None:
    """Enable or disable verbose output for the rest of the process."""
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_verbose(message: str) -> None:
    """Print a dim diagnostic message, only when verbose output is enabled."""
    if _verbose:
        console.print(f"[dim]{escape(message)}[/dim]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(escape(message))


def print_status(message: str) -> None:
    """Print a cyan progress/status message."""
    console.print(f"[bold cyan]{escape(message)}[/bold cyan]")


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")


OUTPUT_ECHO_LIMIT = 20_000


def print_output(text: str, error: bool = False) -> None:
    """Echo captured process output verbatim.

    Markup, highlighting and wrapping are disabled, and only the last
    ``OUTPUT_ECHO_LIMIT`` characters are shown.
    """
    if len(text) > OUTPUT_ECHO_LIMIT:
        omitted = len(text) - OUTPUT_ECHO_LIMIT
        text = f"... ({omitted} characters omitted)\n" + text[-OUTPUT_ECHO_LIMIT:]
    console.print(
        text,
        style="red" if error else None,
        markup=False,
        highlight=False,
        emoji=False,
        soft_wrap=True,
    )


def print_stage_header(name: str, color: str = "bright_cyan") -> None:
    """Print a full-width rule announcing a pipeline stage."""
    console.print()
    console.print(Rule(f"[bold {color}] {name.upper()} [/bold {color}]", style=color))
    console.print()


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> None:
    """Save data as pretty-printed JSON.

    Parent directories are created automatically. The write itself is
    performed in a thread-pool executor to avoid blocking the event loop.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str)

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, file_path.write_text, content, "utf-8")


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


def format_command(working_dir: str | Path, executable: str, args: list[str]) -> str:
    """Describe an invocation as ``<dir>:<exe> <args>`` for log lines."""
    return f"{working_dir}:{' '.join([executable, *args])}"
