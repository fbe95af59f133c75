"""Rich console output utilities for protogen-cli.

This module provides formatted console output with Rich, supporting colored
success/error/warning messages and respecting the NO_COLOR environment
variable. It also provides ConsoleReporter, which routes unit diagnostics
to the console.
"""

from __future__ import annotations

import json
import os
import threading
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

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


console = create_console()


def success(message: str, **kwargs: Any) -> None:
    """Print a success message with green checkmark.

    Example:
        >>> success("Generated 3 sources")
        ✓ Generated 3 sources
    """
    console.print(f"[green]✓[/green] {escape(message)}", **kwargs)


def error(message: str, **kwargs: Any) -> None:
    """Print an error message with red X.

    Example:
        >>> error("Failed to run protoc, exit code 1")
        ✗ Failed to run protoc, exit code 1
    """
    console.print(f"[red]✗[/red] {escape(message)}", **kwargs)


def warning(message: str, **kwargs: Any) -> None:
    """Print a warning message with yellow triangle."""
    console.print(f"[yellow]⚠[/yellow] {escape(message)}", **kwargs)


def info(message: str, **kwargs: Any) -> None:
    """Print an informational message."""
    console.print(escape(message), **kwargs)


def print_json(data: dict[str, Any], **kwargs: Any) -> None:
    """Print JSON data with syntax highlighting."""
    console.print_json(json.dumps(data, default=str), **kwargs)


def print_table(table: Table) -> None:
    console.print(table)


def set_no_color(no_color: bool) -> None:
    """Update the global console to enable/disable colors.

    Note:
        This updates the module-level console instance.
    """
    global console
    console = create_console(no_color=no_color)


class ConsoleReporter:
    """Reporter printing unit diagnostics to the console.

    Lines from concurrent units are serialized through a lock so they do
    not interleave.

    Args:
        quiet: Suppress warnings (tool output), keep errors.
    """

    def __init__(self, quiet: bool = False) -> None:
        self.quiet = quiet
        self._lock = threading.Lock()

    def error(self, message: str, *, unit: str | None = None) -> None:
        with self._lock:
            error(f"[{unit}] {message}" if unit else message)

    def warning(self, message: str, *, unit: str | None = None) -> None:
        if self.quiet:
            return
        with self._lock:
            warning(f"[{unit}] {message}" if unit else message)
