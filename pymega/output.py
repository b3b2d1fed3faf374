"""Output formatting for the CLI and the sync engine."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape


class OutputFormatter:
    """Writes user-facing messages.

    Regular output goes to stdout, warnings and errors to stderr. In quiet
    mode informational output and decision lines are dropped; warnings and
    errors are always shown. In JSON mode stdout carries only the document
    written by output_json.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        colors: bool = True,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON where supported
            quiet: Suppress informational output
            colors: Allow colored output on terminals
            console: Console for regular output (default: stdout)
            err_console: Console for warnings and errors (default: stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(
            highlight=False, no_color=not colors, soft_wrap=True
        )
        self.err_console = err_console or Console(
            stderr=True, highlight=False, no_color=not colors, soft_wrap=True
        )

    @property
    def _show_text(self) -> bool:
        return not self.quiet and not self.json_output

    def print(self, message: str = "") -> None:
        """Print a plain line (suppressed in quiet and JSON modes)."""
        if self._show_text:
            self.console.print(escape(message))

    def info(self, message: str) -> None:
        """Print an informational message (suppressed in quiet and JSON modes)."""
        if self._show_text:
            self.console.print(escape(message))

    def success(self, message: str) -> None:
        """Print a success message (suppressed in quiet and JSON modes)."""
        if self._show_text:
            self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        self.err_console.print(f"[yellow]WARNING: {escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        """Print an error to stderr."""
        self.err_console.print(f"[bold red]ERROR: {escape(message)}[/bold red]")

    def decision(self, code: str, path: str) -> None:
        """Print a sync decision line such as ``F /Root/docs/a.txt``.

        Args:
            code: "F" (file transfer), "D" (directory create) or
                "R" (remove/replace)
            path: Path being acted on
        """
        if self._show_text:
            self.console.print(f"{code} {escape(path)}")

    def output_json(self, data: Any) -> None:
        """Print data as JSON."""
        self.console.print_json(json.dumps(data, default=str))
