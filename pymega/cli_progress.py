"""CLI progress display for sync transfers.

This module provides a Rich-based progress display that receives
per-file transfer progress from the sync engine.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .sync import SyncEngine, SyncOptions, SyncReport


class TransferProgressDisplay:
    """Rich-based progress display for file transfers.

    One bar is shown for the file currently in flight. The bar is removed
    when the transfer finishes, so only the decision lines stay on screen.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the progress display.

        Args:
            console: Console to draw on (default: stdout)
        """
        self._console = console
        self._progress: Optional[Progress] = None
        self._tasks: dict[str, TaskID] = {}

    def update(self, label: str, done: int, total: int) -> None:
        """Show progress of the transfer labelled label.

        Args:
            label: File name being transferred
            done: Bytes transferred so far
            total: Size of the file in bytes
        """
        if self._progress is None:
            return
        task = self._tasks.get(label)
        if task is None:
            task = self._progress.add_task(label, total=total or None)
            self._tasks[label] = task
        self._progress.update(task, completed=done, total=total or None)

    def finish(self, label: str) -> None:
        """Remove the bar of a finished transfer."""
        task = self._tasks.pop(label, None)
        if self._progress is not None and task is not None:
            self._progress.remove_task(task)

    def __enter__(self) -> "TransferProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            console=self._console,
            transient=True,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._tasks.clear()


def run_sync_with_progress(
    engine: SyncEngine, options: SyncOptions, show_progress: bool
) -> SyncReport:
    """Run a sync, with a Rich progress display if requested.

    Args:
        engine: SyncEngine instance (its progress receiver is replaced)
        options: Options for the run
        show_progress: False to run without a display

    Returns:
        Report of the finished run
    """
    # dry runs transfer nothing, so there is nothing to show
    if not show_progress or options.dry_run or options.no_progress:
        engine.progress = None
        return engine.run(options)

    with TransferProgressDisplay(console=engine.output.console) as display:
        engine.progress = display
        return engine.run(options)
