"""Run statistics and the run-scoped sync context."""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from ..output import OutputFormatter
from .options import SyncOptions
from .result import SUCCESS, SyncResult


class TransferProgress(Protocol):
    """Receives progress of the transfer currently in flight."""

    def update(self, label: str, done: int, total: int) -> None: ...

    def finish(self, label: str) -> None: ...


@dataclass
class SyncStats:
    """Counters collected during one sync run."""

    files_processed: int = 0
    files_with_errors: int = 0
    folders_processed: int = 0
    elements_deleted: int = 0
    bytes_transferred: int = 0
    started_at: float = 0.0
    finished_at: float = 0.0

    def start(self) -> None:
        self.started_at = time.time()

    def finish(self) -> None:
        self.finished_at = time.time()

    @property
    def duration(self) -> float:
        """Wall-clock duration in seconds, at least 1."""
        return max(self.finished_at - self.started_at, 1.0)

    @property
    def throughput(self) -> float:
        """Average bytes per second over the run."""
        return self.bytes_transferred / self.duration

    def to_dict(self) -> dict:
        """Convert statistics to a dictionary for JSON output."""
        return {
            "files_processed": self.files_processed,
            "files_with_errors": self.files_with_errors,
            "folders_processed": self.folders_processed,
            "elements_deleted": self.elements_deleted,
            "bytes_transferred": self.bytes_transferred,
            "duration": round(self.duration, 3),
            "throughput": round(self.throughput, 1),
        }


@dataclass
class SyncContext:
    """State shared by all components during one sync run.

    One instance exists per run and is passed explicitly to every walker
    and helper. Only the currently active leaf operation writes to
    ``stats`` and ``current_file``.
    """

    options: SyncOptions
    output: OutputFormatter
    stats: SyncStats = field(default_factory=SyncStats)
    progress: Optional[TransferProgress] = None
    current_file: Optional[str] = None

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    def fold(self, result: SyncResult) -> SyncResult:
        """Apply the ignore-errors policy to a child result.

        A failed child counts as success for its parent when errors are
        ignored, so the parent keeps going. Otherwise the failure is
        passed up and the parent stops processing the remaining siblings.
        """
        if result.ok or self.options.ignore_errors:
            return SUCCESS
        return SyncResult.recoverable(result.reason)

    def begin_transfer(self, label: str) -> Optional[Callable[[int, int], None]]:
        """Mark label as the file in flight and build a store progress callback."""
        self.current_file = label
        if self.progress is None or self.options.no_progress:
            return None
        progress = self.progress

        def callback(done: int, total: int) -> None:
            progress.update(label, done, total)

        return callback

    def end_transfer(self) -> None:
        if (
            self.progress is not None
            and not self.options.no_progress
            and self.current_file is not None
        ):
            self.progress.finish(self.current_file)
        self.current_file = None
