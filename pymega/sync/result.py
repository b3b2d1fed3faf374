"""Outcome of a sync step."""

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    """How a sync step ended."""

    SUCCESS = "success"
    """Step completed (including "nothing to do")"""

    RECOVERABLE = "recoverable"
    """Step failed; siblings may continue if errors are ignored"""

    FATAL = "fatal"
    """Directory level could not be processed at all"""


@dataclass(frozen=True)
class SyncResult:
    """Result of syncing one file, directory or leftover."""

    outcome: Outcome
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @classmethod
    def success(cls) -> "SyncResult":
        return cls(Outcome.SUCCESS)

    @classmethod
    def recoverable(cls, reason: str) -> "SyncResult":
        return cls(Outcome.RECOVERABLE, reason)

    @classmethod
    def fatal(cls, reason: str) -> "SyncResult":
        return cls(Outcome.FATAL, reason)


SUCCESS = SyncResult.success()
