"""Sync engine for pymega - reconcile a local and a remote directory tree."""

from .comparator import ChangeDecision, FileComparator
from .deletion import (
    PendingDeletionSet,
    delete_recursively,
    remove_local_leftovers,
    remove_remote_leftovers,
)
from .download import DownloadWalker
from .engine import SyncEngine, SyncReport
from .metadata import apply_timestamp, apply_xattrs
from .options import SyncDirection, SyncOptions
from .result import Outcome, SyncResult
from .stats import SyncContext, SyncStats, TransferProgress
from .upload import UploadWalker

__all__ = [
    "SyncEngine",
    "SyncReport",
    "SyncOptions",
    "SyncDirection",
    "SyncContext",
    "SyncStats",
    "TransferProgress",
    "SyncResult",
    "Outcome",
    "FileComparator",
    "ChangeDecision",
    "UploadWalker",
    "DownloadWalker",
    "PendingDeletionSet",
    "remove_remote_leftovers",
    "remove_local_leftovers",
    "delete_recursively",
    "apply_timestamp",
    "apply_xattrs",
]
