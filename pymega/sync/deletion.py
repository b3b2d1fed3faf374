"""Removal of leftovers on the target side of a sync."""

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Generic, TypeVar

from ..exceptions import LocalStoreError, MegaRemoteError
from ..local import LocalEntry, LocalStore, LocalType
from ..models import RemoteNode
from ..remote import RemoteStore
from .result import SUCCESS, SyncResult
from .stats import SyncContext

logger = logging.getLogger(__name__)

EntryT = TypeVar("EntryT")


class PendingDeletionSet(Generic[EntryT]):
    """Children of the target directory not yet matched by the source.

    Built from one directory listing, drained while the source children of
    the same directory are visited, and whatever is left are leftovers.
    Instances live for one directory visit only.
    """

    def __init__(self, entries: Iterable[EntryT], key=lambda e: e.name):
        self._entries: dict[str, EntryT] = {key(e): e for e in entries}

    def discard(self, name: str) -> bool:
        """Mark name as present on the source side.

        Returns:
            True if name was pending, False if it is new on the target
        """
        return self._entries.pop(name, None) is not None

    def leftovers(self) -> Iterator[EntryT]:
        """Iterate over entries that were never discarded."""
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries


def remove_remote_leftovers(
    ctx: SyncContext,
    remote: RemoteStore,
    pending: PendingDeletionSet[RemoteNode],
) -> SyncResult:
    """Remove remote nodes that have no local counterpart.

    Returns:
        SUCCESS, or the first failure if errors are not ignored
    """
    status = SUCCESS
    for node in pending.leftovers():
        node_path = node.path
        ctx.output.decision("R", node_path)
        try:
            if not ctx.dry_run:
                remote.remove(node_path)
        except MegaRemoteError as e:
            ctx.output.error(f"Can't remove {node_path}: {e}")
            ctx.stats.files_with_errors += 1
            status = ctx.fold(SyncResult.recoverable(str(e)))
            if not status.ok:
                break
            continue
        ctx.stats.elements_deleted += 1
    return status


def delete_recursively(local: LocalStore, path: Path) -> None:
    """Delete a local directory and everything below it.

    Symlinks are removed, never followed.

    Raises:
        LocalStoreError: On the first entry that cannot be deleted
    """
    for entry in local.list_children(path):
        child = path / entry.name
        if entry.type == LocalType.DIRECTORY:
            delete_recursively(local, child)
        else:
            logger.debug(f"Deleting: {child}")
            local.delete(child)
    logger.debug(f"Deleting: {path}")
    local.delete(path)


def remove_local_leftovers(
    ctx: SyncContext,
    local: LocalStore,
    local_dir: Path,
    pending: PendingDeletionSet[LocalEntry],
) -> SyncResult:
    """Remove local entries that have no remote counterpart.

    Directories are deleted recursively and regular files directly; any
    other entry type is skipped with a warning.

    Returns:
        SUCCESS, or the first failure if errors are not ignored
    """
    status = SUCCESS
    for entry in pending.leftovers():
        child = local_dir / entry.name

        if entry.type not in (LocalType.DIRECTORY, LocalType.REGULAR_FILE):
            ctx.output.warning(f"Skipping special file {child}")
            continue

        ctx.output.decision("R", str(child))
        try:
            if not ctx.dry_run:
                if entry.type == LocalType.DIRECTORY:
                    delete_recursively(local, child)
                else:
                    local.delete(child)
        except LocalStoreError as e:
            kind = "directory" if entry.type == LocalType.DIRECTORY else "file"
            ctx.output.error(f"Can't delete local {kind} {child}: {e}")
            ctx.stats.files_with_errors += 1
            status = ctx.fold(SyncResult.recoverable(str(e)))
            if not status.ok:
                break
            continue
        ctx.stats.elements_deleted += 1
    return status
