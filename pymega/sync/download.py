"""Reconcile a remote tree into a local directory."""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import LocalStoreError, MegaRemoteError
from ..local import LocalEntry, LocalStore, LocalType
from ..models import NodeType, RemoteNode
from ..remote import RemoteStore
from ..utils import join_remote_path
from .comparator import FileComparator
from .deletion import PendingDeletionSet, delete_recursively, remove_local_leftovers
from .metadata import apply_timestamp, apply_xattrs
from .result import SUCCESS, SyncResult
from .stats import SyncContext

logger = logging.getLogger(__name__)


class DownloadWalker:
    """Makes a local subtree match a remote subtree.

    Mirror image of the upload walker. Local directories may also hold
    entries the remote side never produces (symlinks, sockets, devices);
    those are never overwritten or deleted.
    """

    def __init__(
        self,
        ctx: SyncContext,
        remote: RemoteStore,
        local: Optional[LocalStore] = None,
    ):
        """Initialize download walker.

        Args:
            ctx: Sync context for this run
            remote: Remote store to read from
            local: Local store to write to
        """
        self.ctx = ctx
        self.remote = remote
        self.local = local or LocalStore()
        self.comparator = FileComparator(always=ctx.options.always)

    def _fail(self, message: str) -> SyncResult:
        self.ctx.output.error(message)
        self.ctx.stats.files_with_errors += 1
        return SyncResult.recoverable(message)

    def _prepare_local_dir(self, local_dir: Path) -> SyncResult:
        """Make sure a directory exists at local_dir.

        A regular file in the way is deleted; any other entry type is an
        error.
        """
        ctx = self.ctx
        try:
            file_type = self.local.type_of(local_dir)
        except LocalStoreError as e:
            return self._fail(str(e))

        if file_type == LocalType.REGULAR_FILE:
            ctx.output.decision("R", str(local_dir))
            if not ctx.dry_run:
                try:
                    self.local.delete(local_dir)
                except LocalStoreError as e:
                    return self._fail(f"Can't delete {local_dir}: {e}")
            file_type = LocalType.ABSENT
        elif file_type == LocalType.OTHER:
            return self._fail(
                f"Target is not a directory, cannot write here: {local_dir}"
            )

        if file_type == LocalType.ABSENT:
            ctx.output.decision("D", str(local_dir))
            if not ctx.dry_run:
                try:
                    self.local.make_directory(local_dir)
                except LocalStoreError as e:
                    return self._fail(str(e))
        return SUCCESS

    def _track_local(self, local_dir: Path) -> Optional[PendingDeletionSet[LocalEntry]]:
        """Build the deletion set, or None if the directory does not exist.

        Raises:
            LocalStoreError: If the directory exists but cannot be read
        """
        if self.local.type_of(local_dir) != LocalType.DIRECTORY:
            return None
        return PendingDeletionSet(self.local.list_children(local_dir))

    def sync_dir(self, local_dir: Path, remote_path: str) -> SyncResult:
        """Sync one remote folder and everything below it.

        Args:
            local_dir: Local directory matching the folder
            remote_path: Path of the remote folder

        Returns:
            Result of this level, with the ignore-errors policy applied to
            failures of its children
        """
        ctx = self.ctx
        options = ctx.options
        ctx.stats.folders_processed += 1

        if not options.delete_only:
            result = self._prepare_local_dir(local_dir)
            if not result.ok:
                return result

        pending: Optional[PendingDeletionSet[LocalEntry]] = None
        if options.delete:
            try:
                pending = self._track_local(local_dir)
            except LocalStoreError as e:
                ctx.output.error(str(e))
                return SyncResult.fatal(str(e))

        try:
            children = self.remote.list_children(remote_path)
        except MegaRemoteError as e:
            message = f"Can't list remote directory {remote_path}: {e}"
            ctx.output.error(message)
            return SyncResult.fatal(message)

        status = SUCCESS
        for child in children:
            child_remote_path = join_remote_path(remote_path, child.name)
            child_local = local_dir / child.name

            if pending is not None and not pending.discard(child.name):
                logger.debug(f"New file: {child.name}")

            if child.type == NodeType.FILE:
                if options.delete_only:
                    continue
                result = self.sync_file(child, child_local, child_remote_path)
            else:
                result = self.sync_dir(child_local, child_remote_path)

            status = ctx.fold(result)
            if not status.ok:
                break

        if pending is not None and status.ok:
            status = remove_local_leftovers(ctx, self.local, local_dir, pending)

        return status

    def sync_file(
        self, node: RemoteNode, local_file: Path, remote_path: str
    ) -> SyncResult:
        """Download one file if the local copy is missing or differs.

        After the download the local modification time is set to the
        node's effective timestamp and its extended attributes are
        restored.

        Args:
            node: Remote file
            local_file: Local path for the file
            remote_path: Path of node

        Returns:
            SUCCESS (also when nothing had to be done) or a recoverable
            failure
        """
        ctx = self.ctx
        ctx.stats.files_processed += 1
        timestamp = node.effective_timestamp

        try:
            file_type = self.local.type_of(local_file)
        except LocalStoreError:
            return self._fail(f"Unable to stat {local_file}")

        if file_type != LocalType.ABSENT:
            if file_type == LocalType.DIRECTORY and not ctx.options.force:
                return self._fail(
                    "Target is a directory, cannot overwrite "
                    f"(use --force): {remote_path}"
                )
            if file_type not in (LocalType.DIRECTORY, LocalType.REGULAR_FILE):
                return self._fail(
                    f"Target is not a regular file, cannot overwrite: {remote_path}"
                )

            try:
                st = self.local.stat(local_file)
            except LocalStoreError:
                return self._fail(f"Unable to stat {local_file}")

            decision = self.comparator.compare(node.size, timestamp, st.size, st.mtime)
            if not decision.needs_transfer:
                logger.debug(f"File {remote_path} {decision.reason}, skipping")
                return SUCCESS
            logger.debug(f"File {remote_path}: {decision.reason}")
            logger.debug(
                f"  Local file timestamp is: {st.mtime}, "
                f"remote timestamp is: {timestamp}"
            )

            ctx.output.decision("R", str(local_file))
            if not ctx.dry_run:
                try:
                    if file_type == LocalType.DIRECTORY:
                        delete_recursively(self.local, local_file)
                    else:
                        self.local.delete(local_file)
                except LocalStoreError as e:
                    return self._fail(f"Can't remove {local_file}: {e}")

        ctx.output.decision("F", str(local_file))
        if not ctx.dry_run:
            callback = ctx.begin_transfer(local_file.name)
            try:
                self.remote.get_file(local_file, remote_path, progress_callback=callback)
            except MegaRemoteError as e:
                return self._fail(f"Download failed for {remote_path}: {e}")
            finally:
                ctx.end_transfer()

        ctx.stats.bytes_transferred += node.size

        apply_timestamp(ctx, self.local, local_file, timestamp)

        result = apply_xattrs(ctx, self.local, local_file, node.xattrs)
        if not result.ok:
            return self._fail(result.reason)
        return SUCCESS
