"""Reconcile a local directory tree into the remote store."""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import LocalStoreError, MegaRemoteError
from ..local import LocalStore, LocalType
from ..models import NodeType, RemoteNode, encode_xattrs
from ..remote import RemoteStore
from ..utils import join_remote_path
from .comparator import FileComparator
from .deletion import PendingDeletionSet, remove_remote_leftovers
from .result import SUCCESS, SyncResult
from .stats import SyncContext

logger = logging.getLogger(__name__)


class UploadWalker:
    """Makes a remote subtree match a local subtree.

    Directories are visited depth-first. At every level the remote
    children are listed once (only when deleting) and matched by name
    against the local children; whatever is not matched is removed.
    """

    def __init__(
        self,
        ctx: SyncContext,
        remote: RemoteStore,
        local: Optional[LocalStore] = None,
    ):
        """Initialize upload walker.

        Args:
            ctx: Sync context for this run
            remote: Remote store to write to
            local: Local store to read from
        """
        self.ctx = ctx
        self.remote = remote
        self.local = local or LocalStore()
        self.comparator = FileComparator(always=ctx.options.always)

    def _fail(self, message: str) -> SyncResult:
        self.ctx.output.error(message)
        self.ctx.stats.files_with_errors += 1
        return SyncResult.recoverable(message)

    def _stat_remote(self, remote_path: str) -> Optional[RemoteNode]:
        try:
            return self.remote.stat_node(remote_path)
        except MegaRemoteError as e:
            logger.debug(f"Remote stat of {remote_path} failed: {e}")
            return None

    def _prepare_remote_dir(self, remote_path: str) -> SyncResult:
        """Make sure a folder exists at remote_path.

        A file in the way is removed first; a file is never merged with a
        directory.
        """
        ctx = self.ctx
        node = self._stat_remote(remote_path)

        if node is not None and node.type == NodeType.FILE:
            ctx.output.decision("R", remote_path)
            if not ctx.dry_run:
                try:
                    self.remote.remove(remote_path)
                except MegaRemoteError as e:
                    return self._fail(f"Can't remove {remote_path}: {e}")
            node = None

        if node is None:
            ctx.output.decision("D", remote_path)
            if not ctx.dry_run:
                try:
                    self.remote.make_directory(remote_path)
                except MegaRemoteError as e:
                    return self._fail(
                        f"Can't create remote directory {remote_path}: {e}"
                    )
        return SUCCESS

    def _list_remote(self, remote_path: str) -> list[RemoteNode]:
        """List remote children for deletion tracking.

        A folder that does not exist (yet) has no children. This happens
        in dry-run mode and with --delete-only.
        """
        node = self.remote.stat_node(remote_path)
        if node is None or not self.remote.is_container(node):
            return []
        return self.remote.list_children(remote_path)

    def sync_dir(
        self, local_dir: Path, remote_path: str, is_root: bool = False
    ) -> SyncResult:
        """Sync one local directory and everything below it.

        Args:
            local_dir: Local directory
            remote_path: Remote folder path matching local_dir
            is_root: True for the top of the sync, which must already exist

        Returns:
            Result of this level, with the ignore-errors policy applied to
            failures of its children
        """
        ctx = self.ctx
        options = ctx.options
        ctx.stats.folders_processed += 1

        if not options.delete_only and not is_root:
            result = self._prepare_remote_dir(remote_path)
            if not result.ok:
                return result

        pending: Optional[PendingDeletionSet[RemoteNode]] = None
        if options.delete:
            try:
                pending = PendingDeletionSet(self._list_remote(remote_path))
            except MegaRemoteError as e:
                message = f"Can't list remote directory {remote_path}: {e}"
                ctx.output.error(message)
                return SyncResult.fatal(message)

        try:
            entries = self.local.list_children(local_dir)
        except LocalStoreError as e:
            ctx.output.error(str(e))
            return SyncResult.fatal(str(e))

        status = SUCCESS
        for entry in entries:
            child = local_dir / entry.name
            child_remote_path = join_remote_path(remote_path, entry.name)

            if pending is not None and not pending.discard(entry.name):
                logger.debug(f"New file: {entry.name}")

            if entry.type == LocalType.DIRECTORY:
                result = self.sync_dir(child, child_remote_path)
            elif entry.type == LocalType.REGULAR_FILE:
                if options.delete_only:
                    continue
                result = self.sync_file(child, child_remote_path)
            else:
                ctx.output.warning(f"Skipping special file {child}")
                continue

            status = ctx.fold(result)
            if not status.ok:
                break

        if pending is not None and status.ok:
            status = remove_remote_leftovers(ctx, self.remote, pending)

        return status

    def sync_file(self, local_file: Path, remote_path: str) -> SyncResult:
        """Upload one file if the remote copy is missing or differs.

        Args:
            local_file: Local regular file
            remote_path: Remote path for the file

        Returns:
            SUCCESS (also when nothing had to be done) or a recoverable
            failure
        """
        ctx = self.ctx
        ctx.stats.files_processed += 1

        try:
            st = self.local.stat(local_file)
        except LocalStoreError:
            return self._fail(f"Unable to stat {local_file}")

        if st.size <= 0:
            logger.debug(f"Ignoring empty file {local_file}")
            return SUCCESS

        node = self._stat_remote(remote_path)
        if node is not None:
            if self.remote.is_container(node) and not ctx.options.force:
                return self._fail(
                    "Target is a directory, cannot overwrite "
                    f"(use --force): {remote_path}"
                )

            decision = self.comparator.compare(
                st.size, st.mtime, node.size, node.effective_timestamp
            )
            if not decision.needs_transfer:
                logger.debug(f"File {remote_path} {decision.reason}, skipping")
                return SUCCESS

            logger.debug(f"File {remote_path}: {decision.reason}")
            logger.debug(
                f"  Local file timestamp is: {st.mtime}, "
                f"remote timestamp is: {node.effective_timestamp}"
            )

            ctx.output.decision("R", remote_path)
            if not ctx.dry_run:
                try:
                    self.remote.remove(remote_path)
                except MegaRemoteError as e:
                    return self._fail(f"Can't remove {remote_path}: {e}")

        ctx.output.decision("F", remote_path)
        if not ctx.dry_run:
            xattrs = self._read_xattrs(local_file)
            callback = ctx.begin_transfer(local_file.name)
            try:
                self.remote.put_file(
                    remote_path,
                    local_file,
                    local_ts=st.mtime,
                    xattrs=xattrs,
                    progress_callback=callback,
                )
            except MegaRemoteError as e:
                return self._fail(f"Upload failed for {remote_path}: {e}")
            finally:
                ctx.end_transfer()

        ctx.stats.bytes_transferred += st.size
        return SUCCESS

    def _read_xattrs(self, local_file: Path) -> Optional[str]:
        try:
            return encode_xattrs(self.local.list_xattrs(local_file))
        except LocalStoreError as e:
            self.ctx.output.warning(str(e))
            return None
