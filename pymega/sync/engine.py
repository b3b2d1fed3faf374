"""Core sync engine for running one sync between a local and a remote tree."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..exceptions import LocalStoreError, MegaRemoteError, SyncValidationError
from ..local import LocalStore, LocalType
from ..models import RemoteNode
from ..output import OutputFormatter
from ..remote import RemoteStore
from ..utils import format_duration, format_size
from .download import DownloadWalker
from .options import SyncOptions
from .result import SyncResult
from .stats import SyncContext, SyncStats, TransferProgress
from .upload import UploadWalker

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of a whole sync run."""

    stats: SyncStats
    """Counters collected during the run"""

    success: bool
    """True if the top-level directory walk succeeded"""

    reason: str = ""
    """Reason of the failure that stopped the walk, if any"""


class SyncEngine:
    """Core sync engine that reconciles one local and one remote tree."""

    def __init__(
        self,
        remote: RemoteStore,
        local: Optional[LocalStore] = None,
        output: Optional[OutputFormatter] = None,
        progress: Optional[TransferProgress] = None,
    ):
        """Initialize sync engine.

        Args:
            remote: Remote store to sync against
            local: Local filesystem access
            output: Output formatter for decisions and the summary
            progress: Receiver for transfer progress, if any
        """
        self.remote = remote
        self.local = local or LocalStore()
        self.output = output or OutputFormatter()
        self.progress = progress

    def run(self, options: SyncOptions) -> SyncReport:
        """Run one sync.

        Option combinations and both roots are checked before anything is
        transferred. After an upload the remote session cache is saved even
        if some files failed.

        Args:
            options: Options for this run

        Returns:
            SyncReport with statistics and the overall result

        Raises:
            SyncValidationError: If options conflict or a root is unusable

        Example::

            engine = SyncEngine(DirectoryRemoteStore(Path("store")))
            report = engine.run(SyncOptions("/Root/docs", Path("docs")))
            print(report.stats.files_processed)
        """
        options.validate()
        self._check_remote_root(options.remote)
        if not options.is_download:
            self._check_local_root(options)

        ctx = SyncContext(options=options, output=self.output, progress=self.progress)
        logger.debug(
            f"Starting {options.direction.value} sync: "
            f"{options.local} <-> {options.remote}"
        )

        ctx.stats.start()
        try:
            result = self._walk(ctx)
        finally:
            ctx.stats.finish()
            if not options.is_download and not options.dry_run:
                self._save_session()

        self._display_summary(ctx.stats, options.dry_run)
        return SyncReport(stats=ctx.stats, success=result.ok, reason=result.reason)

    def _walk(self, ctx: SyncContext) -> SyncResult:
        options = ctx.options
        if options.is_download:
            walker = DownloadWalker(ctx, self.remote, self.local)
            return walker.sync_dir(options.local, options.remote)
        return UploadWalker(ctx, self.remote, self.local).sync_dir(
            options.local, options.remote, is_root=True
        )

    def _check_remote_root(self, remote_path: str) -> RemoteNode:
        node = self.remote.stat_node(remote_path)
        if node is None:
            raise SyncValidationError(f"Remote directory not found {remote_path}")
        if not self.remote.is_container(node):
            raise SyncValidationError(f"Remote path must be a folder: {remote_path}")
        return node

    def _check_local_root(self, options: SyncOptions) -> None:
        try:
            file_type = self.local.type_of(options.local)
        except LocalStoreError as e:
            raise SyncValidationError(str(e)) from e
        if file_type != LocalType.DIRECTORY:
            raise SyncValidationError(f"Local directory not found {options.local}")

    def _save_session(self) -> None:
        try:
            self.remote.save()
        except MegaRemoteError as e:
            self.output.warning(f"Failed to save session cache: {e}")

    def _display_summary(self, stats: SyncStats, dry_run: bool) -> None:
        """Display sync summary.

        Args:
            stats: Statistics of the finished run
            dry_run: Whether this was a dry run
        """
        self.output.print("")
        if dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        self.output.info(f"Files processed: {stats.files_processed}")
        self.output.info(f"Folders processed: {stats.folders_processed}")
        self.output.info(f"Files with errors: {stats.files_with_errors}")
        if stats.elements_deleted > 0:
            self.output.info(f"Elements deleted: {stats.elements_deleted}")
        self.output.info(
            f"Transferred: {format_size(stats.bytes_transferred)} "
            f"in {format_duration(stats.duration)} "
            f"({format_size(stats.throughput)}/s)"
        )
