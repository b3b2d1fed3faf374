"""Restore file metadata after a download."""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import LocalStoreError, XattrUnsupportedError
from ..local import LocalStore
from ..models import parse_xattrs
from .result import SUCCESS, SyncResult
from .stats import SyncContext

logger = logging.getLogger(__name__)


def apply_timestamp(
    ctx: SyncContext, local: LocalStore, path: Path, timestamp: int
) -> None:
    """Set access and modification time of a downloaded file.

    Failure is reported as a warning only; it does not count as an error.
    """
    if timestamp <= 0 or ctx.dry_run:
        return
    try:
        local.set_times(path, timestamp, timestamp)
    except LocalStoreError as e:
        ctx.output.warning(str(e))


def apply_xattrs(
    ctx: SyncContext, local: LocalStore, path: Path, blob: Optional[str]
) -> SyncResult:
    """Restore extended attributes recorded on a remote node.

    Attributes are applied in order. Entries without a name are skipped.
    A filesystem without extended attribute support is ignored silently.
    Any other failure stops the remaining attributes; attributes already
    set stay in place.

    Args:
        ctx: Sync context
        local: Local store
        path: Downloaded file
        blob: Extended attributes blob of the remote node

    Returns:
        SUCCESS, or a recoverable failure
    """
    if not blob:
        return SUCCESS

    try:
        attrs = parse_xattrs(blob)
    except ValueError as e:
        return SyncResult.recoverable(f"Invalid extended attributes for {path}: {e}")

    if ctx.dry_run:
        return SUCCESS

    for attr in attrs:
        if not attr.name:
            continue
        try:
            local.set_xattr(path, attr.name, attr.value)
        except XattrUnsupportedError:
            logger.debug(f"Extended attributes not supported for {path}")
            return SUCCESS
        except LocalStoreError as e:
            return SyncResult.recoverable(str(e))
    return SUCCESS
