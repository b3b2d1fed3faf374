"""Exceptions raised by pymega and its storage collaborators."""

from typing import Optional


class MegaError(Exception):
    """Base exception for all pymega errors."""


class MegaConfigError(MegaError):
    """Configuration is missing or invalid."""


class MegaRemoteError(MegaError):
    """A remote store operation failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class MegaNotFoundError(MegaRemoteError):
    """Remote path does not exist."""


class MegaExistsError(MegaRemoteError):
    """Remote path already exists."""


class MegaTransferError(MegaRemoteError):
    """Upload or download of a file failed."""


class LocalStoreError(MegaError):
    """A local filesystem operation failed.

    The original ``OSError`` (if any) is available as ``__cause__`` and its
    errno is copied to :attr:`errno` for callers that need to inspect it.
    """

    def __init__(self, message: str, path: Optional[str] = None, errno: int = 0):
        super().__init__(message)
        self.path = path
        self.errno = errno


class XattrUnsupportedError(LocalStoreError):
    """The filesystem does not support extended attributes."""


class SyncValidationError(MegaError, ValueError):
    """Sync options or sync roots failed validation."""
