"""pymega - keep a local directory tree and a remote storage tree in sync."""

from .exceptions import (
    LocalStoreError,
    MegaConfigError,
    MegaError,
    MegaExistsError,
    MegaNotFoundError,
    MegaRemoteError,
    MegaTransferError,
    SyncValidationError,
    XattrUnsupportedError,
)
from .local import LocalEntry, LocalStore, LocalType
from .models import ExtendedAttribute, NodeType, RemoteNode
from .remote import DirectoryRemoteStore, RemoteStore

__version__ = "0.1.0"

__all__ = [
    "DirectoryRemoteStore",
    "RemoteStore",
    "LocalStore",
    "LocalEntry",
    "LocalType",
    "RemoteNode",
    "NodeType",
    "ExtendedAttribute",
    "MegaError",
    "MegaConfigError",
    "MegaRemoteError",
    "MegaNotFoundError",
    "MegaExistsError",
    "MegaTransferError",
    "LocalStoreError",
    "XattrUnsupportedError",
    "SyncValidationError",
]
