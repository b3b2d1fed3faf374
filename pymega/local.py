"""Local filesystem access used by the sync engine."""

import errno
import logging
import os
import stat as stat_module
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .exceptions import LocalStoreError, XattrUnsupportedError
from .models import ExtendedAttribute

logger = logging.getLogger(__name__)

USER_XATTR_PREFIX = "user."

_XATTR_UNSUPPORTED_ERRNOS = {
    errno.ENOTSUP,
    getattr(errno, "EOPNOTSUPP", errno.ENOTSUP),
}


class LocalType(str, Enum):
    """Types of local filesystem entries."""

    DIRECTORY = "directory"
    REGULAR_FILE = "regular_file"
    OTHER = "other"
    """Symlinks, sockets, devices, fifos"""

    ABSENT = "absent"


@dataclass
class LocalEntry:
    """A local filesystem entry with metadata."""

    name: str
    """Entry name (last path component)"""

    type: LocalType
    """Entry type"""

    size: int = 0
    """Size in bytes"""

    mtime: int = 0
    """Last modification time (whole seconds since epoch)"""


def _type_from_mode(mode: int) -> LocalType:
    if stat_module.S_ISDIR(mode):
        return LocalType.DIRECTORY
    if stat_module.S_ISREG(mode):
        return LocalType.REGULAR_FILE
    return LocalType.OTHER


class LocalStore:
    """Thin wrapper around local filesystem calls.

    All methods raise :class:`LocalStoreError` instead of ``OSError`` so the
    engine can treat local and remote failures the same way. Entry types
    are determined without following symlinks.
    """

    def stat(self, path: Path) -> LocalEntry:
        """Stat a path.

        Args:
            path: Path to stat

        Returns:
            LocalEntry with type, size and mtime

        Raises:
            LocalStoreError: If the path cannot be stat'ed
        """
        try:
            st = os.lstat(path)
        except OSError as e:
            raise LocalStoreError(
                f"Unable to stat {path}: {e.strerror}", str(path), e.errno or 0
            ) from e
        return LocalEntry(
            name=path.name,
            type=_type_from_mode(st.st_mode),
            size=st.st_size,
            mtime=int(st.st_mtime),
        )

    def type_of(self, path: Path) -> LocalType:
        """Get the type of a path, or ABSENT if it does not exist."""
        try:
            st = os.lstat(path)
        except (FileNotFoundError, NotADirectoryError):
            return LocalType.ABSENT
        except OSError as e:
            raise LocalStoreError(
                f"Unable to stat {path}: {e.strerror}", str(path), e.errno or 0
            ) from e
        return _type_from_mode(st.st_mode)

    def exists(self, path: Path) -> bool:
        """Check whether anything exists at path (dangling symlinks included)."""
        return os.path.lexists(path)

    def list_children(self, path: Path) -> list[LocalEntry]:
        """List the direct children of a directory.

        Raises:
            LocalStoreError: If the directory cannot be read
        """
        entries: list[LocalEntry] = []
        try:
            with os.scandir(path) as it:
                for dir_entry in it:
                    try:
                        st = dir_entry.stat(follow_symlinks=False)
                    except OSError as e:
                        logger.debug(f"Unable to stat {dir_entry.path}: {e}")
                        entries.append(LocalEntry(dir_entry.name, LocalType.OTHER))
                        continue
                    entries.append(
                        LocalEntry(
                            name=dir_entry.name,
                            type=_type_from_mode(st.st_mode),
                            size=st.st_size,
                            mtime=int(st.st_mtime),
                        )
                    )
        except OSError as e:
            raise LocalStoreError(
                f"Can't read local directory {path}: {e.strerror}",
                str(path),
                e.errno or 0,
            ) from e
        return entries

    def make_directory(self, path: Path) -> None:
        """Create a single directory (parent must exist)."""
        try:
            os.mkdir(path)
        except OSError as e:
            raise LocalStoreError(
                f"Can't create local directory {path}: {e.strerror}",
                str(path),
                e.errno or 0,
            ) from e

    def delete(self, path: Path) -> None:
        """Delete a file or an empty directory (non-recursive)."""
        try:
            if self.type_of(path) == LocalType.DIRECTORY:
                os.rmdir(path)
            else:
                os.unlink(path)
        except OSError as e:
            raise LocalStoreError(
                f"Can't delete {path}: {e.strerror}", str(path), e.errno or 0
            ) from e

    def set_times(self, path: Path, atime: int, mtime: int) -> None:
        """Set access and modification time of a path."""
        try:
            os.utime(path, (atime, mtime))
        except OSError as e:
            raise LocalStoreError(
                f"Failed to set file times on {path}: {e.strerror}",
                str(path),
                e.errno or 0,
            ) from e

    def set_xattr(self, path: Path, name: str, value: bytes) -> None:
        """Set an extended attribute.

        Raises:
            XattrUnsupportedError: If the filesystem or platform has no xattrs
            LocalStoreError: For any other failure
        """
        if not hasattr(os, "setxattr"):
            raise XattrUnsupportedError(
                "Extended attributes are not supported on this platform", str(path)
            )
        try:
            os.setxattr(path, name, value)
        except OSError as e:
            if e.errno in _XATTR_UNSUPPORTED_ERRNOS:
                raise XattrUnsupportedError(
                    f"Extended attributes not supported for {path}",
                    str(path),
                    e.errno or 0,
                ) from e
            raise LocalStoreError(
                f"Failed to set extended attribute {name} on {path}: {e.strerror}",
                str(path),
                e.errno or 0,
            ) from e

    def list_xattrs(self, path: Path) -> list[ExtendedAttribute]:
        """Read the user extended attributes of a path.

        Only the ``user.`` namespace is read; system attributes such as
        security labels cannot be restored without privileges.
        Returns an empty list where extended attributes are unsupported.
        """
        if not hasattr(os, "listxattr"):
            return []
        try:
            names = [n for n in os.listxattr(path) if n.startswith(USER_XATTR_PREFIX)]
            return [ExtendedAttribute(n, os.getxattr(path, n)) for n in names]
        except OSError as e:
            if e.errno in _XATTR_UNSUPPORTED_ERRNOS:
                return []
            raise LocalStoreError(
                f"Failed to read extended attributes of {path}: {e.strerror}",
                str(path),
                e.errno or 0,
            ) from e
