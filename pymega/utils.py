"""Utility functions for pymega."""

import posixpath

# =============================================================================
# Constants
# =============================================================================

# Path of the top-level container of a remote store
ROOT_PATH: str = "/Root"

# Buffer size used when copying file contents (1 MB)
DEFAULT_COPY_CHUNK_SIZE: int = 1024 * 1024


# =============================================================================
# Remote path utilities
# =============================================================================


def normalize_remote_path(path: str) -> str:
    """Normalize a remote path to an absolute path without trailing slash.

    Args:
        path: Remote path as given by the user (e.g., "Root/docs/")

    Returns:
        Normalized path (e.g., "/Root/docs")

    Examples:
        >>> normalize_remote_path("/Root/docs/")
        '/Root/docs'
        >>> normalize_remote_path("Root//docs")
        '/Root/docs'
        >>> normalize_remote_path("/")
        '/'
    """
    normalized = posixpath.normpath("/" + path.strip())
    # normpath keeps a leading double slash, which is never meaningful here
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def join_remote_path(parent: str, name: str) -> str:
    """Join a remote directory path and a child name.

    Examples:
        >>> join_remote_path("/Root", "docs")
        '/Root/docs'
        >>> join_remote_path("/", "Root")
        '/Root'
    """
    if parent.endswith("/"):
        return parent + name
    return f"{parent}/{name}"


# =============================================================================
# Formatting utilities
# =============================================================================


def format_size(size_bytes: float) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{int(size_bytes)} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as ``H:MM:SS``.

    Examples:
        >>> format_duration(5)
        '0:00:05'
        >>> format_duration(3725)
        '1:02:05'
    """
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}"
