"""Sync run options."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from ..exceptions import SyncValidationError
from ..utils import normalize_remote_path


class SyncDirection(str, Enum):
    """Direction of a sync run."""

    UPLOAD = "upload"
    """Make the remote tree match the local tree"""

    DOWNLOAD = "download"
    """Make the local tree match the remote tree"""

    @classmethod
    def from_string(cls, value: str) -> "SyncDirection":
        """Parse a direction from a string (case-insensitive, "up"/"down" ok).

        Raises:
            ValueError: If the value names no direction
        """
        normalized = value.strip().lower()
        aliases = {"up": cls.UPLOAD, "down": cls.DOWNLOAD, "dl": cls.DOWNLOAD}
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Invalid sync direction: {value}") from None


@dataclass(frozen=True)
class SyncOptions:
    """Configuration for one sync run.

    ``delete_only`` implies ``delete``; the flag is normalized on creation.
    Call :meth:`validate` before starting a run.

    Examples:
        >>> options = SyncOptions(remote="/Root/docs", local=Path("docs"))
        >>> options.direction
        <SyncDirection.UPLOAD: 'upload'>
        >>> SyncOptions("/Root/x", Path("x"), delete_only=True).delete
        True
    """

    remote: str
    """Remote directory path"""

    local: Path
    """Local directory path"""

    direction: SyncDirection = SyncDirection.UPLOAD
    """Which side is made to match the other"""

    delete: bool = False
    """Remove leftovers on the target side"""

    delete_only: bool = False
    """Only remove leftovers; do not transfer or create anything"""

    always: bool = False
    """Transfer files even if size and timestamp match"""

    force: bool = False
    """Allow replacing a directory with a file"""

    dry_run: bool = False
    """Print decisions without changing anything"""

    ignore_errors: bool = False
    """Continue with the next item after a recoverable error"""

    no_progress: bool = False
    """Disable the progress display"""

    def __post_init__(self) -> None:
        object.__setattr__(self, "remote", normalize_remote_path(self.remote))
        if not isinstance(self.local, Path):
            object.__setattr__(self, "local", Path(self.local))
        if not isinstance(self.direction, SyncDirection):
            object.__setattr__(
                self, "direction", SyncDirection.from_string(str(self.direction))
            )
        if self.delete_only:
            object.__setattr__(self, "delete", True)

    @property
    def is_download(self) -> bool:
        return self.direction == SyncDirection.DOWNLOAD

    def validate(self) -> None:
        """Check option combinations.

        Raises:
            SyncValidationError: If options conflict
        """
        if self.delete_only and self.always:
            raise SyncValidationError(
                "Options --delete-only and --always are mutually exclusive"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncOptions":
        """Create options from a dictionary with camelCase keys.

        Args:
            data: Dictionary such as ``{"remote": "/Root/x", "local": "x",
                "direction": "download", "deleteOnly": true}``

        Returns:
            SyncOptions instance

        Raises:
            ValueError: If "remote" or "local" is missing
        """
        if "remote" not in data or "local" not in data:
            raise ValueError("Sync options require 'remote' and 'local'")
        return cls(
            remote=data["remote"],
            local=Path(data["local"]),
            direction=SyncDirection.from_string(data.get("direction", "upload")),
            delete=bool(data.get("delete", False)),
            delete_only=bool(data.get("deleteOnly", False)),
            always=bool(data.get("always", False)),
            force=bool(data.get("force", False)),
            dry_run=bool(data.get("dryRun", False)),
            ignore_errors=bool(data.get("ignoreErrors", False)),
            no_progress=bool(data.get("noProgress", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert options to a dictionary with camelCase keys."""
        return {
            "remote": self.remote,
            "local": str(self.local),
            "direction": self.direction.value,
            "delete": self.delete,
            "deleteOnly": self.delete_only,
            "always": self.always,
            "force": self.force,
            "dryRun": self.dry_run,
            "ignoreErrors": self.ignore_errors,
            "noProgress": self.no_progress,
        }

