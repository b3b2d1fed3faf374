"""Data models for remote store nodes."""

import base64
import binascii
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class NodeType(str, Enum):
    """Types of nodes in the remote tree."""

    FILE = "file"
    """Regular file with contents"""

    FOLDER = "folder"
    """Folder created by the user"""

    ROOT = "root"
    """Top-level container of the store"""


@dataclass
class ExtendedAttribute:
    """A single extended attribute attached to a remote file."""

    name: str
    value: bytes


def parse_xattrs(blob: Optional[str]) -> list[ExtendedAttribute]:
    """Parse an extended attributes blob.

    The blob is a JSON array of ``{"name": ..., "value": <base64>}``
    objects. Order is preserved.

    Args:
        blob: JSON string as stored on the remote node

    Returns:
        List of ExtendedAttribute objects

    Raises:
        ValueError: If the blob is not valid JSON or a value is not base64
    """
    if not blob:
        return []

    try:
        items = json.loads(blob)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid extended attributes blob: {e}") from e

    if not isinstance(items, list):
        raise ValueError("Extended attributes blob must be a list")

    attrs: list[ExtendedAttribute] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError("Extended attribute entry must be an object")
        try:
            value = base64.b64decode(item.get("value") or "", validate=True)
        except (binascii.Error, TypeError) as e:
            raise ValueError(
                f"Invalid base64 value for attribute {item.get('name')!r}"
            ) from e
        attrs.append(ExtendedAttribute(name=item.get("name") or "", value=value))
    return attrs


def encode_xattrs(attrs: list[ExtendedAttribute]) -> Optional[str]:
    """Encode extended attributes into a blob, or None if there are none."""
    if not attrs:
        return None
    return json.dumps(
        [
            {"name": a.name, "value": base64.b64encode(a.value).decode("ascii")}
            for a in attrs
        ]
    )


@dataclass(eq=False)
class RemoteNode:
    """A node in the remote tree (file, folder or root container)."""

    handle: str
    """Unique identifier of the node"""

    name: str
    """Node name (last path component)"""

    type: NodeType
    """Node type"""

    size: int = 0
    """File size in bytes (0 for containers)"""

    timestamp: int = 0
    """Upload timestamp (seconds since epoch)"""

    local_ts: Optional[int] = None
    """Modification time of the local file at upload, if it was preserved"""

    xattrs: Optional[str] = None
    """Extended attributes blob (see parse_xattrs)"""

    parent: Optional["RemoteNode"] = field(default=None, repr=False)
    """Parent node (None for the root container)"""

    @property
    def is_container(self) -> bool:
        """True if the node can have children."""
        return self.type in (NodeType.FOLDER, NodeType.ROOT)

    @property
    def effective_timestamp(self) -> int:
        """Timestamp used for change detection.

        The preserved local timestamp if known, otherwise the upload time.
        """
        if self.local_ts is not None and self.local_ts > 0:
            return self.local_ts
        return self.timestamp

    @property
    def path(self) -> str:
        """Absolute remote path, built by walking parent links."""
        parts = []
        node: Optional[RemoteNode] = self
        while node is not None:
            parts.append(node.name)
            node = node.parent
        return "/" + "/".join(reversed(parts))

    def to_dict(self) -> dict[str, Any]:
        """Convert node to dictionary for JSON serialization."""
        return {
            "handle": self.handle,
            "parent": self.parent.handle if self.parent else None,
            "name": self.name,
            "type": self.type.value,
            "size": self.size,
            "timestamp": self.timestamp,
            "local_ts": self.local_ts,
            "xattrs": self.xattrs,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteNode":
        """Create a node from a dictionary.

        The parent link is not restored here; the caller resolves
        the ``parent`` handle once all nodes are loaded.
        """
        return cls(
            handle=data["handle"],
            name=data["name"],
            type=NodeType(data.get("type", NodeType.FILE.value)),
            size=data.get("size", 0),
            timestamp=data.get("timestamp", 0),
            local_ts=data.get("local_ts"),
            xattrs=data.get("xattrs"),
        )
