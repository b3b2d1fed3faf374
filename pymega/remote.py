"""Remote store protocol and the directory-backed reference store."""

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Protocol

from .exceptions import (
    MegaExistsError,
    MegaNotFoundError,
    MegaRemoteError,
    MegaTransferError,
)
from .models import NodeType, RemoteNode
from .utils import DEFAULT_COPY_CHUNK_SIZE, ROOT_PATH, normalize_remote_path

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
"""Transfer progress callback: function(bytes_done, total_bytes)"""


class RemoteStore(Protocol):
    """Operations the sync engine needs from a remote store.

    Mutating calls raise :class:`MegaRemoteError` (or a subclass) on failure.
    """

    def stat_node(self, path: str) -> Optional[RemoteNode]:
        """Return the node at path, or None if there is none."""
        ...

    def list_children(self, path: str) -> list[RemoteNode]:
        """Return the direct children of the container at path."""
        ...

    def make_directory(self, path: str) -> RemoteNode:
        """Create a folder at path."""
        ...

    def remove(self, path: str) -> None:
        """Remove the node at path, including everything below it."""
        ...

    def put_file(
        self,
        remote_path: str,
        local_path: Path,
        local_ts: Optional[int] = None,
        xattrs: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RemoteNode:
        """Upload a whole local file to remote_path."""
        ...

    def get_file(
        self,
        local_path: Path,
        remote_path: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Download the file at remote_path to a new local file."""
        ...

    def is_container(self, node: RemoteNode) -> bool:
        """True if node can hold children."""
        ...

    def save(self) -> None:
        """Persist the cached directory listing of the session."""
        ...


def _copy_stream(
    src,
    dst,
    total: int,
    progress_callback: Optional[ProgressCallback],
    chunk_size: int = DEFAULT_COPY_CHUNK_SIZE,
) -> int:
    """Copy a binary stream in chunks, reporting progress."""
    copied = 0
    if progress_callback:
        progress_callback(0, total)
    while True:
        chunk = src.read(chunk_size)
        if not chunk:
            break
        dst.write(chunk)
        copied += len(chunk)
        if progress_callback:
            progress_callback(copied, total)
    return copied


class DirectoryRemoteStore:
    """Remote store kept in a local directory.

    Nodes form an in-memory tree rooted at ``/Root``. File contents are
    stored as blobs named by node handle under ``<path>/blobs``, and the
    tree itself is the session's cached listing, written to
    ``<path>/session.json`` by :meth:`save` and loaded again on open.

    Example::

        store = DirectoryRemoteStore(Path("/tmp/store"))
        store.make_directory("/Root/docs")
        store.put_file("/Root/docs/a.txt", Path("a.txt"))
        store.save()
    """

    SESSION_FILE_NAME = "session.json"
    BLOBS_DIR_NAME = "blobs"

    def __init__(
        self,
        path: Path,
        clock: Callable[[], float] = time.time,
        chunk_size: int = DEFAULT_COPY_CHUNK_SIZE,
    ):
        """Open (or create) a store.

        Args:
            path: Directory holding the store
            clock: Function returning the current time, used for upload
                timestamps
            chunk_size: Buffer size for copying file contents
        """
        self.path = Path(path)
        self.clock = clock
        self.chunk_size = chunk_size
        self._nodes: dict[str, RemoteNode] = {}
        self._root_handle = ""
        self._children: dict[str, dict[str, RemoteNode]] = {}

        try:
            self.blobs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MegaRemoteError(f"Can't open store at {self.path}: {e}") from e

        if self.session_file.exists():
            self._load()
        else:
            root = RemoteNode(
                handle=uuid.uuid4().hex,
                name=ROOT_PATH.lstrip("/"),
                type=NodeType.ROOT,
                timestamp=int(self.clock()),
            )
            self._add(root)
        logger.debug(f"Opened store {self.path} with {len(self._nodes)} node(s)")

    @property
    def session_file(self) -> Path:
        return self.path / self.SESSION_FILE_NAME

    @property
    def blobs_dir(self) -> Path:
        return self.path / self.BLOBS_DIR_NAME

    @property
    def root(self) -> RemoteNode:
        """The top-level container."""
        return self._nodes[self._root_handle]

    # ------------------------------------------------------------------
    # Session cache
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            with open(self.session_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise MegaRemoteError(
                f"Failed to load session cache {self.session_file}: {e}"
            ) from e

        parents: dict[str, Optional[str]] = {}
        for item in data.get("nodes", []):
            node = RemoteNode.from_dict(item)
            self._nodes[node.handle] = node
            self._children.setdefault(node.handle, {})
            parents[node.handle] = item.get("parent")

        for handle, parent_handle in parents.items():
            if parent_handle is None:
                self._root_handle = handle
                continue
            parent = self._nodes.get(parent_handle)
            if parent is None:
                logger.warning(f"Dropping orphaned node {handle} from session cache")
                del self._nodes[handle]
                continue
            node = self._nodes[handle]
            node.parent = parent
            self._children[parent.handle][node.name] = node

        if not self._root_handle:
            raise MegaRemoteError(f"Session cache has no root: {self.session_file}")

    def save(self) -> None:
        """Write the node tree to the session file."""
        data = {
            "version": 1,
            "saved_at": int(self.clock()),
            "nodes": [node.to_dict() for node in self._iter_tree(self.root)],
        }
        tmp_file = self.session_file.with_suffix(".tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_file, self.session_file)
        except OSError as e:
            raise MegaRemoteError(f"Failed to save session cache: {e}") from e
        logger.debug(f"Saved {len(data['nodes'])} node(s) to {self.session_file}")

    def _iter_tree(self, node: RemoteNode):
        yield node
        for child in self._children.get(node.handle, {}).values():
            yield from self._iter_tree(child)

    # ------------------------------------------------------------------
    # Tree bookkeeping
    # ------------------------------------------------------------------

    def _add(self, node: RemoteNode) -> None:
        self._nodes[node.handle] = node
        if node.parent is None:
            self._root_handle = node.handle
        self._children[node.handle] = {}
        if node.parent is not None:
            self._children[node.parent.handle][node.name] = node

    def _blob_path(self, node: RemoteNode) -> Path:
        return self.blobs_dir / node.handle

    def _resolve_parent(self, path: str) -> tuple[RemoteNode, str]:
        """Return the container that should hold path, and the child name."""
        path = normalize_remote_path(path)
        parent_path, _, name = path.rpartition("/")
        if not name:
            raise MegaRemoteError("Invalid remote path", path)
        parent = self.stat_node(parent_path or "/")
        if parent is None:
            raise MegaNotFoundError(f"Parent folder not found: {path}", path)
        if not parent.is_container:
            raise MegaRemoteError(f"Parent is not a folder: {path}", path)
        if name in self._children[parent.handle]:
            raise MegaExistsError(f"File already exists: {path}", path)
        return parent, name

    # ------------------------------------------------------------------
    # RemoteStore protocol
    # ------------------------------------------------------------------

    def stat_node(self, path: str) -> Optional[RemoteNode]:
        parts = [p for p in normalize_remote_path(path).split("/") if p]
        root = self.root
        if not parts or parts[0] != root.name:
            return None
        node = root
        for part in parts[1:]:
            child = self._children[node.handle].get(part)
            if child is None:
                return None
            node = child
        return node

    def list_children(self, path: str) -> list[RemoteNode]:
        node = self.stat_node(path)
        if node is None:
            raise MegaNotFoundError(f"Remote path not found: {path}", path)
        if not node.is_container:
            raise MegaRemoteError(f"Not a folder: {path}", path)
        return list(self._children[node.handle].values())

    def is_container(self, node: RemoteNode) -> bool:
        return node.is_container

    def make_directory(self, path: str) -> RemoteNode:
        parent, name = self._resolve_parent(path)
        node = RemoteNode(
            handle=uuid.uuid4().hex,
            name=name,
            type=NodeType.FOLDER,
            timestamp=int(self.clock()),
            parent=parent,
        )
        self._add(node)
        return node

    def remove(self, path: str) -> None:
        node = self.stat_node(path)
        if node is None:
            raise MegaNotFoundError(f"Remote path not found: {path}", path)
        if node.parent is None:
            raise MegaRemoteError("Cannot remove the root folder", path)

        # blobs go first; the tree is only changed once they are all gone
        subtree = list(self._iter_tree(node))
        for item in subtree:
            if item.type == NodeType.FILE:
                try:
                    self._blob_path(item).unlink(missing_ok=True)
                except OSError as e:
                    raise MegaRemoteError(f"Can't remove {item.path}: {e}", path) from e

        del self._children[node.parent.handle][node.name]
        for item in subtree:
            self._nodes.pop(item.handle, None)
            self._children.pop(item.handle, None)

    def put_file(
        self,
        remote_path: str,
        local_path: Path,
        local_ts: Optional[int] = None,
        xattrs: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> RemoteNode:
        parent, name = self._resolve_parent(remote_path)
        node = RemoteNode(
            handle=uuid.uuid4().hex,
            name=name,
            type=NodeType.FILE,
            local_ts=local_ts,
            xattrs=xattrs,
            parent=parent,
        )
        blob = self._blob_path(node)
        try:
            total = os.path.getsize(local_path)
            with open(local_path, "rb") as src, open(blob, "wb") as dst:
                node.size = _copy_stream(
                    src, dst, total, progress_callback, self.chunk_size
                )
        except OSError as e:
            blob.unlink(missing_ok=True)
            raise MegaTransferError(
                f"Upload failed for {remote_path}: {e}", remote_path
            ) from e

        node.timestamp = int(self.clock())
        self._add(node)
        return node

    def get_file(
        self,
        local_path: Path,
        remote_path: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        node = self.stat_node(remote_path)
        if node is None:
            raise MegaNotFoundError(f"Remote file not found: {remote_path}", remote_path)
        if node.type != NodeType.FILE:
            raise MegaTransferError(f"Not a file: {remote_path}", remote_path)

        try:
            src = open(self._blob_path(node), "rb")
        except OSError as e:
            raise MegaTransferError(
                f"Download failed for {remote_path}: {e}", remote_path
            ) from e

        with src:
            try:
                # "xb" refuses to overwrite an existing local file
                dst = open(local_path, "xb")
            except FileExistsError as e:
                raise MegaTransferError(
                    f"Local file already exists: {local_path}", remote_path
                ) from e
            except OSError as e:
                raise MegaTransferError(
                    f"Download failed for {remote_path}: {e}", remote_path
                ) from e

            try:
                with dst:
                    _copy_stream(src, dst, node.size, progress_callback, self.chunk_size)
            except OSError as e:
                Path(local_path).unlink(missing_ok=True)
                raise MegaTransferError(
                    f"Download failed for {remote_path}: {e}", remote_path
                ) from e
