"""Tests for the sync engine."""

import os
from pathlib import Path
from unittest.mock import Mock

import pytest

from pymega.exceptions import SyncValidationError
from pymega.local import LocalStore
from pymega.output import OutputFormatter
from pymega.remote import DirectoryRemoteStore
from pymega.sync import SyncDirection, SyncEngine, SyncOptions

T1 = 1700000000
T2 = 1700000500


def decisions(output: Mock) -> set:
    """All (code, path) decision lines printed on a mock output."""
    return {call.args for call in output.decision.call_args_list}


def remote_names(store: DirectoryRemoteStore, path: str) -> set:
    return {node.name for node in store.list_children(path)}


def snapshot_remote(store: DirectoryRemoteStore) -> list:
    """Paths, types and sizes of every node plus the stored blobs."""
    nodes = sorted(
        (node.path, node.type.value, node.size)
        for node in store._iter_tree(store.root)
    )
    blobs = sorted(p.name for p in store.blobs_dir.iterdir())
    return [nodes, blobs]


def snapshot_local(root: Path) -> list:
    """Relative paths, sizes and mtimes below root."""
    result = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            st = path.lstat()
            result.append((str(path.relative_to(root)), st.st_size, int(st.st_mtime)))
    return sorted(result)


class TestSyncEngineUpload:
    """Upload direction: the remote tree is made to match the local tree."""

    @pytest.fixture
    def mock_output(self):
        """Create a mock output formatter."""
        output = Mock(spec=OutputFormatter)
        output.quiet = True
        return output

    @pytest.fixture
    def store(self, tmp_path):
        """Create a remote store with an empty /Root/r folder."""
        store = DirectoryRemoteStore(tmp_path / "store", clock=lambda: T2 + 1000)
        store.make_directory("/Root/r")
        return store

    @pytest.fixture
    def local_tree(self, tmp_path):
        """Create A/x.txt (10 bytes) and A/B/y.txt (5 bytes)."""
        root = tmp_path / "A"
        (root / "B").mkdir(parents=True)
        (root / "x.txt").write_bytes(b"0123456789")
        (root / "B" / "y.txt").write_bytes(b"abcde")
        os.utime(root / "x.txt", (T1, T1))
        os.utime(root / "B" / "y.txt", (T2, T2))
        return root

    def test_upload_into_empty_folder(self, store, local_tree, mock_output):
        """Uploading A into an empty folder creates B and both files."""
        engine = SyncEngine(store, output=mock_output)

        report = engine.run(SyncOptions("/Root/r", local_tree))

        assert report.success is True
        assert report.stats.files_processed == 2
        assert report.stats.folders_processed == 2
        assert report.stats.bytes_transferred == 15
        assert report.stats.files_with_errors == 0
        assert decisions(mock_output) == {
            ("D", "/Root/r/B"),
            ("F", "/Root/r/x.txt"),
            ("F", "/Root/r/B/y.txt"),
        }
        assert store.stat_node("/Root/r/x.txt").size == 10
        assert store.stat_node("/Root/r/B/y.txt").size == 5

    def test_upload_records_local_mtime(self, store, local_tree, mock_output):
        """The local mtime is kept as the node's original timestamp."""
        SyncEngine(store, output=mock_output).run(SyncOptions("/Root/r", local_tree))

        node = store.stat_node("/Root/r/x.txt")
        assert node.local_ts == T1
        assert node.effective_timestamp == T1

    def test_second_upload_is_noop(self, store, local_tree, mock_output):
        """Running the same upload twice transfers nothing the second time."""
        engine = SyncEngine(store, output=mock_output)
        engine.run(SyncOptions("/Root/r", local_tree, delete=True))

        second_output = Mock(spec=OutputFormatter)
        second_output.quiet = True
        report = SyncEngine(store, output=second_output).run(
            SyncOptions("/Root/r", local_tree, delete=True)
        )

        assert report.success is True
        assert report.stats.bytes_transferred == 0
        assert report.stats.elements_deleted == 0
        assert report.stats.files_processed == 2
        assert decisions(second_output) == set()

    def test_changed_file_is_replaced(self, store, local_tree, mock_output):
        """A modified local file replaces the remote copy."""
        engine = SyncEngine(store, output=mock_output)
        engine.run(SyncOptions("/Root/r", local_tree))

        (local_tree / "x.txt").write_bytes(b"0123456789abc")
        mock_output.reset_mock()
        report = engine.run(SyncOptions("/Root/r", local_tree))

        assert decisions(mock_output) == {
            ("R", "/Root/r/x.txt"),
            ("F", "/Root/r/x.txt"),
        }
        assert report.stats.bytes_transferred == 13
        assert store.stat_node("/Root/r/x.txt").size == 13

    def test_always_retransfers_identical_files(
        self, store, local_tree, mock_output
    ):
        """--always uploads files that appear identical."""
        engine = SyncEngine(store, output=mock_output)
        engine.run(SyncOptions("/Root/r", local_tree))

        report = engine.run(SyncOptions("/Root/r", local_tree, always=True))

        assert report.stats.bytes_transferred == 15

    def test_empty_files_are_not_uploaded(self, store, local_tree, mock_output):
        """Files of size zero are skipped without error."""
        (local_tree / "empty.txt").write_bytes(b"")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree)
        )

        assert report.success is True
        assert report.stats.files_processed == 3
        assert store.stat_node("/Root/r/empty.txt") is None

    def test_delete_removes_remote_leftovers(self, store, local_tree, mock_output):
        """Names present only remotely are removed with --delete."""
        store.make_directory("/Root/r/old")
        store.put_file("/Root/r/old/z.txt", local_tree / "x.txt")
        store.put_file("/Root/r/stale.txt", local_tree / "x.txt")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, delete=True)
        )

        assert report.success is True
        assert report.stats.elements_deleted == 2
        assert remote_names(store, "/Root/r") == {"x.txt", "B"}
        assert remote_names(store, "/Root/r/B") == {"y.txt"}
        assert ("R", "/Root/r/old") in decisions(mock_output)
        assert ("R", "/Root/r/stale.txt") in decisions(mock_output)

    def test_without_delete_leftovers_stay(self, store, local_tree, mock_output):
        """Remote-only names survive a run without --delete."""
        store.put_file("/Root/r/stale.txt", local_tree / "x.txt")

        SyncEngine(store, output=mock_output).run(SyncOptions("/Root/r", local_tree))

        assert "stale.txt" in remote_names(store, "/Root/r")

    def test_delete_only_transfers_nothing(self, store, local_tree, mock_output):
        """--delete-only removes leftovers but creates and uploads nothing."""
        store.put_file("/Root/r/stale.txt", local_tree / "x.txt")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, delete_only=True)
        )

        assert report.success is True
        assert report.stats.bytes_transferred == 0
        assert report.stats.elements_deleted == 1
        assert remote_names(store, "/Root/r") == set()
        assert decisions(mock_output) == {("R", "/Root/r/stale.txt")}

    def test_remote_file_replaced_by_directory(self, store, local_tree, mock_output):
        """A remote file where a directory belongs is removed and recreated."""
        store.put_file("/Root/r/B", local_tree / "x.txt")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree)
        )

        assert report.success is True
        assert store.stat_node("/Root/r/B").is_container
        assert store.stat_node("/Root/r/B/y.txt").size == 5
        assert {("R", "/Root/r/B"), ("D", "/Root/r/B")} <= decisions(mock_output)

    def test_folder_conflict_without_force(self, store, local_tree, mock_output):
        """A folder in the way of a file fails only that file."""
        store.make_directory("/Root/r/x.txt")
        store.make_directory("/Root/r/x.txt/keep")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree)
        )

        assert report.success is False
        assert report.stats.files_with_errors == 1
        assert store.stat_node("/Root/r/x.txt/keep") is not None
        message = mock_output.error.call_args.args[0]
        assert "Target is a directory, cannot overwrite (use --force)" in message

    def test_folder_conflict_with_force(self, store, local_tree, mock_output):
        """--force removes the folder and uploads the file."""
        store.make_directory("/Root/r/x.txt")
        store.make_directory("/Root/r/x.txt/keep")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, force=True)
        )

        assert report.success is True
        node = store.stat_node("/Root/r/x.txt")
        assert node.is_container is False
        assert node.size == 10
        assert store.stat_node("/Root/r/x.txt/keep") is None

    def test_ignore_errors_continues(self, store, local_tree, mock_output):
        """With --ignore-errors the run goes on and still counts the error."""
        store.make_directory("/Root/r/x.txt")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, ignore_errors=True)
        )

        assert report.success is True
        assert report.stats.files_with_errors == 1
        assert store.stat_node("/Root/r/B/y.txt").size == 5

    def test_failed_level_keeps_remote_leftovers(
        self, store, local_tree, mock_output
    ):
        """A failure in a folder stops deletion of that folder's leftovers."""
        store.make_directory("/Root/r/x.txt")
        store.put_file("/Root/r/stale.txt", local_tree / "B" / "y.txt")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, delete=True)
        )

        assert report.success is False
        assert report.stats.elements_deleted == 0
        assert "stale.txt" in remote_names(store, "/Root/r")

    def test_ignore_errors_still_removes_leftovers(
        self, store, local_tree, mock_output
    ):
        store.make_directory("/Root/r/x.txt")
        store.put_file("/Root/r/stale.txt", local_tree / "B" / "y.txt")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, delete=True, ignore_errors=True)
        )

        assert report.success is True
        assert report.stats.files_with_errors == 1
        assert report.stats.elements_deleted == 1
        assert remote_names(store, "/Root/r") == {"B", "x.txt"}

    def test_special_files_are_skipped(self, store, local_tree, mock_output):
        """Symlinks are skipped with a warning and do not fail the run."""
        os.symlink(local_tree / "x.txt", local_tree / "link")

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree)
        )

        assert report.success is True
        assert report.stats.files_with_errors == 0
        assert store.stat_node("/Root/r/link") is None
        warning = mock_output.warning.call_args.args[0]
        assert warning.startswith("Skipping special file")

    def test_session_saved_after_upload(self, store, local_tree, mock_output):
        """The session cache is written after an upload, even with errors."""
        store.make_directory("/Root/r/x.txt")

        SyncEngine(store, output=mock_output).run(SyncOptions("/Root/r", local_tree))

        assert store.session_file.exists()
        reopened = DirectoryRemoteStore(store.path)
        assert reopened.stat_node("/Root/r/x.txt").is_container

    def test_summary_is_printed(self, store, local_tree, mock_output):
        """The summary reports the counters."""
        SyncEngine(store, output=mock_output).run(SyncOptions("/Root/r", local_tree))

        infos = [call.args[0] for call in mock_output.info.call_args_list]
        assert "Files processed: 2" in infos
        assert "Folders processed: 2" in infos
        assert "Files with errors: 0" in infos
        assert not any(line.startswith("Elements deleted") for line in infos)
        assert any(line.startswith("Transferred: 15 B") for line in infos)


class TestSyncEngineDryRun:
    """Dry runs print the same decisions and change nothing."""

    @pytest.fixture
    def mock_output(self):
        output = Mock(spec=OutputFormatter)
        output.quiet = True
        return output

    @pytest.fixture
    def store(self, tmp_path):
        store = DirectoryRemoteStore(tmp_path / "store")
        store.make_directory("/Root/r")
        return store

    @pytest.fixture
    def local_tree(self, tmp_path):
        root = tmp_path / "A"
        (root / "B").mkdir(parents=True)
        (root / "x.txt").write_bytes(b"0123456789")
        (root / "B" / "y.txt").write_bytes(b"abcde")
        return root

    def test_dry_run_upload_changes_nothing(self, store, local_tree, mock_output):
        """A dry-run upload reports transfers but leaves the store untouched."""
        store.put_file("/Root/r/stale.txt", local_tree / "x.txt")
        before = snapshot_remote(store)

        report = SyncEngine(store, output=mock_output).run(
            SyncOptions("/Root/r", local_tree, delete=True, dry_run=True)
        )

        assert snapshot_remote(store) == before
        assert not store.session_file.exists()
        assert decisions(mock_output) == {
            ("D", "/Root/r/B"),
            ("F", "/Root/r/x.txt"),
            ("F", "/Root/r/B/y.txt"),
            ("R", "/Root/r/stale.txt"),
        }
        assert report.stats.bytes_transferred == 15
        assert report.stats.elements_deleted == 1

    def test_dry_run_matches_real_run(self, store, local_tree, mock_output, tmp_path):
        """A real run prints exactly the decisions of the dry run."""
        store.put_file("/Root/r/stale.txt", local_tree / "x.txt")
        engine = SyncEngine(store, output=mock_output)
        engine.run(SyncOptions("/Root/r", local_tree, delete=True, dry_run=True))
        simulated = decisions(mock_output)

        real_output = Mock(spec=OutputFormatter)
        real_output.quiet = True
        SyncEngine(store, output=real_output).run(
            SyncOptions("/Root/r", local_tree, delete=True)
        )

        assert decisions(real_output) == simulated

    def test_dry_run_download_changes_nothing(
        self, store, local_tree, mock_output, tmp_path
    ):
        """A dry-run download creates no local files."""
        SyncEngine(store, output=mock_output).run(SyncOptions("/Root/r", local_tree))
        target = tmp_path / "restored"
        target.mkdir()
        (target / "extra.txt").write_text("extra")
        before = snapshot_local(target)

        output = Mock(spec=OutputFormatter)
        output.quiet = True
        report = SyncEngine(store, output=output).run(
            SyncOptions(
                "/Root/r",
                target,
                direction=SyncDirection.DOWNLOAD,
                delete=True,
                dry_run=True,
            )
        )

        assert snapshot_local(target) == before
        assert report.stats.files_processed == 2
        assert decisions(output) == {
            ("D", str(target / "B")),
            ("F", str(target / "x.txt")),
            ("F", str(target / "B" / "y.txt")),
            ("R", str(target / "extra.txt")),
        }


class TestSyncEngineDownload:
    """Download direction: the local tree is made to match the remote tree."""

    @pytest.fixture
    def mock_output(self):
        output = Mock(spec=OutputFormatter)
        output.quiet = True
        return output

    @pytest.fixture
    def local_tree(self, tmp_path):
        root = tmp_path / "A"
        (root / "B").mkdir(parents=True)
        (root / "x.txt").write_bytes(b"0123456789")
        (root / "B" / "y.txt").write_bytes(b"abcde")
        os.utime(root / "x.txt", (T1, T1))
        os.utime(root / "B" / "y.txt", (T2, T2))
        return root

    @pytest.fixture
    def store(self, tmp_path, local_tree):
        """Create a store holding an upload of local_tree at /Root/r."""
        store = DirectoryRemoteStore(tmp_path / "store")
        store.make_directory("/Root/r")
        output = Mock(spec=OutputFormatter)
        output.quiet = True
        SyncEngine(store, output=output).run(SyncOptions("/Root/r", local_tree))
        return store

    def download(self, store, target, output, **kwargs):
        options = SyncOptions(
            "/Root/r", target, direction=SyncDirection.DOWNLOAD, **kwargs
        )
        return SyncEngine(store, output=output).run(options)

    def test_download_restores_tree(self, store, local_tree, tmp_path, mock_output):
        """Downloading an upload reproduces contents and modification times."""
        target = tmp_path / "restored"

        report = self.download(store, target, mock_output)

        assert report.success is True
        assert report.stats.files_processed == 2
        assert report.stats.folders_processed == 2
        assert report.stats.bytes_transferred == 15
        assert (target / "x.txt").read_bytes() == b"0123456789"
        assert (target / "B" / "y.txt").read_bytes() == b"abcde"
        assert int((target / "x.txt").stat().st_mtime) == T1
        assert int((target / "B" / "y.txt").stat().st_mtime) == T2
        assert ("D", str(target)) in decisions(mock_output)

    def test_second_download_is_noop(self, store, tmp_path, mock_output):
        """A repeated download transfers nothing."""
        target = tmp_path / "restored"
        self.download(store, target, mock_output)

        output = Mock(spec=OutputFormatter)
        output.quiet = True
        report = self.download(store, target, output)

        assert report.stats.bytes_transferred == 0
        assert decisions(output) == set()

    def test_changed_local_file_is_replaced(self, store, tmp_path, mock_output):
        """A local file that differs from the remote one is downloaded again."""
        target = tmp_path / "restored"
        self.download(store, target, mock_output)
        (target / "x.txt").write_bytes(b"changed")

        mock_output.reset_mock()
        report = self.download(store, target, mock_output)

        assert (target / "x.txt").read_bytes() == b"0123456789"
        assert report.stats.bytes_transferred == 10
        assert decisions(mock_output) == {
            ("R", str(target / "x.txt")),
            ("F", str(target / "x.txt")),
        }

    def test_delete_removes_local_leftovers(self, store, tmp_path, mock_output):
        """Local-only entries are deleted with --delete, directories recursively."""
        target = tmp_path / "restored"
        (target / "old" / "deep").mkdir(parents=True)
        (target / "old" / "deep" / "z.txt").write_text("z")
        (target / "stale.txt").write_text("stale")

        report = self.download(store, target, mock_output, delete=True)

        assert report.success is True
        assert report.stats.elements_deleted == 2
        assert sorted(p.name for p in target.iterdir()) == ["B", "x.txt"]

    def test_failed_level_keeps_local_leftovers(self, store, tmp_path, mock_output):
        """A failure in a directory stops deletion of that directory's leftovers."""
        target = tmp_path / "restored"
        (target / "x.txt" / "keep").mkdir(parents=True)
        (target / "stale.txt").write_text("stale")

        report = self.download(store, target, mock_output, delete=True)

        assert report.success is False
        assert report.stats.elements_deleted == 0
        assert (target / "stale.txt").exists()

    def test_ignore_errors_still_removes_local_leftovers(
        self, store, tmp_path, mock_output
    ):
        target = tmp_path / "restored"
        (target / "x.txt" / "keep").mkdir(parents=True)
        (target / "stale.txt").write_text("stale")

        report = self.download(
            store, target, mock_output, delete=True, ignore_errors=True
        )

        assert report.success is True
        assert report.stats.files_with_errors == 1
        assert report.stats.elements_deleted == 1
        assert not (target / "stale.txt").exists()
        assert (target / "x.txt" / "keep").is_dir()

    def test_delete_skips_special_files(self, store, tmp_path, mock_output):
        """Local symlinks are never deleted."""
        target = tmp_path / "restored"
        target.mkdir()
        os.symlink(tmp_path, target / "link")

        report = self.download(store, target, mock_output, delete=True)

        assert report.success is True
        assert (target / "link").is_symlink()
        assert report.stats.elements_deleted == 0
        mock_output.warning.assert_called_with(
            f"Skipping special file {target / 'link'}"
        )

    def test_local_file_replaced_by_directory(self, store, tmp_path, mock_output):
        """A local file where a directory belongs is deleted first."""
        target = tmp_path / "restored"
        target.mkdir()
        (target / "B").write_text("not a directory")

        report = self.download(store, target, mock_output)

        assert report.success is True
        assert (target / "B" / "y.txt").read_bytes() == b"abcde"
        assert {("R", str(target / "B")), ("D", str(target / "B"))} <= decisions(
            mock_output
        )

    def test_directory_conflict_without_force(self, store, tmp_path, mock_output):
        """A local directory in the way of a file fails only that file."""
        target = tmp_path / "restored"
        (target / "x.txt" / "keep").mkdir(parents=True)

        report = self.download(store, target, mock_output)

        assert report.success is False
        assert report.stats.files_with_errors == 1
        assert (target / "x.txt" / "keep").is_dir()

    def test_directory_conflict_with_force(self, store, tmp_path, mock_output):
        """--force deletes the directory recursively and downloads the file."""
        target = tmp_path / "restored"
        (target / "x.txt" / "keep").mkdir(parents=True)
        (target / "x.txt" / "keep" / "f").write_text("f")

        report = self.download(store, target, mock_output, force=True)

        assert report.success is True
        assert (target / "x.txt").read_bytes() == b"0123456789"

    def test_special_file_in_the_way_is_an_error(self, store, tmp_path, mock_output):
        """A symlink where a file belongs is not overwritten."""
        target = tmp_path / "restored"
        target.mkdir()
        os.symlink(tmp_path / "nowhere", target / "x.txt")

        report = self.download(store, target, mock_output, force=True)

        assert report.success is False
        assert report.stats.files_with_errors == 1
        assert (target / "x.txt").is_symlink()

    def test_download_does_not_save_session(self, store, tmp_path, mock_output):
        """Only uploads write the session cache."""
        store.session_file.unlink()

        self.download(store, tmp_path / "restored", mock_output)

        assert not store.session_file.exists()


class TestSyncEngineValidation:
    """Checks done before any traversal."""

    @pytest.fixture
    def mock_output(self):
        output = Mock(spec=OutputFormatter)
        output.quiet = True
        return output

    def test_delete_only_and_always_rejected_before_io(self, tmp_path, mock_output):
        """Conflicting options fail without touching either store."""
        remote = Mock(spec=DirectoryRemoteStore)
        local = Mock(spec=LocalStore)
        engine = SyncEngine(remote, local=local, output=mock_output)

        with pytest.raises(SyncValidationError, match="mutually exclusive"):
            engine.run(
                SyncOptions("/Root/r", tmp_path, delete_only=True, always=True)
            )

        assert remote.method_calls == []
        assert local.method_calls == []

    def test_missing_remote_root(self, tmp_path, mock_output):
        """The remote root must exist."""
        store = DirectoryRemoteStore(tmp_path / "store")
        engine = SyncEngine(store, output=mock_output)

        with pytest.raises(SyncValidationError, match="Remote directory not found"):
            engine.run(SyncOptions("/Root/missing", tmp_path))

    def test_remote_root_must_be_folder(self, tmp_path, mock_output):
        """A remote file cannot be a sync root."""
        store = DirectoryRemoteStore(tmp_path / "store")
        (tmp_path / "f.txt").write_text("data")
        store.put_file("/Root/f.txt", tmp_path / "f.txt")
        engine = SyncEngine(store, output=mock_output)

        with pytest.raises(SyncValidationError, match="must be a folder"):
            engine.run(SyncOptions("/Root/f.txt", tmp_path))

    def test_missing_local_root_for_upload(self, tmp_path, mock_output):
        """Uploads need an existing local directory."""
        store = DirectoryRemoteStore(tmp_path / "store")
        engine = SyncEngine(store, output=mock_output)

        with pytest.raises(SyncValidationError, match="Local directory not found"):
            engine.run(SyncOptions("/Root", tmp_path / "missing"))

    def test_upload_of_store_root(self, tmp_path, mock_output):
        """The top-level container itself can be synced."""
        store = DirectoryRemoteStore(tmp_path / "store")
        local = tmp_path / "data"
        local.mkdir()
        (local / "a.txt").write_text("hello")

        report = SyncEngine(store, output=mock_output).run(SyncOptions("/Root", local))

        assert report.success is True
        assert store.stat_node("/Root/a.txt").size == 5
