"""Tests for diffing logic and edge cases."""

import pytest

from clawdrop.core import DiffResult, FileIndex, FileRecord, ReservedNames
from clawdrop.diffing import compute_diff


def rec(path: str, content: str = "", size: int = 1) -> FileRecord:
    return FileRecord(path=path, size=size, hash=(content or path).encode().hex().ljust(64, "0")[:64],
                      content_type="application/octet-stream")


def index(*records: FileRecord) -> FileIndex:
    return FileIndex(files=list(records))


class TestComputeDiff:
    """Test the local-vs-remote comparison."""

    def test_mixed_changes(self):
        """New, changed and obsolete files; remote manifest.json survives."""
        local = index(rec("game.exe", "v2"), rec("data/a.bin", "a"))
        remote = index(rec("game.exe", "v1"), rec("data/old.bin", "old"), rec("manifest.json", "m"))

        diff = compute_diff(local, remote)

        assert [r.path for r in diff.added] == ["data/a.bin"]
        assert [r.path for r in diff.modified] == ["game.exe"]
        assert [r.path for r in diff.deleted] == ["data/old.bin"]

    def test_unchanged_exe_new_asset(self):
        local = index(rec("game.exe", "h1"), rec("data/a.bin", "h2"))
        remote = index(rec("game.exe", "h1"), rec("data/old.bin", "h3"), rec("manifest.json"))

        diff = compute_diff(local, remote)

        assert [r.path for r in diff.added] == ["data/a.bin"]
        assert diff.modified == []
        assert [r.path for r in diff.deleted] == ["data/old.bin"]

    def test_identical_indexes(self):
        local = index(rec("a"), rec("b"))
        diff = compute_diff(local, index(rec("a"), rec("b")))
        assert diff.is_empty

    def test_first_publish_adds_everything(self):
        local = index(rec("a"), rec("b/c"))
        diff = compute_diff(local, FileIndex.empty())
        assert [r.path for r in diff.added] == ["a", "b/c"]
        assert not diff.modified and not diff.deleted

    def test_empty_local_deletes_everything_but_reserved(self):
        remote = index(rec("a"), rec("manifest.json"), rec("sub/manifest.json"))
        diff = compute_diff(FileIndex.empty(), remote)
        assert [r.path for r in diff.deleted] == ["a"]

    def test_original_archive_is_reserved(self):
        remote = index(rec("a"), rec("32-windows.zip"))
        reserved = ReservedNames(original_archive_name="32-windows.zip")
        diff = compute_diff(FileIndex.empty(), remote, reserved)
        assert [r.path for r in diff.deleted] == ["a"]

    def test_reserved_name_uploaded_when_local(self):
        """Reservation only protects from deletion; a local manifest.json still uploads."""
        local = index(rec("manifest.json", "new"))
        remote = index(rec("manifest.json", "old"))
        diff = compute_diff(local, remote)
        assert [r.path for r in diff.modified] == ["manifest.json"]

    def test_size_change_alone_is_not_modification(self):
        """Only the content hash decides."""
        local = index(rec("a", "same", size=10))
        remote = index(rec("a", "same", size=99))
        assert compute_diff(local, remote).is_empty

    def test_partition_is_complete(self):
        local = index(rec("keep"), rec("change", "new"), rec("add"))
        remote = index(rec("keep"), rec("change", "old"), rec("drop"))
        diff = compute_diff(local, remote)

        unchanged = {"keep"}
        touched = {r.path for r in diff.added} | {r.path for r in diff.modified}
        assert touched | unchanged == set(local.paths)
        assert not touched & unchanged
        assert {r.path for r in diff.deleted} == set(remote.paths) - set(local.paths)

    def test_idempotent_after_publish(self):
        """Once local is published, diffing again yields nothing."""
        local = index(rec("a", "1"), rec("b", "2"))
        remote = index(rec("a", "0"), rec("c"))
        assert not compute_diff(local, remote).is_empty
        assert compute_diff(local, local).is_empty

    def test_modified_records_are_local_versions(self):
        local = index(rec("a", "local"))
        remote = index(rec("a", "remote"))
        diff = compute_diff(local, remote)
        assert diff.modified[0].hash == local.files[0].hash


class TestTransferPlan:
    """Test conversion of a diff into object-store operations."""

    def test_keys_carry_prefixes(self):
        local = index(rec("data/a.bin"))
        remote = index(rec("old.bin"))
        plan = compute_diff(local, remote).to_transfer_plan(
            local, upload_prefix="up/32/", delete_prefix="del/32/"
        )
        assert [p.key for p in plan.uploads] == ["up/32/data/a.bin"]
        assert [p.key for p in plan.deletes] == ["del/32/old.bin"]

    def test_force_uploads_everything(self):
        local = index(rec("a"), rec("b"))
        diff = compute_diff(local, local)
        assert diff.is_empty

        plan = diff.to_transfer_plan(local, "p/", "p/", force=True)
        assert [p.record.path for p in plan.uploads] == ["a", "b"]
        assert plan.deletes == []

    def test_empty_plan(self):
        plan = DiffResult().to_transfer_plan(FileIndex.empty(), "p/", "p/")
        assert plan.is_empty
        assert plan.upload_bytes == 0


class TestFileIndex:
    """Test canonical ordering and validation of the index model."""

    def test_sorted_on_construction(self):
        idx = index(rec("b"), rec("a"), rec("a/b"))
        assert idx.paths == ["a", "a/b", "b"]

    def test_duplicate_paths_rejected(self):
        with pytest.raises(ValueError):
            index(rec("a"), rec("a", "other"))

    def test_parses_camel_case(self):
        text = '{"files": [{"path": "x", "size": 3, "hash": "ab", "contentType": "text/plain"}]}'
        idx = FileIndex.from_json(text)
        assert idx.files[0].content_type == "text/plain"
        assert '"contentType": "text/plain"' in idx.to_json()

    def test_summary(self):
        diff = compute_diff(index(rec("a")), index(rec("b")))
        assert diff.summary() == "New files: 1, Modified files: 0, Obsolete files: 1"
