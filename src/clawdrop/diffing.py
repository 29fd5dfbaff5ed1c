"""Diff computation logic - stable module for computing differences."""

from typing import Optional

from .core import DiffResult, FileIndex, ReservedNames


def compute_diff(
    local: FileIndex,
    remote: FileIndex,
    reserved: Optional[ReservedNames] = None,
) -> DiffResult:
    """
    Compute differences between the local build and the published one.

    Args:
        local: Freshly computed index of the build directory.
        remote: Last published index (empty on first publish).
        reserved: Protocol-owned artifacts that must survive even though
            they never appear locally.

    Returns:
        DiffResult with added, modified and deleted records, each in the
        order of its source index.

    Note:
        Local always wins. Modified records are the local versions; deleted
        records are the remote ones.
    """
    reserved = reserved or ReservedNames()
    remote_by_path = remote.by_path()
    local_by_path = local.by_path()

    added = []
    modified = []
    for record in local.files:
        remote_record = remote_by_path.get(record.path)
        if remote_record is None:
            added.append(record)
        elif remote_record.hash != record.hash:
            modified.append(record)

    deleted = [
        record for record in remote.files
        if record.path not in local_by_path and not reserved.is_reserved(record.path)
    ]

    return DiffResult(added=added, modified=modified, deleted=deleted)
