"""Build directory indexing.

Walks a build tree, drops excluded paths, and hashes every remaining
regular file into a canonical FileIndex. The walk is sequential; hashing
fans out over a thread pool (hashlib releases the GIL on large buffers).
"""

import logging
import mimetypes
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Union

from .constants import DEFAULT_CONTENT_TYPE, HASH_CHUNK_SIZE
from .core import FileIndex, FileRecord
from .errors import IoError
from .hashing import compute_file_digest
from .ignore import ExcludeSpec

logger = logging.getLogger(__name__)


class _Candidate(NamedTuple):
    path: Path
    relpath: str
    size: int


def guess_content_type(path: Union[str, Path]) -> str:
    """MIME type from the file extension, octet-stream when unknown."""
    content_type, _ = mimetypes.guess_type(str(path), strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def collect_files(root: Path, exclude: ExcludeSpec) -> List[_Candidate]:
    """Enumerate regular files under root that are not excluded.

    Directories are traversed, not recorded. Symlinked files are read through
    their target; symlinked directories are not descended into.

    Raises:
        IoError: If any directory cannot be listed or stat'ed, or a name
            is not valid UTF-8
    """
    candidates: List[_Candidate] = []
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            raise IoError(f"Cannot read directory {current}: {e}", str(current)) from e

        for entry in entries:
            path = Path(entry.path)
            relpath = path.relative_to(root).as_posix()
            # Undecodable names surface as lone surrogates; no object key can carry them
            try:
                relpath.encode("utf-8")
            except UnicodeEncodeError as e:
                raise IoError(f"Invalid path encoding: {relpath!r}", relpath) from e
            try:
                if entry.is_dir(follow_symlinks=False):
                    if exclude.should_traverse(relpath):
                        stack.append(path)
                    continue
                if not entry.is_file():
                    continue
                if exclude.is_excluded(relpath):
                    continue
                size = entry.stat().st_size
            except OSError as e:
                raise IoError(f"Cannot stat {relpath}: {e}", relpath) from e
            candidates.append(_Candidate(path, relpath, size))
    return candidates


def _hash_candidate(candidate: _Candidate, chunk_size: int) -> FileRecord:
    """Hash one file and check it against its stat size."""
    try:
        digest, read = compute_file_digest(candidate.path, chunk_size)
    except OSError as e:
        raise IoError(f"Cannot read {candidate.relpath}: {e}", candidate.relpath) from e

    if read != candidate.size:
        raise IoError(
            f"Size of {candidate.relpath} changed while indexing "
            f"(stat reported {candidate.size} bytes, read {read})",
            candidate.relpath,
        )

    return FileRecord(
        path=candidate.relpath,
        size=candidate.size,
        hash=digest,
        content_type=guess_content_type(candidate.path),
    )


def build_index(
    root: Union[str, Path],
    exclude_patterns: Iterable[str] = (),
    max_workers: Optional[int] = None,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> FileIndex:
    """Compute the canonical content index of a build directory.

    Args:
        root: Build directory
        exclude_patterns: Glob-style patterns matched against relative paths
        max_workers: Hashing threads (defaults to available CPUs)
        chunk_size: Read size used while hashing

    Returns:
        FileIndex sorted by path

    Raises:
        PatternError: If an exclude pattern is malformed (before any I/O)
        IoError: If the root or any file cannot be read
    """
    exclude = ExcludeSpec(exclude_patterns)

    root = Path(root)
    if not root.is_dir():
        raise IoError(f"Build directory not found or not a directory: {root}", str(root))

    candidates = collect_files(root, exclude)
    logger.info("Hashing %d files under %s", len(candidates), root)

    workers = max_workers or os.cpu_count() or 1
    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures = [executor.submit(_hash_candidate, c, chunk_size) for c in candidates]
        records = [future.result() for future in futures]
    except BaseException:
        executor.shutdown(wait=True, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    return FileIndex(files=records)
