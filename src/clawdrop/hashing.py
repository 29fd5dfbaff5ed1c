"""Hashing utilities for the content-addressed file index.

Digests are plain lowercase hex SHA-256 (no algorithm prefix) because that
is the format fileindex.json has always carried. The object store wants the
same digest base64-encoded for its write-time integrity check.
"""

import base64
import hashlib
from pathlib import Path
from typing import Tuple

from .constants import HASH_CHUNK_SIZE


def compute_file_digest(path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> Tuple[str, int]:
    """Compute SHA256 hash of file contents.

    The file is streamed in fixed-size chunks so memory stays bounded on
    large build assets.

    Args:
        path: Path to file to hash
        chunk_size: Read size in bytes

    Returns:
        (hex digest, number of bytes read)
    """
    sha256 = hashlib.sha256()
    read = 0
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha256.update(chunk)
            read += len(chunk)
    return sha256.hexdigest(), read


def hex_to_base64(hex_digest: str) -> str:
    """Convert a hex digest to the base64 form used by S3 checksum headers.

    Example:
        >>> hex_to_base64(hashlib.sha256(b"").hexdigest())
        '47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU='
    """
    return base64.b64encode(bytes.fromhex(hex_digest)).decode("ascii")


__all__ = [
    "compute_file_digest",
    "hex_to_base64",
]
