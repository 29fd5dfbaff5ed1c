"""Filesystem object storage implementation for testing."""

import hashlib
from pathlib import Path

from ..hashing import hex_to_base64


class ChecksumMismatchError(ValueError):
    """Stored bytes do not match the checksum supplied by the caller."""


class FilesystemObjectStore:
    """
    Local filesystem store for tests and dry runs against a directory.

    Objects live at base_dir/<bucket>/<key>. Like S3, a put whose checksum
    does not match the written bytes is rejected and leaves no object.
    """

    def __init__(self, base_dir: Path, bucket: str):
        """
        Initialize filesystem store.

        Args:
            base_dir: Root directory holding buckets
            bucket: Bucket name (a subdirectory of base_dir)
        """
        self.base_dir = Path(base_dir)
        self.bucket = bucket
        (self.base_dir / bucket).mkdir(parents=True, exist_ok=True)

    def object_path(self, key: str) -> Path:
        return self.base_dir / self.bucket / key

    def put_object(self, key: str, path: Path, checksum: str, content_type: str) -> None:
        """Copy a file into the store after verifying its checksum."""
        dest = self.object_path(key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(f".{dest.name}.part")

        sha256 = hashlib.sha256()
        with open(path, "rb") as src, open(tmp, "wb") as out:
            for chunk in iter(lambda: src.read(1024 * 1024), b""):
                sha256.update(chunk)
                out.write(chunk)

        actual = hex_to_base64(sha256.hexdigest())
        if actual != checksum:
            tmp.unlink(missing_ok=True)
            raise ChecksumMismatchError(
                f"Checksum mismatch for {key}: expected {checksum}, got {actual}"
            )
        tmp.replace(dest)

    def delete_object(self, key: str) -> None:
        """Remove an object if present."""
        self.object_path(key).unlink(missing_ok=True)

    def exists(self, key: str) -> bool:
        return self.object_path(key).exists()

    def keys(self) -> list:
        """All stored keys, sorted."""
        root = self.base_dir / self.bucket
        return sorted(
            p.relative_to(root).as_posix()
            for p in root.rglob("*")
            if p.is_file() and not p.name.endswith(".part")
        )

