"""Base protocol for object storage implementations."""

from pathlib import Path
from typing import Protocol


class ObjectStore(Protocol):
    """
    Protocol for scoped object storage.

    An instance is bound to one bucket and one set of credentials, and must
    be safe to share across upload threads.
    """

    bucket: str

    def put_object(self, key: str, path: Path, checksum: str, content_type: str) -> None:
        """
        Upload a local file.

        Args:
            key: Full object key (prefix + relative path)
            path: Local file to read
            checksum: Base64 SHA-256 of the contents, verified by the store
            content_type: MIME type stored with the object
        """
        ...

    def delete_object(self, key: str) -> None:
        """
        Delete an object. Deleting a missing key is not an error.

        Args:
            key: Full object key
        """
        ...
