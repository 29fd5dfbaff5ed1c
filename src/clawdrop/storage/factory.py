"""Factory for creating object storage instances."""

from pathlib import Path
from typing import Optional
import urllib.parse

from ..constants import DEFAULT_UPLOAD_CONCURRENCY
from ..core import ScopedCredentials
from .base import ObjectStore
from .fs import FilesystemObjectStore
from .s3 import S3ObjectStore


def make_object_store(
    credentials: ScopedCredentials,
    endpoint_url: Optional[str] = None,
    max_connections: int = DEFAULT_UPLOAD_CONCURRENCY,
) -> ObjectStore:
    """
    Create an object store bound to one credential set.

    Args:
        credentials: Scoped credentials (bucket and region come from here)
        endpoint_url: None for AWS, an http(s) URL for S3-compatible
            services, or file:///some/dir for a local directory store
        max_connections: Connection pool size for S3 clients

    Returns:
        ObjectStore instance
    """
    if endpoint_url and endpoint_url.startswith("file://"):
        parsed = urllib.parse.urlparse(endpoint_url)
        base_dir = Path(urllib.parse.unquote(parsed.netloc + parsed.path))
        return FilesystemObjectStore(base_dir, credentials.bucket)

    return S3ObjectStore(
        credentials,
        endpoint_url=endpoint_url,
        max_connections=max_connections,
    )
