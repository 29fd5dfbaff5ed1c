"""S3 object storage implementation."""

import logging
from pathlib import Path
from typing import Any, Optional

from ..constants import DEFAULT_UPLOAD_CONCURRENCY
from ..core import ScopedCredentials

logger = logging.getLogger(__name__)


class S3ObjectStore:
    """
    S3 (or S3-compatible) store bound to one set of temporary credentials.

    boto3 clients are thread-safe, so a single client serves every upload
    thread. Retries are disabled: a failed request fails the run.
    """

    def __init__(
        self,
        credentials: ScopedCredentials,
        endpoint_url: Optional[str] = None,
        max_connections: int = DEFAULT_UPLOAD_CONCURRENCY,
    ):
        """
        Initialize S3 store.

        Args:
            credentials: Scoped credentials issued by the control plane
            endpoint_url: Custom endpoint for S3-compatible services
            max_connections: Connection pool size, at least the upload concurrency
        """
        import boto3
        from botocore.config import Config as BotoConfig

        self.bucket = credentials.bucket
        self.endpoint_url = endpoint_url
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key.get_secret_value(),
            aws_session_token=credentials.session_token.get_secret_value(),
            region_name=credentials.region,
            config=BotoConfig(
                retries={"total_max_attempts": 1},
                max_pool_connections=max_connections,
            ),
        )

    def put_object(self, key: str, path: Path, checksum: str, content_type: str) -> None:
        """Upload a file with a SHA-256 checksum for server-side verification."""
        logger.debug("PUT s3://%s/%s", self.bucket, key)
        with open(path, "rb") as f:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=f,
                ContentType=content_type,
                ChecksumAlgorithm="SHA256",
                ChecksumSHA256=checksum,
            )

    def delete_object(self, key: str) -> None:
        """Delete an object."""
        logger.debug("DELETE s3://%s/%s", self.bucket, key)
        self._client.delete_object(Bucket=self.bucket, Key=key)
