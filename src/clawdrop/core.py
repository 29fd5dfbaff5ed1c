"""Core data models for clawdrop.

Content-Addressed Build Index:
------------------------------
A build directory is described by a FileIndex: one FileRecord per regular
file, keyed by its POSIX relative path and carrying a SHA-256 of the
contents. Change detection is a path-keyed comparison of two indexes
(freshly computed local vs. last published remote), never timestamps.

The index is always held in ascending path order so that two indexes of
an unmodified tree serialize byte-for-byte identically.
"""

from datetime import datetime
import json
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

from .constants import MANIFEST_NAME
from .utils import humanize_size


class _CamelModel(BaseModel):
    """Base for models exchanged with the control plane in camelCase."""

    model_config = ConfigDict(populate_by_name=True)


# ============= File Index =============

class FileRecord(_CamelModel):
    """One file under the build root."""

    path: str           # POSIX, root-relative, no leading slash
    size: int
    hash: str           # hex sha256
    content_type: str = Field(alias="contentType")


class FileIndex(_CamelModel):
    """Complete content manifest of a build directory (fileindex.json).

    Records are kept sorted by path and paths are unique.
    """

    files: List[FileRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _canonicalize(self) -> "FileIndex":
        self.files = sorted(self.files, key=lambda r: r.path)
        for prev, cur in zip(self.files, self.files[1:]):
            if prev.path == cur.path:
                raise ValueError(f"Duplicate path in fileindex: {cur.path}")
        return self

    @classmethod
    def empty(cls) -> "FileIndex":
        """Index of a target that has never been published."""
        return cls(files=[])

    @classmethod
    def from_json(cls, text: str) -> "FileIndex":
        return cls.model_validate_json(text)

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize in the wire format (camelCase keys, canonical order)."""
        return json.dumps(self.model_dump(by_alias=True), indent=indent)

    def by_path(self) -> Dict[str, FileRecord]:
        return {record.path: record for record in self.files}

    @property
    def paths(self) -> List[str]:
        return [record.path for record in self.files]

    @property
    def total_size(self) -> int:
        return sum(record.size for record in self.files)

    def __len__(self) -> int:
        return len(self.files)


# ============= Change Detection =============

class ReservedNames(BaseModel):
    """Protocol-owned artifacts that are never proposed for deletion."""

    manifest_suffix: str = MANIFEST_NAME
    original_archive_name: Optional[str] = None

    def is_reserved(self, path: str) -> bool:
        if path.endswith(self.manifest_suffix):
            return True
        if self.original_archive_name and path.endswith(self.original_archive_name):
            return True
        return False


class DiffResult(BaseModel):
    """Result of comparing a local index against the remote one.

    Unchanged files are not materialized; they are simply absent from
    every list.
    """

    added: List[FileRecord] = Field(default_factory=list)
    modified: List[FileRecord] = Field(default_factory=list)
    deleted: List[FileRecord] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)

    def to_upload(self, local: FileIndex, force: bool = False) -> List[FileRecord]:
        """Records that must be written to the object store.

        With force the whole local index is uploaded regardless of the diff.
        """
        if force:
            return list(local.files)
        return [*self.added, *self.modified]

    def to_transfer_plan(
        self,
        local: FileIndex,
        upload_prefix: str,
        delete_prefix: str,
        force: bool = False,
    ) -> "TransferPlan":
        """Pair every upload and delete with its object-store key."""
        uploads = [
            PlannedTransfer(record=record, key=f"{upload_prefix}{record.path}")
            for record in self.to_upload(local, force)
        ]
        deletes = [
            PlannedTransfer(record=record, key=f"{delete_prefix}{record.path}")
            for record in self.deleted
        ]
        return TransferPlan(uploads=uploads, deletes=deletes)

    def summary(self) -> str:
        """Get human-readable summary."""
        return (
            f"New files: {len(self.added)}, "
            f"Modified files: {len(self.modified)}, "
            f"Obsolete files: {len(self.deleted)}"
        )


# ============= Execution Plans =============

class PlannedTransfer(BaseModel):
    """A single object-store operation."""

    record: FileRecord
    key: str


class TransferPlan(BaseModel):
    """Concrete puts and deletes derived from a diff."""

    uploads: List[PlannedTransfer] = Field(default_factory=list)
    deletes: List[PlannedTransfer] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.uploads and not self.deletes

    @property
    def upload_bytes(self) -> int:
        return sum(item.record.size for item in self.uploads)

    def summary(self) -> str:
        """Get human-readable summary."""
        parts = [f"↑ {len(self.uploads)} files to upload ({humanize_size(self.upload_bytes)})"]
        if self.deletes:
            parts.append(f"{len(self.deletes)} to delete")
        return ", ".join(parts)


# ============= Control Plane =============

class ScopedCredentials(_CamelModel):
    """Temporary object-store credentials limited to one bucket prefix.

    Upload and delete grants are issued separately and never refreshed.
    """

    access_key_id: str = Field(alias="accessKeyId")
    secret_access_key: SecretStr = Field(alias="secretAccessKey")
    session_token: SecretStr = Field(alias="sessionToken")
    expiration: str = ""  # RFC 3339
    bucket: str
    prefix: str = ""
    region: str

    @property
    def expires_at(self) -> Optional[datetime]:
        """Parsed expiry, or None when the server sent something unparseable."""
        if not self.expiration:
            return None
        try:
            return datetime.fromisoformat(self.expiration.replace("Z", "+00:00"))
        except ValueError:
            return None


class ExtraUploads(_CamelModel):
    """Presigned destinations for the published artifacts."""

    manifest: str
    fileindex: str


class ExtraDownloads(_CamelModel):
    """Presigned source of the last published fileindex, if any."""

    fileindex: Optional[str] = None


class UploadSession(_CamelModel):
    """Everything the control plane grants for one push."""

    upload_credentials: ScopedCredentials = Field(alias="uploadCredentials")
    delete_credentials: ScopedCredentials = Field(alias="deleteCredentials")
    extra_uploads: ExtraUploads = Field(alias="extraUploads")
    extra_downloads: ExtraDownloads = Field(
        default_factory=ExtraDownloads, alias="extraDownloads"
    )
    original_zip_name: Optional[str] = Field(default=None, alias="originalZipName")
    upload_id: str = Field(alias="uploadId")


class BuildManifest(BaseModel):
    """manifest.json: how the storefront launches the build."""

    path: str       # executable, relative to build root
    version: str

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), indent=2)


class Game(_CamelModel):
    """A game the API key is allowed to publish."""

    id: int
    title: str
    url_identifier: Optional[str] = Field(default=None, alias="urlIdentifier")
    windows_version: Optional[str] = Field(default=None, alias="windowsVersion")
    linux_version: Optional[str] = Field(default=None, alias="linuxVersion")
    mac_version: Optional[str] = Field(default=None, alias="macVersion")
    html_version: Optional[str] = Field(default=None, alias="htmlVersion")

    def version_for(self, platform: str) -> Optional[str]:
        """Currently published version for a platform."""
        return {
            "windows": self.windows_version,
            "linux": self.linux_version,
            "mac": self.mac_version,
            "html": self.html_version,
        }.get(platform)


class PushParams(BaseModel):
    """Fully resolved push target."""

    id: int
    os: str
    exe: str        # POSIX path relative to build root
    version: str

    @property
    def fallback_archive_name(self) -> str:
        return f"{self.id}-{self.os}.zip"
