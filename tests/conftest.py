"""Shared test fixtures and utilities."""

import json
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import requests

from clawdrop.config import Settings
from clawdrop.core import FileIndex, Game, UploadSession
from clawdrop.errors import ProtocolMismatchError


def make_response(status_code: int, body=None, text: Optional[str] = None) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    resp = requests.Response()
    resp.status_code = status_code
    if body is not None:
        resp._content = json.dumps(body).encode("utf-8")
    else:
        resp._content = (text or "").encode("utf-8")
    resp.encoding = "utf-8"
    return resp


def credentials_payload(bucket: str = "builds", prefix: str = "games/32/windows/") -> dict:
    return {
        "accessKeyId": "AKIATEST",
        "secretAccessKey": "secret",
        "sessionToken": "token",
        "expiration": "2030-01-01T00:00:00Z",
        "bucket": bucket,
        "prefix": prefix,
        "region": "eu-west-1",
    }


def session_payload(fileindex_url: Optional[str] = "https://cdn.test/fileindex.json",
                    original_zip_name: Optional[str] = None) -> dict:
    payload = {
        "uploadCredentials": credentials_payload(prefix="games/32/windows/"),
        "deleteCredentials": credentials_payload(prefix="games/32/windows/"),
        "extraUploads": {
            "manifest": "https://cdn.test/put/manifest.json",
            "fileindex": "https://cdn.test/put/fileindex.json",
        },
        "extraDownloads": {"fileindex": fileindex_url},
        "uploadId": "upload-1",
    }
    if original_zip_name:
        payload["originalZipName"] = original_zip_name
    return payload


class MemoryStore:
    """Thread-safe in-memory ObjectStore that records every operation."""

    def __init__(self, bucket: str = "builds", events: Optional[list] = None,
                 delay: float = 0.0, fail_on: Optional[str] = None):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.checksums: Dict[str, str] = {}
        self.deleted: List[str] = []
        self.events = events if events is not None else []
        self.delay = delay
        self.fail_on = fail_on
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def put_object(self, key: str, path: Path, checksum: str, content_type: str) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_on and key.endswith(self.fail_on):
                raise OSError("connection reset")
            data = Path(path).read_bytes()
            with self._lock:
                self.objects[key] = data
                self.content_types[key] = content_type
                self.checksums[key] = checksum
                self.events.append(("put", key))
        finally:
            with self._lock:
                self.in_flight -= 1

    def delete_object(self, key: str) -> None:
        if self.fail_on and key.endswith(self.fail_on):
            raise OSError("access denied")
        self.objects.pop(key, None)
        self.deleted.append(key)
        self.events.append(("delete", key))


class FakeControlPlane:
    """Duck-typed ControlPlaneClient that serves a canned session."""

    def __init__(self, session: dict, remote: FileIndex, events: list,
                 games: Optional[List[Game]] = None, verify_ok: bool = True):
        self.session = UploadSession.model_validate(session)
        self.remote = remote
        self.events = events
        self.games = games or []
        self.verify_ok = verify_ok
        self.published: Dict[str, str] = {}
        self.submitted_index: Optional[FileIndex] = None
        self.completed: Optional[dict] = None

    def find_game(self, id_or_slug: str) -> Optional[Game]:
        self.events.append(("find_game", id_or_slug))
        return next((g for g in self.games if str(g.id) == id_or_slug), None)

    def request_upload(self, game_id, platform, local_index):
        self.events.append(("request_upload", game_id, platform))
        self.submitted_index = local_index
        return self.session

    def fetch_remote_index(self, url):
        self.events.append(("fetch_remote_index", url))
        return self.remote

    def verify_upload(self, game_id, platform, upload_id):
        self.events.append(("verify_upload", upload_id))
        if not self.verify_ok:
            raise ProtocolMismatchError()

    def publish_artifact(self, url, name, payload):
        self.events.append(("publish", name))
        self.published[name] = payload

    def complete_push(self, game_id, platform, version, file_name):
        self.events.append(("complete_push", version, file_name))
        self.completed = {"id": game_id, "os": platform, "version": version, "file": file_name}


@pytest.fixture
def build_dir(tmp_path):
    """A small Windows-style build tree."""
    root = tmp_path / "build"
    (root / "data").mkdir(parents=True)
    (root / "game.exe").write_bytes(b"MZ" + b"\x00" * 64)
    (root / "data" / "a.bin").write_bytes(b"asset-a")
    return root


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to a temporary config directory."""
    return Settings(config_dir=tmp_path / "config", upload_concurrency=4)


@pytest.fixture
def events():
    """Shared, ordered log of client and store operations."""
    return []
