"""Client for the Raccreative control plane.

The control plane issues scoped credentials, checks uploaded objects
against the submitted index, and records completed pushes. Each method maps
the status codes it understands to a typed error; anything else that is not
a success becomes a ServerError carrying the response body.
"""

import logging
from typing import List, Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    API_KEY_HEADER,
    COMPLETE_PUSH_PATH,
    DEFAULT_API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    GAMES_LIST_PATH,
    REQUEST_UPLOAD_PATH,
    VERIFY_UPLOAD_PATH,
)
from .core import FileIndex, Game, UploadSession
from .errors import (
    AuthorizationError,
    BuildSizeLimitError,
    GameNotFoundError,
    NetworkError,
    ProtocolMismatchError,
    ServerError,
    TransferError,
)

logger = logging.getLogger(__name__)


def _body(resp: requests.Response) -> str:
    return resp.text or "<no body>"


class ControlPlaneClient:
    """Thin wrapper over a requests.Session authenticated with an API key."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._api_key = api_key

    def _url(self, template: str, game_id: Optional[int] = None) -> str:
        path = template.replace("{id}", str(game_id)) if game_id is not None else template
        return f"{self.base_url}{path}"

    def _send(self, method: str, url: str, authenticated: bool = True, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if authenticated:
            headers[API_KEY_HEADER] = self._api_key
        try:
            return self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"HTTP request to {url} failed: {e}") from e

    # ============= Target Games =============

    def list_games(self) -> List[Game]:
        """Games the API key may publish."""
        resp = self._send("GET", self._url(GAMES_LIST_PATH))
        if resp.status_code == 403:
            raise AuthorizationError(
                "API key might be invalid or expired. Check CLAWDROP_API_KEY."
            )
        if not resp.ok:
            raise ServerError(resp.status_code, _body(resp))
        try:
            return [Game.model_validate(g) for g in resp.json()["games"]]
        except (ValueError, KeyError, TypeError, PydanticValidationError) as e:
            raise NetworkError(f"Malformed games list: {e}") from e

    def find_game(self, id_or_slug: str) -> Optional[Game]:
        """Look a game up by numeric id or URL slug."""
        games = self.list_games()
        if id_or_slug.isdigit():
            wanted = int(id_or_slug)
            return next((g for g in games if g.id == wanted), None)
        return next((g for g in games if g.url_identifier == id_or_slug), None)

    # ============= Push Protocol =============

    def request_upload(self, game_id: int, platform: str, local_index: FileIndex) -> UploadSession:
        """Submit the local index and receive scoped credentials."""
        body = {"version": platform, "fileindex": local_index.to_json()}
        resp = self._send("POST", self._url(REQUEST_UPLOAD_PATH, game_id), json=body)

        if resp.status_code == 403:
            raise AuthorizationError()
        if resp.status_code == 404:
            raise GameNotFoundError(game_id)
        if resp.status_code == 400:
            raise BuildSizeLimitError()
        if not resp.ok:
            raise ServerError(resp.status_code, _body(resp))

        try:
            return UploadSession.model_validate(resp.json())
        except (ValueError, PydanticValidationError) as e:
            raise NetworkError(f"Malformed upload session response: {e}") from e

    def fetch_remote_index(self, url: Optional[str]) -> FileIndex:
        """Download the last published fileindex.

        No URL or a 404 means nothing was published yet: empty index.
        """
        if not url:
            return FileIndex.empty()

        # Presigned URL: the API key must not leak to the object store
        resp = self._send("GET", url, authenticated=False)
        if resp.status_code == 404:
            logger.info("No remote fileindex found, treating as first publish")
            return FileIndex.empty()
        if not resp.ok:
            raise ServerError(resp.status_code, _body(resp))

        try:
            return FileIndex.from_json(resp.text)
        except (ValueError, PydanticValidationError) as e:
            raise NetworkError(f"Malformed remote fileindex: {e}") from e

    def verify_upload(self, game_id: int, platform: str, upload_id: str) -> None:
        """Ask the control plane to check uploaded objects against the index."""
        body = {"version": platform, "uploadId": upload_id}
        resp = self._send("PUT", self._url(VERIFY_UPLOAD_PATH, game_id), json=body)
        if resp.status_code == 400:
            raise ProtocolMismatchError()
        if not resp.ok:
            raise ServerError(resp.status_code, _body(resp))

    def publish_artifact(self, url: str, name: str, payload: str) -> None:
        """PUT a JSON artifact to a presigned destination."""
        resp = self._send(
            "PUT",
            url,
            authenticated=False,
            data=payload.encode("utf-8"),
            headers={"content-type": "application/json"},
        )
        if not resp.ok:
            raise TransferError("uploading", name, f"HTTP {resp.status_code}: {_body(resp)}")

    def complete_push(self, game_id: int, platform: str, version: str, file_name: str) -> None:
        """Record the new version and close the upload."""
        body = {"os": platform, "newVersion": version, "fileName": file_name}
        resp = self._send("PUT", self._url(COMPLETE_PUSH_PATH, game_id), json=body)
        if resp.status_code == 403:
            raise AuthorizationError()
        if not resp.ok:
            raise ServerError(resp.status_code, _body(resp))
