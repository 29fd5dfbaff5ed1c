"""Push protocol state machine.

A push walks a fixed sequence of states and never goes back:

    AcquireContext -> BuildLocalIndex -> RequestCredentials ->
    FetchRemoteIndex -> Diff -> Upload -> VerifyUpload ->
    DeleteObsolete -> PublishArtifacts -> Finalize -> Success

Diff may short-circuit to Success when there is nothing to transfer. Any
exception moves the run to Aborted and propagates unchanged to the caller.

Ordering is what keeps partial failure safe: deletes only happen after the
control plane has confirmed every upload, and the published fileindex is
only replaced after both transfer phases succeeded. An aborted run leaves
the previous fileindex in place, so the next run re-uploads whatever did
not make it and skips whatever did.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from .api import ControlPlaneClient
from .config import Settings, load_target, save_target
from .core import (
    BuildManifest,
    DiffResult,
    FileIndex,
    Game,
    PushParams,
    ReservedNames,
    ScopedCredentials,
    TransferPlan,
    UploadSession,
)
from .constants import FILEINDEX_NAME, MANIFEST_NAME
from .diffing import compute_diff
from .errors import AuthorizationError
from .ignore import ExcludeSpec
from .indexer import build_index
from .params import resolve_push_params
from .progress import TransferObserver
from .storage import ObjectStore, make_object_store
from .transfer import TransferOrchestrator

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """States of a push run, in order."""

    PENDING = "pending"
    ACQUIRE_CONTEXT = "acquire_context"
    BUILD_LOCAL_INDEX = "build_local_index"
    REQUEST_CREDENTIALS = "request_credentials"
    FETCH_REMOTE_INDEX = "fetch_remote_index"
    DIFF = "diff"
    UPLOAD = "upload"
    VERIFY_UPLOAD = "verify_upload"
    DELETE_OBSOLETE = "delete_obsolete"
    PUBLISH_ARTIFACTS = "publish_artifacts"
    FINALIZE = "finalize"
    SUCCESS = "success"
    ABORTED = "aborted"


_ORDER = list(SyncState)


@dataclass
class PushRequest:
    """What the user asked for, before resolution."""

    build_dir: Path = Path(".")
    shorthand: Optional[str] = None
    game_id: Optional[int] = None
    os: Optional[str] = None
    exe: Optional[str] = None
    version: Optional[str] = None
    exclude: List[str] = field(default_factory=list)
    no_bump: bool = False
    force: bool = False


@dataclass
class PushOutcome:
    """Result of a successful push."""

    params: PushParams
    diff: DiffResult
    plan: TransferPlan
    nothing_to_do: bool = False
    uploaded_bytes: int = 0
    deleted: int = 0
    upload_speed: Optional[float] = None   # bytes per second
    archive_name: Optional[str] = None


StoreFactory = Callable[[ScopedCredentials], ObjectStore]


class SyncRun:
    """One push of a build directory. Instances are single-use."""

    def __init__(
        self,
        request: PushRequest,
        client: ControlPlaneClient,
        settings: Settings,
        store_factory: Optional[StoreFactory] = None,
        observer: Optional[TransferObserver] = None,
        on_state: Optional[Callable[[SyncState], None]] = None,
    ):
        self.request = request
        self.client = client
        self.settings = settings
        self.store_factory = store_factory or self._default_store_factory
        self.orchestrator = TransferOrchestrator(
            request.build_dir,
            concurrency=settings.upload_concurrency,
            observer=observer,
        )
        self._on_state = on_state
        self.state = SyncState.PENDING
        self.failed_state: Optional[SyncState] = None

    def _default_store_factory(self, credentials: ScopedCredentials) -> ObjectStore:
        return make_object_store(
            credentials,
            endpoint_url=self.settings.s3_endpoint_url,
            max_connections=self.settings.upload_concurrency,
        )

    def _enter(self, state: SyncState) -> None:
        if _ORDER.index(state) <= _ORDER.index(self.state):
            raise RuntimeError(f"Illegal transition {self.state.value} -> {state.value}")
        logger.info("Push state: %s", state.value)
        self.state = state
        if self._on_state:
            self._on_state(state)

    def run(self) -> PushOutcome:
        """Execute the whole protocol.

        Raises:
            ClawdropError: The first failure, unchanged. ``state`` is then
                ABORTED and ``failed_state`` names where it happened.
        """
        if self.state is not SyncState.PENDING:
            raise RuntimeError("SyncRun instances cannot be reused")
        try:
            return self._run()
        except BaseException:
            self.failed_state = self.state
            self.state = SyncState.ABORTED
            logger.info("Push aborted during %s", self.failed_state.value)
            raise

    def _run(self) -> PushOutcome:
        request = self.request

        self._enter(SyncState.ACQUIRE_CONTEXT)
        params = self._acquire_context()

        self._enter(SyncState.BUILD_LOCAL_INDEX)
        local = build_index(request.build_dir, request.exclude)
        logger.info("Local index: %d files", len(local))

        self._enter(SyncState.REQUEST_CREDENTIALS)
        session = self.client.request_upload(params.id, params.os, local)
        logger.debug(
            "Upload credentials for %s expire at %s",
            session.upload_id, session.upload_credentials.expires_at,
        )

        self._enter(SyncState.FETCH_REMOTE_INDEX)
        remote = self.client.fetch_remote_index(session.extra_downloads.fileindex)

        self._enter(SyncState.DIFF)
        reserved = ReservedNames(
            manifest_suffix=MANIFEST_NAME,
            original_archive_name=session.original_zip_name,
        )
        diff = compute_diff(local, remote, reserved)
        plan = diff.to_transfer_plan(
            local,
            upload_prefix=session.upload_credentials.prefix,
            delete_prefix=session.delete_credentials.prefix,
            force=request.force,
        )
        logger.info(diff.summary())

        if plan.is_empty and not request.force:
            self._enter(SyncState.SUCCESS)
            return PushOutcome(params=params, diff=diff, plan=plan, nothing_to_do=True)

        self._enter(SyncState.UPLOAD)
        uploaded = self.orchestrator.upload(
            plan.uploads, self.store_factory(session.upload_credentials)
        )

        self._enter(SyncState.VERIFY_UPLOAD)
        self.client.verify_upload(params.id, params.os, session.upload_id)

        self._enter(SyncState.DELETE_OBSOLETE)
        deleted = self.orchestrator.delete(
            plan.deletes, self.store_factory(session.delete_credentials)
        )

        self._enter(SyncState.PUBLISH_ARTIFACTS)
        self._publish(session, params, local)

        self._enter(SyncState.FINALIZE)
        archive_name = session.original_zip_name or params.fallback_archive_name
        self.client.complete_push(params.id, params.os, params.version, archive_name)

        self._enter(SyncState.SUCCESS)
        return PushOutcome(
            params=params,
            diff=diff,
            plan=plan,
            uploaded_bytes=uploaded.done,
            upload_speed=uploaded.bytes_per_second,
            deleted=deleted.completed,
            archive_name=archive_name,
        )

    def _acquire_context(self) -> PushParams:
        """Validate the request offline, then refresh the target game.

        Everything that can be rejected without the network is rejected
        first, using the cached target.
        """
        request = self.request
        ExcludeSpec(request.exclude)

        cached = load_target(self.settings)
        params = self._resolve(cached)
        if cached is None:
            return params

        refreshed = self.client.find_game(str(cached.id))
        if refreshed is None:
            raise AuthorizationError(
                f"You are not allowed to publish game {cached.id} (or it no longer exists). "
                "Run 'clawdrop unset' or choose another target."
            )
        save_target(refreshed, self.settings)
        return self._resolve(refreshed)

    def _resolve(self, target: Optional[Game]) -> PushParams:
        request = self.request
        return resolve_push_params(
            request.build_dir,
            shorthand=request.shorthand,
            game_id=request.game_id,
            os_name=request.os,
            exe=request.exe,
            version=request.version,
            no_bump=request.no_bump,
            target=target,
        )

    def _publish(self, session: UploadSession, params: PushParams, local: FileIndex) -> None:
        manifest = BuildManifest(path=params.exe, version=params.version)
        self.client.publish_artifact(
            session.extra_uploads.manifest, MANIFEST_NAME, manifest.to_json()
        )
        self.client.publish_artifact(
            session.extra_uploads.fileindex, FILEINDEX_NAME, local.to_json(indent=2)
        )


def push(
    request: PushRequest,
    client: ControlPlaneClient,
    settings: Settings,
    observer: Optional[TransferObserver] = None,
    on_state: Optional[Callable[[SyncState], None]] = None,
) -> PushOutcome:
    """Run a push with the default S3 store factory."""
    return SyncRun(request, client, settings, observer=observer, on_state=on_state).run()


__all__ = [
    "PushOutcome",
    "PushRequest",
    "SyncRun",
    "SyncState",
    "push",
]
