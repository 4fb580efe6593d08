"""Reconciliation between the local camera cache and the remote backend.

Every operation is a discrete, caller-triggered pass. Items are processed one
at a time in the local store's insertion order, failures are recorded per item
and never abort a batch, and remote calls are attempted once, bounded by a
timeout, and only while the availability probe reports the backend reachable.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field, replace
from typing import Protocol, TypeVar

from znap_sync.domain.cameras import (
    CameraDraft,
    RemoteCamera,
    RemoteCameraFields,
    RevealStatus,
    remote_fields,
)
from znap_sync.domain.errors import (
    RemoteConflictError,
    RemoteError,
    TransientNetworkError,
)
from znap_sync.domain.identifiers import generate_id, is_valid_id
from znap_sync.domain.photos import (
    ANONYMOUS_USER_ID,
    ANONYMOUS_USER_NAME,
    PhotoUpload,
    RemotePhoto,
    photo_draft_from_remote,
)
from znap_sync.domain.sync import (
    CreateCameraResult,
    EnsureResult,
    IdAuditEntry,
    ImportReport,
    ItemResult,
    PhotoListing,
    SyncReport,
    SyncStatus,
    UploadResult,
    UploadStatus,
)
from znap_sync.services.availability import AvailabilityService
from znap_sync.services.camera_store import CameraStore
from znap_sync.services.guest_store import GuestStore

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_OFFLINE_MESSAGE = "Remote backend unavailable"


class RemoteDataClient(Protocol):
    """Interface for the hosted camera and photo backend."""

    async def create_camera(
        self, fields: RemoteCameraFields, camera_id: str | None = None
    ) -> RemoteCamera:
        """Create a camera row, using `camera_id` when given."""

    async def get_camera(self, camera_id: str) -> RemoteCamera | None:
        """Return a camera row, or None when it does not exist."""

    async def list_cameras(self) -> list[RemoteCamera]:
        """Return every camera row."""

    async def upload_photo(self, upload: PhotoUpload) -> RemotePhoto:
        """Store image bytes and their metadata row."""

    async def list_photos(
        self, camera_id: str, include_hidden: bool = False
    ) -> list[RemotePhoto]:
        """Return photos of a camera, hiding unrevealed ones by default."""


@dataclass
class SyncService:
    """Brings the local camera cache and the remote backend into agreement."""

    store: CameraStore
    guest_store: GuestStore
    remote: RemoteDataClient
    availability: AvailabilityService
    remote_timeout_seconds: float = 8.0
    _inflight: dict[str, asyncio.Task] = field(
        default_factory=dict, init=False, repr=False
    )

    async def ensure_camera_exists_remotely(self, camera_id: str) -> EnsureResult:
        """Make sure a camera exists remotely, creating it from local data."""
        return await self._single_flight(
            f"ensure:{camera_id}", lambda: self._ensure(camera_id)
        )

    async def sync_local_cameras_to_remote(self) -> SyncReport:
        """Push every UUID-identified local camera to the remote."""
        return await self._single_flight("push", self._push)

    async def import_remote_cameras_to_local(self) -> ImportReport:
        """Add remote cameras missing from the local cache, keeping their ids."""
        return await self._single_flight("import", self._import)

    async def upload_photo_with_sync(  # noqa: PLR0913
        self,
        camera_id: str,
        image_bytes: bytes,
        mime_type: str,
        user_id: str | None = None,
        user_name: str | None = None,
    ) -> UploadResult:
        """Upload a photo after making sure its camera exists remotely."""
        if not self.availability.should_use_remote():
            _logger.info("Upload deferred, backend offline: camera=%s", camera_id)
            return UploadResult(
                status=UploadStatus.OFFLINE,
                error=f"{_OFFLINE_MESSAGE}; upload deferred",
            )

        ensured = await self.ensure_camera_exists_remotely(camera_id)
        if not ensured.success:
            return UploadResult(
                status=UploadStatus.FAILED,
                error=f"Camera {camera_id} is not available remotely: {ensured.error}",
                error_kind=ensured.error_kind,
            )

        upload = PhotoUpload(
            camera_id=camera_id,
            image_bytes=image_bytes,
            mime_type=mime_type,
            user_id=user_id or ANONYMOUS_USER_ID,
            user_name=user_name or self._guest_name(camera_id),
        )
        try:
            photo = await self._call_remote(self.remote.upload_photo(upload))
        except RemoteError as exc:
            _logger.warning("Photo upload failed: camera=%s error=%s", camera_id, exc)
            return UploadResult(
                status=UploadStatus.FAILED, error=str(exc), error_kind=exc.kind
            )

        try:
            local_photo = await self.store.add_photo(
                camera_id, photo_draft_from_remote(photo)
            )
        except OSError:
            _logger.exception("Uploaded photo %s could not be cached locally", photo.id)
            local_photo = None
        return UploadResult(
            status=UploadStatus.UPLOADED, photo=photo, local_photo=local_photo
        )

    async def create_camera(self, draft: CameraDraft) -> CreateCameraResult:
        """Create a camera remotely when possible, always caching it locally."""
        camera_id = generate_id()
        error: str | None = _OFFLINE_MESSAGE
        if self.availability.should_use_remote():
            try:
                remote_camera = await self._call_remote(
                    self.remote.create_camera(remote_fields(draft), camera_id=camera_id)
                )
            except RemoteError as exc:
                _logger.warning("Remote camera creation failed: %s", exc)
                error = str(exc)
            else:
                return await self._cache_created_camera(draft, remote_camera.id)

        camera = await self.store.add_camera(draft, explicit_id=camera_id)
        self.store.set_current(camera)
        return CreateCameraResult(camera=camera, synced=False, error=error)

    async def list_photos(
        self, camera_id: str, include_hidden: bool = False
    ) -> PhotoListing:
        """List photos remotely, falling back to the local cache."""
        if self.availability.should_use_remote() and is_valid_id(camera_id):
            try:
                photos = await self._call_remote(
                    self.remote.list_photos(camera_id, include_hidden=True)
                )
            except RemoteError as exc:
                _logger.info("Falling back to local photos for %s: %s", camera_id, exc)
            else:
                visible = [p for p in photos if include_hidden or p.is_revealed]
                hidden = sum(1 for p in photos if not p.is_revealed)
                return PhotoListing(photos=visible, source="remote", hidden_count=hidden)

        camera = self.store.find_by_id(camera_id)
        if camera is None:
            return PhotoListing(photos=[], source="local")
        revealed = camera.is_revealed_at(self.store.clock())
        local = [replace(p, is_revealed=revealed) for p in camera.photos]
        if include_hidden or revealed:
            return PhotoListing(photos=local, source="local")
        return PhotoListing(photos=[], source="local", hidden_count=len(local))

    def reveal_status(self, camera_id: str) -> RevealStatus | None:
        camera = self.store.find_by_id(camera_id)
        if camera is None:
            return None
        return camera.reveal_status(self.store.clock())

    def id_audit(self) -> list[IdAuditEntry]:
        """Report which cached cameras and photos still carry legacy ids."""
        return [
            IdAuditEntry(
                camera_id=camera.id,
                name=camera.name,
                valid=is_valid_id(camera.id),
                photo_count=len(camera.photos),
                legacy_photo_ids=[
                    photo.id for photo in camera.photos if not is_valid_id(photo.id)
                ],
            )
            for camera in self.store.cameras
        ]

    async def _ensure(self, camera_id: str) -> EnsureResult:
        if not is_valid_id(camera_id):
            _logger.info("Legacy camera id %s stays local-only", camera_id)
            return EnsureResult(
                camera_id=camera_id,
                success=False,
                error=f"Camera id {camera_id} is not a UUID; legacy cameras stay local",
                error_kind="validation",
            )
        if not self.availability.should_use_remote():
            return EnsureResult(
                camera_id=camera_id,
                success=False,
                error=_OFFLINE_MESSAGE,
                error_kind="offline",
            )

        try:
            existing = await self._call_remote(self.remote.get_camera(camera_id))
        except RemoteError as exc:
            return _ensure_failure(camera_id, exc)
        if existing is not None:
            return EnsureResult(camera_id=camera_id, success=True)

        camera = self.store.find_by_id(camera_id)
        if camera is None:
            return EnsureResult(
                camera_id=camera_id,
                success=False,
                error=f"Camera {camera_id} not found remotely or locally",
                error_kind="not_found",
            )

        try:
            await self._call_remote(
                self.remote.create_camera(remote_fields(camera), camera_id=camera_id)
            )
        except RemoteConflictError as exc:
            # Another writer created the row between our read and insert.
            try:
                existing = await self._call_remote(self.remote.get_camera(camera_id))
            except RemoteError:
                existing = None
            if existing is not None:
                return EnsureResult(camera_id=camera_id, success=True)
            return _ensure_failure(camera_id, exc)
        except RemoteError as exc:
            return _ensure_failure(camera_id, exc)

        _logger.info("Created remote camera id=%s name=%s", camera_id, camera.name)
        return EnsureResult(camera_id=camera_id, success=True, created=True)

    async def _push(self) -> SyncReport:
        if not self.availability.should_use_remote():
            return SyncReport(status=SyncStatus.OFFLINE)

        synced = 0
        created = 0
        skipped = 0
        errors: list[str] = []
        items: list[ItemResult] = []
        for camera in self.store.cameras:
            if not is_valid_id(camera.id):
                _logger.info("Skipping legacy camera id=%s", camera.id)
                skipped += 1
                continue
            result = await self.ensure_camera_exists_remotely(camera.id)
            if result.success:
                synced += 1
                created += int(result.created)
                items.append(ItemResult(camera_id=camera.id, success=True))
                continue
            message = f"Failed to sync camera {camera.name} ({camera.id}): {result.error}"
            _logger.warning(message)
            errors.append(message)
            items.append(
                ItemResult(camera_id=camera.id, success=False, error=result.error)
            )

        _logger.info(
            "Push complete: synced=%s created=%s skipped=%s errors=%s",
            synced,
            created,
            skipped,
            len(errors),
        )
        return SyncReport(
            synced=synced,
            created=created,
            skipped=skipped,
            errors=errors,
            items=items,
            status=SyncStatus.PARTIAL_FAILURE if errors else SyncStatus.COMPLETED,
        )

    async def _import(self) -> ImportReport:
        if not self.availability.should_use_remote():
            return ImportReport(status=SyncStatus.OFFLINE)

        try:
            remote_cameras = await self._call_remote(self.remote.list_cameras())
        except RemoteError as exc:
            return ImportReport(
                errors=[f"Failed to list remote cameras: {exc}"],
                status=SyncStatus.PARTIAL_FAILURE,
            )

        imported = 0
        errors: list[str] = []
        items: list[ItemResult] = []
        for remote_camera in remote_cameras:
            if self.store.find_by_id(remote_camera.id) is not None:
                continue
            try:
                await self.store.add_camera(
                    CameraDraft.from_remote(remote_camera),
                    explicit_id=remote_camera.id,
                )
            except (OSError, ValueError) as exc:
                message = f"Failed to import camera {remote_camera.id}: {exc}"
                _logger.warning(message)
                errors.append(message)
                items.append(
                    ItemResult(camera_id=remote_camera.id, success=False, error=str(exc))
                )
                continue
            imported += 1
            items.append(ItemResult(camera_id=remote_camera.id, success=True))

        _logger.info("Import complete: imported=%s errors=%s", imported, len(errors))
        return ImportReport(
            imported=imported,
            errors=errors,
            items=items,
            status=SyncStatus.PARTIAL_FAILURE if errors else SyncStatus.COMPLETED,
        )

    async def _cache_created_camera(
        self, draft: CameraDraft, camera_id: str
    ) -> CreateCameraResult:
        try:
            camera = await self.store.add_camera(draft, explicit_id=camera_id)
        except OSError as exc:
            _logger.exception("Remote camera %s could not be cached locally", camera_id)
            camera = self.store.find_by_id(camera_id)
            self.store.set_current(camera)
            return CreateCameraResult(
                camera=camera,
                synced=True,
                error=f"Camera created remotely but not saved locally: {exc}",
            )
        self.store.set_current(camera)
        return CreateCameraResult(camera=camera, synced=True)

    def _guest_name(self, camera_id: str) -> str:
        session = self.guest_store.get_session(camera_id)
        return session.guest_name if session else ANONYMOUS_USER_NAME

    async def _call_remote(self, call: Coroutine[object, object, _T]) -> _T:
        try:
            return await asyncio.wait_for(call, timeout=self.remote_timeout_seconds)
        except TimeoutError as exc:
            raise TransientNetworkError(
                f"Remote call timed out after {self.remote_timeout_seconds}s"
            ) from exc

    async def _single_flight(
        self, key: str, factory: Callable[[], Coroutine[object, object, _T]]
    ) -> _T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            _logger.info("Joining in-flight operation %s", key)
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]


def _ensure_failure(camera_id: str, exc: RemoteError) -> EnsureResult:
    _logger.warning("Ensure failed for camera %s: %s", camera_id, exc)
    return EnsureResult(
        camera_id=camera_id, success=False, error=str(exc), error_kind=exc.kind
    )
