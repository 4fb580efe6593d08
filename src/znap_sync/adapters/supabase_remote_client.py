"""Supabase-backed remote data client for cameras and photos."""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx
from supabase import AsyncClient, PostgrestAPIError, StorageException

from znap_sync.domain.cameras import RemoteCamera, RemoteCameraFields, is_revealed
from znap_sync.domain.errors import (
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemotePhotoLimitError,
    RemoteStorageError,
    RemoteValidationError,
    TransientNetworkError,
)
from znap_sync.domain.identifiers import generate_id
from znap_sync.domain.photos import (
    ANONYMOUS_USER_ID,
    ANONYMOUS_USER_NAME,
    PhotoUpload,
    RemotePhoto,
)
from znap_sync.services.camera_store import utcnow
from znap_sync.services.schema import format_datetime, parse_datetime
from znap_sync.services.sync import RemoteDataClient

_logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"
_NO_ROWS = "PGRST116"


@dataclass
class SupabaseRemoteClient(RemoteDataClient):
    """Supabase implementation of the camera and photo backend."""

    client: AsyncClient
    bucket: str = "camera-photos"
    clock: Callable[[], datetime] = utcnow

    async def create_camera(
        self, fields: RemoteCameraFields, camera_id: str | None = None
    ) -> RemoteCamera:
        """Insert a camera row and return it."""
        row = {
            "id": camera_id or generate_id(),
            "name": fields.name,
            "endDate": format_datetime(fields.end_date),
            "revealDelayType": fields.reveal_delay_type,
            "customRevealAt": format_datetime(fields.custom_reveal_at),
            "createdAt": format_datetime(self.clock()),
            "createdBy": None,
            "maxPhotosPerPerson": fields.max_photos_per_person,
        }
        response = await _execute(
            self.client.table("cameras").insert(row), action="create camera"
        )
        if response.data:
            return _camera_from_row(response.data[0])

        _logger.warning("Camera %s inserted but not returned, reading back", row["id"])
        camera = await self.get_camera(str(row["id"]))
        if camera is None:
            raise RemoteValidationError(
                f"Camera {row['id']} creation could not be verified"
            )
        return camera

    async def get_camera(self, camera_id: str) -> RemoteCamera | None:
        """Return a camera row by id, if present."""
        try:
            response = await _execute(
                self.client.table("cameras").select("*").eq("id", camera_id).limit(1),
                action="get camera",
            )
        except RemoteNotFoundError:
            return None
        if not response.data:
            return None
        return _camera_from_row(response.data[0])

    async def list_cameras(self) -> list[RemoteCamera]:
        """Return all camera rows, newest first."""
        response = await _execute(
            self.client.table("cameras").select("*").order("createdAt", desc=True),
            action="list cameras",
        )
        return [_camera_from_row(row) for row in response.data or []]

    async def upload_photo(self, upload: PhotoUpload) -> RemotePhoto:
        """Upload image bytes to storage and record the photo row."""
        camera = await self.get_camera(upload.camera_id)
        if camera is None:
            raise RemoteNotFoundError(f"Camera not found: {upload.camera_id}")

        existing = await _execute(
            self.client.table("photos")
            .select("id")
            .eq("camera_id", upload.camera_id)
            .eq("user_id", upload.user_id),
            action="count photos",
        )
        max_photos = camera.max_photos_per_person or 20
        if len(existing.data or []) >= max_photos:
            raise RemotePhotoLimitError(
                f"Photo limit reached. Maximum {max_photos} photos per person allowed."
            )

        now = self.clock()
        extension = upload.mime_type.split("/")[-1] or "jpg"
        file_name = (
            f"{upload.camera_id}/{int(now.timestamp() * 1000)}_"
            f"{secrets.token_hex(6)}.{extension}"
        )
        bucket = self.client.storage.from_(self.bucket)
        try:
            await bucket.upload(
                file_name,
                upload.image_bytes,
                {"content-type": upload.mime_type, "upsert": "false"},
            )
            public_url = await bucket.get_public_url(file_name)
        except StorageException as exc:
            raise RemoteStorageError(f"Failed to upload image: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransientNetworkError(f"upload image: {exc}") from exc

        row = {
            "id": generate_id(),
            "camera_id": upload.camera_id,
            "file_name": file_name,
            "public_url": public_url,
            "user_id": upload.user_id,
            "user_name": upload.user_name,
            "uploaded_at": format_datetime(now),
            "mime_type": upload.mime_type,
            "file_size": len(upload.image_bytes),
        }
        try:
            response = await _execute(
                self.client.table("photos").insert(row), action="save photo metadata"
            )
        except RemoteError:
            await self._remove_object(file_name)
            raise

        stored = response.data[0] if response.data else row
        revealed = is_revealed(
            camera.reveal_delay_type, camera.end_date, camera.custom_reveal_at, now
        )
        return _photo_from_row(stored, revealed)

    async def list_photos(
        self, camera_id: str, include_hidden: bool = False
    ) -> list[RemotePhoto]:
        """Return photos for a camera, newest first."""
        camera = await self.get_camera(camera_id)
        if camera is None:
            return []
        revealed = is_revealed(
            camera.reveal_delay_type,
            camera.end_date,
            camera.custom_reveal_at,
            self.clock(),
        )
        if not revealed and not include_hidden:
            return []
        response = await _execute(
            self.client.table("photos")
            .select("*")
            .eq("camera_id", camera_id)
            .order("uploaded_at", desc=True),
            action="list photos",
        )
        return [_photo_from_row(row, revealed) for row in response.data or []]

    async def _remove_object(self, file_name: str) -> None:
        try:
            await self.client.storage.from_(self.bucket).remove([file_name])
        except (StorageException, httpx.HTTPError):
            _logger.exception("Failed to clean up uploaded object %s", file_name)


async def _execute(query, action: str):  # type: ignore[no-untyped-def]
    try:
        return await query.execute()
    except PostgrestAPIError as exc:
        raise _classify(exc, action) from exc
    except httpx.HTTPError as exc:
        raise TransientNetworkError(f"{action}: {exc}") from exc


def _classify(exc: PostgrestAPIError, action: str) -> RemoteError:
    message = f"Failed to {action}: {exc.message or exc.code or 'unknown error'}"
    if exc.code == _UNIQUE_VIOLATION:
        return RemoteConflictError(message)
    if exc.code in {_FOREIGN_KEY_VIOLATION, _NO_ROWS}:
        return RemoteNotFoundError(message)
    return RemoteValidationError(message)


def _camera_from_row(row: dict[str, object]) -> RemoteCamera:
    return RemoteCamera(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        end_date=parse_datetime(row.get("endDate")) or utcnow(),
        reveal_delay_type=str(row.get("revealDelayType") or "24h"),
        custom_reveal_at=parse_datetime(row.get("customRevealAt")),
        max_photos_per_person=int(row.get("maxPhotosPerPerson") or 20),
        created_at=parse_datetime(row.get("createdAt")) or utcnow(),
        created_by=row.get("createdBy"),
    )


def _photo_from_row(row: dict[str, object], revealed: bool) -> RemotePhoto:
    file_size = row.get("file_size")
    return RemotePhoto(
        id=str(row["id"]),
        camera_id=str(row["camera_id"]),
        file_name=str(row.get("file_name", "")),
        public_url=str(row.get("public_url", "")),
        user_id=str(row.get("user_id") or ANONYMOUS_USER_ID),
        user_name=str(row.get("user_name") or ANONYMOUS_USER_NAME),
        uploaded_at=parse_datetime(row.get("uploaded_at")) or utcnow(),
        mime_type=row.get("mime_type"),
        file_size=int(file_size) if file_size is not None else None,
        is_revealed=revealed,
    )
