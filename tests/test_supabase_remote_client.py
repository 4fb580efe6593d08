"""Tests for the Supabase remote data client."""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta

import httpx
import pytest
from supabase import PostgrestAPIError, StorageException

from znap_sync.adapters.supabase_remote_client import SupabaseRemoteClient
from znap_sync.domain.cameras import RemoteCameraFields
from znap_sync.domain.errors import (
    RemoteConflictError,
    RemoteNotFoundError,
    RemotePhotoLimitError,
    RemoteStorageError,
    RemoteValidationError,
    TransientNetworkError,
)
from znap_sync.domain.photos import PhotoUpload
from tests.conftest import FIXED_NOW, fixed_clock

CAMERA_ID = "3f2504e0-4f89-41d3-9a0c-0305e82c3301"


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[object]] = field(
        default_factory=lambda: {"select": [], "insert": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    last_order: tuple[str, bool] | None = None

    def queue(self, action: str, data: object) -> None:
        """Queue rows, or an exception to raise, for the next execute()."""
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self.last_order = (column, desc)
        return self

    async def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        if isinstance(data, Exception):
            raise data
        return FakeResponse(data=data)  # type: ignore[arg-type]


@dataclass
class FakeBucket:
    uploads: list[tuple[str, bytes, dict[str, str]]] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    upload_error: Exception | None = None

    async def upload(self, path: str, file: bytes, file_options: dict[str, str]) -> None:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((path, file, file_options))

    async def get_public_url(self, path: str) -> str:
        return f"https://cdn.example.com/{path}"

    async def remove(self, paths: list[str]) -> None:
        self.removed.extend(paths)


@dataclass
class FakeStorage:
    buckets: dict[str, FakeBucket] = field(default_factory=dict)

    def from_(self, bucket: str) -> FakeBucket:
        return self.buckets.setdefault(bucket, FakeBucket())


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    storage: FakeStorage = field(default_factory=FakeStorage)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _camera_row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "id": CAMERA_ID,
        "name": "Party",
        "endDate": (FIXED_NOW - timedelta(days=2)).isoformat(),
        "revealDelayType": "24h",
        "customRevealAt": None,
        "createdAt": (FIXED_NOW - timedelta(days=3)).isoformat(),
        "createdBy": None,
        "maxPhotosPerPerson": 25,
    }
    row.update(overrides)
    return row


def _api_error(code: str) -> PostgrestAPIError:
    return PostgrestAPIError({"message": f"error {code}", "code": code})


def _repository(client: FakeSupabaseClient) -> SupabaseRemoteClient:
    return SupabaseRemoteClient(client, clock=fixed_clock)  # type: ignore[arg-type]


def test_create_camera_uses_explicit_id_and_camel_case_columns() -> None:
    client = FakeSupabaseClient()
    cameras = client.table("cameras")
    cameras.queue("insert", [_camera_row()])
    fields = RemoteCameraFields(
        name="Party",
        end_date=FIXED_NOW,
        reveal_delay_type="24h",
        max_photos_per_person=25,
    )

    created = asyncio.run(_repository(client).create_camera(fields, camera_id=CAMERA_ID))

    assert created.id == CAMERA_ID
    assert created.max_photos_per_person == 25
    payload = cameras.last_payload
    assert isinstance(payload, dict)
    assert payload["id"] == CAMERA_ID
    assert payload["endDate"] == FIXED_NOW.isoformat()
    assert payload["revealDelayType"] == "24h"


def test_create_camera_reads_back_when_insert_returns_nothing() -> None:
    client = FakeSupabaseClient()
    cameras = client.table("cameras")
    cameras.queue("insert", [])
    cameras.queue("select", [_camera_row()])
    fields = RemoteCameraFields(
        name="Party", end_date=FIXED_NOW, reveal_delay_type="24h", max_photos_per_person=25
    )

    created = asyncio.run(_repository(client).create_camera(fields, camera_id=CAMERA_ID))

    assert created.id == CAMERA_ID


def test_create_camera_classifies_duplicate_id() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("insert", _api_error("23505"))
    fields = RemoteCameraFields(
        name="Party", end_date=FIXED_NOW, reveal_delay_type="24h", max_photos_per_person=25
    )

    with pytest.raises(RemoteConflictError):
        asyncio.run(_repository(client).create_camera(fields, camera_id=CAMERA_ID))


def test_get_camera_returns_none_when_missing() -> None:
    client = FakeSupabaseClient()
    cameras = client.table("cameras")
    cameras.queue("select", [])
    cameras.queue("select", _api_error("PGRST116"))
    repository = _repository(client)

    assert asyncio.run(repository.get_camera(CAMERA_ID)) is None
    assert asyncio.run(repository.get_camera(CAMERA_ID)) is None
    assert cameras.last_filters[0] == ("id", CAMERA_ID)


def test_get_camera_maps_transport_errors() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", httpx.ConnectError("refused"))

    with pytest.raises(TransientNetworkError):
        asyncio.run(_repository(client).get_camera(CAMERA_ID))


def test_list_cameras_orders_newest_first() -> None:
    client = FakeSupabaseClient()
    cameras = client.table("cameras")
    cameras.queue("select", [_camera_row(), _camera_row(id="other", name="Other")])

    listed = asyncio.run(_repository(client).list_cameras())

    assert [camera.name for camera in listed] == ["Party", "Other"]
    assert cameras.last_order == ("createdAt", True)


def test_list_cameras_classifies_other_errors_as_validation() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", _api_error("22P02"))

    with pytest.raises(RemoteValidationError):
        asyncio.run(_repository(client).list_cameras())


def test_upload_photo_stores_object_and_metadata() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [_camera_row()])
    photos = client.table("photos")
    upload = PhotoUpload(
        camera_id=CAMERA_ID,
        image_bytes=b"jpeg-bytes",
        mime_type="image/png",
        user_id="user-1",
        user_name="Alex",
    )

    photo = asyncio.run(_repository(client).upload_photo(upload))

    bucket = client.storage.buckets["camera-photos"]
    path, content, options = bucket.uploads[0]
    assert path.startswith(f"{CAMERA_ID}/")
    assert path.endswith(".png")
    assert content == b"jpeg-bytes"
    assert options["content-type"] == "image/png"
    payload = photos.last_payload
    assert isinstance(payload, dict)
    assert payload["camera_id"] == CAMERA_ID
    assert payload["file_size"] == len(b"jpeg-bytes")
    assert photo.public_url == f"https://cdn.example.com/{path}"
    assert photo.user_name == "Alex"
    assert photo.is_revealed


def test_upload_photo_requires_remote_camera() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [])
    upload = PhotoUpload(camera_id=CAMERA_ID, image_bytes=b"x", mime_type="image/jpeg")

    with pytest.raises(RemoteNotFoundError):
        asyncio.run(_repository(client).upload_photo(upload))

    assert "camera-photos" not in client.storage.buckets


def test_upload_photo_refuses_when_person_reached_limit() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [_camera_row(maxPhotosPerPerson=20)])
    photos = client.table("photos")
    photos.queue("select", [{"id": f"photo-{index}"} for index in range(20)])
    upload = PhotoUpload(
        camera_id=CAMERA_ID, image_bytes=b"x", mime_type="image/jpeg", user_id="user-1"
    )

    with pytest.raises(RemotePhotoLimitError, match="Maximum 20 photos per person"):
        asyncio.run(_repository(client).upload_photo(upload))

    assert photos.last_filters == [("camera_id", CAMERA_ID), ("user_id", "user-1")]
    assert photos.last_payload is None
    assert "camera-photos" not in client.storage.buckets


def test_upload_photo_allowed_below_limit() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [_camera_row()])
    client.table("photos").queue(
        "select", [{"id": f"photo-{index}"} for index in range(24)]
    )
    upload = PhotoUpload(camera_id=CAMERA_ID, image_bytes=b"x", mime_type="image/jpeg")

    asyncio.run(_repository(client).upload_photo(upload))

    assert len(client.storage.buckets["camera-photos"].uploads) == 1


def test_upload_photo_maps_storage_errors() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [_camera_row()])
    client.storage.from_("camera-photos").upload_error = StorageException("quota")
    upload = PhotoUpload(camera_id=CAMERA_ID, image_bytes=b"x", mime_type="image/jpeg")

    with pytest.raises(RemoteStorageError):
        asyncio.run(_repository(client).upload_photo(upload))


def test_upload_photo_removes_object_when_metadata_fails() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [_camera_row()])
    client.table("photos").queue("insert", _api_error("23503"))
    upload = PhotoUpload(camera_id=CAMERA_ID, image_bytes=b"x", mime_type="image/jpeg")

    with pytest.raises(RemoteNotFoundError):
        asyncio.run(_repository(client).upload_photo(upload))

    bucket = client.storage.buckets["camera-photos"]
    assert bucket.removed == [bucket.uploads[0][0]]


def test_list_photos_hides_until_reveal() -> None:
    client = FakeSupabaseClient()
    cameras = client.table("cameras")
    hidden_row = _camera_row(endDate=FIXED_NOW.isoformat())
    cameras.queue("select", [hidden_row])
    cameras.queue("select", [hidden_row])
    client.table("photos").queue(
        "select",
        [
            {
                "id": "3f2504e0-4f89-41d3-9a0c-0305e82c3302",
                "camera_id": CAMERA_ID,
                "file_name": f"{CAMERA_ID}/1.jpg",
                "public_url": "https://cdn.example.com/1.jpg",
                "user_id": None,
                "user_name": None,
                "uploaded_at": FIXED_NOW.isoformat(),
            }
        ],
    )
    repository = _repository(client)

    assert asyncio.run(repository.list_photos(CAMERA_ID)) == []
    photos = asyncio.run(repository.list_photos(CAMERA_ID, include_hidden=True))

    assert len(photos) == 1
    assert photos[0].is_revealed is False
    assert photos[0].user_name == "Anonymous User"
    assert photos[0].user_id == "anonymous"


def test_list_photos_for_unknown_camera_is_empty() -> None:
    client = FakeSupabaseClient()
    client.table("cameras").queue("select", [])

    assert asyncio.run(_repository(client).list_photos(CAMERA_ID)) == []
