"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from znap_sync.config import Settings
from znap_sync.containers import AppContainer
from znap_sync.domain.cameras import CameraDraft, RemoteCamera, RemoteCameraFields
from znap_sync.domain.errors import (
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    TransientNetworkError,
)
from znap_sync.domain.identifiers import generate_id
from znap_sync.domain.photos import PhotoUpload, RemotePhoto
from znap_sync.services.availability import AvailabilityService, HealthClient
from znap_sync.services.camera_store import CameraStore, KeyValueStorage
from znap_sync.services.guest_store import GuestStore
from znap_sync.services.sync import RemoteDataClient, SyncService

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_draft(name: str = "Beach Party", **overrides: object) -> CameraDraft:
    values: dict[str, object] = {
        "name": name,
        "start_date": FIXED_NOW - timedelta(hours=2),
        "end_date": FIXED_NOW + timedelta(hours=6),
        "max_photos_per_person": 20,
        "reveal_delay_type": "24h",
    }
    values.update(overrides)
    return CameraDraft(**values)  # type: ignore[arg-type]


@dataclass
class InMemoryKeyValueStorage(KeyValueStorage):
    """In-memory slot storage for tests."""

    values: dict[str, str] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)
    fail_writes: bool = False

    async def get_item(self, key: str) -> str | None:
        return self.values.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.writes.append(key)
        self.values[key] = value

    async def remove_item(self, key: str) -> None:
        self.values.pop(key, None)


@dataclass
class FakeRemoteDataClient(RemoteDataClient):
    """Fake remote backend keeping rows in memory."""

    cameras: dict[str, RemoteCamera] = field(default_factory=dict)
    photos: list[RemotePhoto] = field(default_factory=list)
    failures: dict[str, RemoteError] = field(default_factory=dict)
    failing_ids: set[str] = field(default_factory=set)
    calls: list[tuple[str, str | None]] = field(default_factory=list)
    delay_seconds: float = 0.0
    conflict_on_create: bool = False
    revealed: bool = True

    async def create_camera(
        self, fields: RemoteCameraFields, camera_id: str | None = None
    ) -> RemoteCamera:
        await self._enter("create_camera", camera_id)
        camera = RemoteCamera(
            id=camera_id or generate_id(),
            name=fields.name,
            end_date=fields.end_date,
            reveal_delay_type=fields.reveal_delay_type,
            custom_reveal_at=fields.custom_reveal_at,
            max_photos_per_person=fields.max_photos_per_person,
            created_at=FIXED_NOW,
        )
        if self.conflict_on_create:
            self.cameras[camera.id] = camera
            raise RemoteConflictError("duplicate key value violates unique constraint")
        if camera.id in self.cameras:
            raise RemoteConflictError("duplicate key value violates unique constraint")
        self.cameras[camera.id] = camera
        return camera

    async def get_camera(self, camera_id: str) -> RemoteCamera | None:
        await self._enter("get_camera", camera_id)
        return self.cameras.get(camera_id)

    async def list_cameras(self) -> list[RemoteCamera]:
        await self._enter("list_cameras", None)
        return list(self.cameras.values())

    async def upload_photo(self, upload: PhotoUpload) -> RemotePhoto:
        await self._enter("upload_photo", upload.camera_id)
        if upload.camera_id not in self.cameras:
            raise RemoteNotFoundError(f"Camera not found: {upload.camera_id}")
        photo = RemotePhoto(
            id=generate_id(),
            camera_id=upload.camera_id,
            file_name=f"{upload.camera_id}/photo.jpg",
            public_url=f"https://cdn.example.com/{upload.camera_id}/photo.jpg",
            user_id=upload.user_id,
            user_name=upload.user_name,
            uploaded_at=FIXED_NOW,
            mime_type=upload.mime_type,
            file_size=len(upload.image_bytes),
            is_revealed=self.revealed,
        )
        self.photos.append(photo)
        return photo

    async def list_photos(
        self, camera_id: str, include_hidden: bool = False
    ) -> list[RemotePhoto]:
        await self._enter("list_photos", camera_id)
        photos = [photo for photo in self.photos if photo.camera_id == camera_id]
        if not include_hidden:
            photos = [photo for photo in photos if photo.is_revealed]
        return photos

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def _enter(self, name: str, argument: str | None) -> None:
        self.calls.append((name, argument))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if name in self.failures:
            raise self.failures[name]
        if argument in self.failing_ids:
            raise TransientNetworkError(f"connection reset while calling {name}")


@dataclass
class FakeHealthClient(HealthClient):
    """Fake health client returning a fixed payload."""

    payload: dict[str, object] = field(default_factory=lambda: {"status": "ok"})
    error: Exception | None = None
    delay_seconds: float = 0.0
    pings: int = 0

    async def ping(self) -> dict[str, object]:
        self.pings += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.payload


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_key="anon-key",
        backend_base_url="https://api.example.com",
        debug_token="debug-token",
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def remote_client() -> FakeRemoteDataClient:
    return FakeRemoteDataClient()


@pytest.fixture
def health_client() -> FakeHealthClient:
    return FakeHealthClient()


@pytest.fixture
def camera_store(storage: InMemoryKeyValueStorage) -> CameraStore:
    store = CameraStore(storage, clock=fixed_clock)
    asyncio.run(store.load())
    return store


@pytest.fixture
def guest_store(storage: InMemoryKeyValueStorage) -> GuestStore:
    store = GuestStore(storage, clock=fixed_clock)
    asyncio.run(store.load())
    return store


@pytest.fixture
def availability(health_client: FakeHealthClient) -> AvailabilityService:
    service = AvailabilityService(health_client=health_client, clock=fixed_clock)
    asyncio.run(service.check())
    return service


@pytest.fixture
def sync_service(
    camera_store: CameraStore,
    guest_store: GuestStore,
    remote_client: FakeRemoteDataClient,
    availability: AvailabilityService,
) -> SyncService:
    return SyncService(
        store=camera_store,
        guest_store=guest_store,
        remote=remote_client,
        availability=availability,
        remote_timeout_seconds=0.5,
    )


@pytest.fixture
def container(
    settings: Settings,
    camera_store: CameraStore,
    guest_store: GuestStore,
    availability: AvailabilityService,
    sync_service: SyncService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        camera_store=camera_store,
        guest_store=guest_store,
        availability_service=availability,
        sync_service=sync_service,
        close_resources=close_resources,
    )
