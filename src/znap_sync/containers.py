"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import AsyncClient

from znap_sync.adapters.file_storage import FileKeyValueStorage
from znap_sync.adapters.health_client import HttpxHealthClient
from znap_sync.adapters.supabase_remote_client import SupabaseRemoteClient
from znap_sync.config import Settings
from znap_sync.services.availability import AvailabilityService
from znap_sync.services.camera_store import CameraStore
from znap_sync.services.guest_store import GuestStore
from znap_sync.services.sync import SyncService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    camera_store: CameraStore
    guest_store: GuestStore
    availability_service: AvailabilityService
    sync_service: SyncService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = AsyncClient(
        resolved_settings.supabase_url, resolved_settings.supabase_key
    )
    storage = FileKeyValueStorage(resolved_settings.data_dir)
    camera_store = CameraStore(storage, slot=resolved_settings.cameras_slot)
    guest_store = GuestStore(storage, slot=resolved_settings.guests_slot)
    health_client = HttpxHealthClient.create(
        resolved_settings.backend_base_url,
        timeout_seconds=resolved_settings.probe_timeout_seconds,
    )
    availability_service = AvailabilityService(
        health_client=health_client,
        timeout_seconds=resolved_settings.probe_timeout_seconds,
        max_age_seconds=resolved_settings.probe_max_age_seconds,
    )
    remote_client = SupabaseRemoteClient(
        supabase_client, bucket=resolved_settings.photo_bucket
    )
    sync_service = SyncService(
        store=camera_store,
        guest_store=guest_store,
        remote=remote_client,
        availability=availability_service,
        remote_timeout_seconds=resolved_settings.remote_timeout_seconds,
    )

    async def close_resources() -> None:
        await health_client.close()

    return AppContainer(
        settings=resolved_settings,
        camera_store=camera_store,
        guest_store=guest_store,
        availability_service=availability_service,
        sync_service=sync_service,
        close_resources=close_resources,
    )
