"""Local persisted store for cameras and their photos."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from znap_sync.domain.cameras import Camera, CameraDraft, Photo, PhotoDraft
from znap_sync.domain.errors import StoreNotLoadedError
from znap_sync.domain.identifiers import generate_id, is_valid_id
from znap_sync.services.schema import (
    camera_from_record,
    camera_to_record,
    photo_from_record,
    upgrade_camera_record,
)

_logger = logging.getLogger(__name__)

DEFAULT_CAMERAS_SLOT = "znap-cameras"


class KeyValueStorage(Protocol):
    """Durable string slots keyed by name."""

    async def get_item(self, key: str) -> str | None:
        """Return the stored value, or None if the slot is empty."""

    async def set_item(self, key: str, value: str) -> None:
        """Replace the value stored in a slot."""

    async def remove_item(self, key: str) -> None:
        """Delete a slot if it exists."""


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class LoadReport:
    """What happened while loading the camera slot."""

    cameras: int
    migrated_ids: dict[str, str] = field(default_factory=dict)
    upgraded_records: int = 0
    skipped_records: int = 0

    @property
    def migrated(self) -> bool:
        return bool(self.migrated_ids) or self.upgraded_records > 0


@dataclass
class CameraStore:
    """In-memory camera collection backed by a durable slot.

    Every mutation is written through to storage immediately.
    """

    storage: KeyValueStorage
    slot: str = DEFAULT_CAMERAS_SLOT
    clock: Callable[[], datetime] = utcnow
    _cameras: list[Camera] = field(default_factory=list, init=False, repr=False)
    _current: Camera | None = field(default=None, init=False, repr=False)
    _loaded: bool = field(default=False, init=False, repr=False)
    _unreadable: list[object] = field(default_factory=list, init=False, repr=False)

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def cameras(self) -> tuple[Camera, ...]:
        """Return the cameras in insertion order."""
        self._require_loaded()
        return tuple(self._cameras)

    @property
    def current(self) -> Camera | None:
        return self._current

    async def load(self) -> LoadReport:
        """Read the slot, migrating legacy ids and old record layouts."""
        stored = await self.storage.get_item(self.slot)
        self._cameras = []
        self._current = None
        self._unreadable = []
        self._loaded = True
        if not stored:
            return LoadReport(cameras=0)

        try:
            records = json.loads(stored)
        except json.JSONDecodeError:
            _logger.exception("Camera slot %s is not valid JSON", self.slot)
            return LoadReport(cameras=0)
        if not isinstance(records, list):
            _logger.warning("Camera slot %s does not hold a list", self.slot)
            return LoadReport(cameras=0)

        now = self.clock()
        migrated_ids: dict[str, str] = {}
        upgraded = 0
        skipped = 0
        for raw in records:
            if not isinstance(raw, dict):
                self._unreadable.append(raw)
                skipped += 1
                continue
            try:
                camera, record_migrations, record_upgraded = _restore_camera(
                    raw, now
                )
            except (AttributeError, KeyError, TypeError, ValueError):
                _logger.warning(
                    "Skipping unreadable camera record id=%s", raw.get("id"),
                    exc_info=True,
                )
                self._unreadable.append(raw)
                skipped += 1
                continue
            migrated_ids.update(record_migrations)
            upgraded += int(record_upgraded)
            self._cameras.append(camera)

        report = LoadReport(
            cameras=len(self._cameras),
            migrated_ids=migrated_ids,
            upgraded_records=upgraded,
            skipped_records=skipped,
        )
        if report.migrated:
            _logger.info(
                "Saving migrated camera data: ids=%s upgraded_records=%s",
                len(migrated_ids),
                upgraded,
            )
            await self.save()
        return report

    async def save(self) -> None:
        """Write the full camera collection to the slot.

        Records that could not be read on load are written back untouched.
        """
        self._require_loaded()
        records: list[object] = [camera_to_record(camera) for camera in self._cameras]
        payload = json.dumps(records + self._unreadable)
        await self.storage.set_item(self.slot, payload)

    async def add_camera(
        self, draft: CameraDraft, explicit_id: str | None = None
    ) -> Camera:
        """Create a camera, append it, and persist the collection."""
        self._require_loaded()
        camera = Camera.from_draft(
            camera_id=explicit_id if explicit_id is not None else generate_id(),
            draft=draft,
            created_at=self.clock(),
        )
        self._cameras.append(camera)
        _logger.info(
            "Added camera id=%s name=%s explicit_id=%s",
            camera.id,
            camera.name,
            explicit_id is not None,
        )
        await self.save()
        return camera

    async def add_photo(self, camera_id: str, draft: PhotoDraft) -> Photo | None:
        """Append a photo to a camera.

        Returns None without touching storage when the camera is unknown.
        """
        camera = self.find_by_id(camera_id)
        if camera is None:
            _logger.warning("add_photo ignored for unknown camera id=%s", camera_id)
            return None
        photo = Photo(
            id=generate_id(),
            uri=draft.uri,
            taken_by=draft.taken_by,
            taken_at=draft.taken_at,
            is_revealed=camera.is_revealed_at(self.clock()),
        )
        camera.photos.append(photo)
        if self._current is not None and self._current.id == camera_id:
            self._current = camera
        await self.save()
        return photo

    def find_by_id(self, camera_id: str) -> Camera | None:
        self._require_loaded()
        for camera in self._cameras:
            if camera.id == camera_id:
                return camera
        return None

    def set_current(self, camera: Camera | None) -> None:
        self._current = camera

    async def clear(self) -> None:
        """Delete every cached camera and the durable slot."""
        await self.storage.remove_item(self.slot)
        self._cameras = []
        self._current = None
        self._unreadable = []
        self._loaded = True

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise StoreNotLoadedError("CameraStore.load() must be awaited first")


def _restore_camera(
    raw: dict[str, object], now: datetime
) -> tuple[Camera, dict[str, str], bool]:
    record, upgraded = upgrade_camera_record(raw)
    migrated_ids: dict[str, str] = {}

    camera_id = record.get("id")
    if not is_valid_id(camera_id):
        new_id = generate_id()
        _logger.info("Migrating camera id from %s to %s", camera_id, new_id)
        migrated_ids[str(camera_id)] = new_id
        camera_id = new_id
    camera = camera_from_record(record, camera_id=str(camera_id))

    revealed = camera.is_revealed_at(now)
    raw_photos = record.get("photos") or []
    if not isinstance(raw_photos, list):
        raise TypeError("photos must be a list")
    for photo_record in raw_photos:
        photo_id = photo_record.get("id")
        if not is_valid_id(photo_id):
            new_id = generate_id()
            migrated_ids[str(photo_id)] = new_id
            photo_id = new_id
        camera.photos.append(
            photo_from_record(photo_record, photo_id=str(photo_id), revealed=revealed)
        )
    return camera, migrated_ids, upgraded
