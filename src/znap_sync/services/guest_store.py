"""Local persisted store for guest sessions."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from znap_sync.domain.cameras import Camera
from znap_sync.domain.errors import JoinRejectedError, StoreNotLoadedError
from znap_sync.domain.guests import GuestSession
from znap_sync.services.camera_store import KeyValueStorage, utcnow
from znap_sync.services.schema import session_from_record, session_to_record

_logger = logging.getLogger(__name__)

DEFAULT_GUESTS_SLOT = "znap-guest-sessions"


@dataclass
class GuestStore:
    """Tracks which camera the local user has joined, one session per camera."""

    storage: KeyValueStorage
    slot: str = DEFAULT_GUESTS_SLOT
    clock: Callable[[], datetime] = utcnow
    _sessions: list[GuestSession] = field(default_factory=list, init=False)
    _current: GuestSession | None = field(default=None, init=False)
    _loaded: bool = field(default=False, init=False)

    @property
    def sessions(self) -> tuple[GuestSession, ...]:
        self._require_loaded()
        return tuple(self._sessions)

    @property
    def current(self) -> GuestSession | None:
        return self._current

    async def load(self) -> None:
        """Read sessions from the slot and pick the active one as current."""
        stored = await self.storage.get_item(self.slot)
        self._sessions = []
        self._current = None
        self._loaded = True
        if not stored:
            return
        try:
            records = json.loads(stored)
        except json.JSONDecodeError:
            _logger.exception("Guest slot %s is not valid JSON", self.slot)
            return
        for record in records if isinstance(records, list) else []:
            try:
                self._sessions.append(session_from_record(record))
            except (AttributeError, KeyError, TypeError, ValueError):
                _logger.warning("Skipping unreadable guest session", exc_info=True)
        self._current = next(
            (session for session in self._sessions if session.is_active), None
        )

    async def save(self) -> None:
        self._require_loaded()
        payload = json.dumps([session_to_record(s) for s in self._sessions])
        await self.storage.set_item(self.slot, payload)

    async def join_camera(
        self, camera: Camera, guest_name: str, email: str | None = None
    ) -> GuestSession:
        """Join a camera if it is still active and has room for another guest.

        Raises JoinRejectedError when the camera is inactive or full.
        """
        if not camera.is_active:
            raise JoinRejectedError("Camera is no longer active")
        if self.guest_count(camera.id, exclude=guest_name) >= camera.max_guests:
            raise JoinRejectedError("Camera is full")
        return await self.create_session(camera.id, guest_name, email)

    def guest_count(self, camera_id: str, exclude: str | None = None) -> int:
        """Count distinct guests with an active session on a camera."""
        self._require_loaded()
        return len(
            {
                s.guest_name
                for s in self._sessions
                if s.camera_id == camera_id and s.is_active and s.guest_name != exclude
            }
        )

    async def create_session(
        self, camera_id: str, guest_name: str, email: str | None = None
    ) -> GuestSession:
        """Join a camera, replacing any earlier session for it."""
        self._require_loaded()
        session = GuestSession(
            camera_id=camera_id,
            guest_name=guest_name,
            email=email,
            joined_at=self.clock(),
            is_active=True,
        )
        self._sessions = [s for s in self._sessions if s.camera_id != camera_id]
        self._sessions.append(session)
        self._current = session
        await self.save()
        return session

    def get_session(self, camera_id: str) -> GuestSession | None:
        """Return the active session for a camera, if any."""
        self._require_loaded()
        for session in self._sessions:
            if session.camera_id == camera_id and session.is_active:
                return session
        return None

    async def clear_session(self) -> None:
        """Sign out of the current camera."""
        self._require_loaded()
        current = self._current
        self._current = None
        if current is None:
            return
        self._sessions = [
            replace(s, is_active=False) if s.camera_id == current.camera_id else s
            for s in self._sessions
        ]
        await self.save()

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise StoreNotLoadedError("GuestStore.load() must be awaited first")
