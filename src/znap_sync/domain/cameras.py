"""Domain models for cameras and their locally captured photos."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal

RevealDelayType = Literal["immediate", "12h", "24h", "custom"]
CameraFilter = Literal["none", "disposable"]

PHOTO_LIMITS: tuple[int, ...] = (20, 25, 30, 50)
REVEAL_DELAY_TYPES: tuple[str, ...] = ("immediate", "12h", "24h", "custom")
CAMERA_FILTERS: tuple[str, ...] = ("none", "disposable")
DEFAULT_MAX_GUESTS = 20

_REVEAL_DELAYS = {
    "12h": timedelta(hours=12),
    "24h": timedelta(hours=24),
}
_FALLBACK_DELAY = timedelta(hours=24)


def reveal_time(
    reveal_delay_type: str,
    end_date: datetime,
    custom_reveal_at: datetime | None = None,
) -> datetime | None:
    """Return when photos become visible, or None when they never are hidden."""
    if reveal_delay_type == "immediate":
        return None
    if reveal_delay_type in _REVEAL_DELAYS:
        return end_date + _REVEAL_DELAYS[reveal_delay_type]
    if reveal_delay_type == "custom" and custom_reveal_at is not None:
        return custom_reveal_at
    return end_date + _FALLBACK_DELAY


def is_revealed(
    reveal_delay_type: str,
    end_date: datetime,
    custom_reveal_at: datetime | None,
    now: datetime,
) -> bool:
    """Return whether photos of a camera with this policy are visible at `now`."""
    revealed_at = reveal_time(reveal_delay_type, end_date, custom_reveal_at)
    return revealed_at is None or now >= revealed_at


@dataclass(frozen=True)
class RevealStatus:
    """Reveal state of a camera at a point in time."""

    camera_id: str
    revealed: bool
    reveal_time: datetime | None
    reveal_delay_type: str


@dataclass(frozen=True)
class PhotoDraft:
    """Photo data supplied by a caller before an id is assigned."""

    uri: str
    taken_by: str
    taken_at: datetime


@dataclass(frozen=True)
class Photo:
    """A photo held in the local cache."""

    id: str
    uri: str
    taken_by: str
    taken_at: datetime
    is_revealed: bool


@dataclass(frozen=True)
class RemoteCameraFields:
    """Camera columns stored by the remote backend."""

    name: str
    end_date: datetime
    reveal_delay_type: str
    max_photos_per_person: int
    custom_reveal_at: datetime | None = None


@dataclass(frozen=True)
class RemoteCamera:
    """A camera row as returned by the remote backend."""

    id: str
    name: str
    end_date: datetime
    reveal_delay_type: str
    max_photos_per_person: int
    created_at: datetime
    custom_reveal_at: datetime | None = None
    created_by: str | None = None


@dataclass(frozen=True)
class CameraDraft:
    """Camera settings chosen by a user before the camera exists."""

    name: str
    start_date: datetime
    end_date: datetime
    max_photos_per_person: int = 20
    allow_camera_roll: bool = True
    reveal_delay_type: RevealDelayType = "24h"
    custom_reveal_at: datetime | None = None
    filter: CameraFilter = "none"
    max_guests: int = DEFAULT_MAX_GUESTS
    is_active: bool = True
    paid_upgrade: bool = False

    def __post_init__(self) -> None:
        if self.max_photos_per_person not in PHOTO_LIMITS:
            raise ValueError(
                f"max_photos_per_person must be one of {PHOTO_LIMITS}, "
                f"got {self.max_photos_per_person}"
            )
        if self.reveal_delay_type not in REVEAL_DELAY_TYPES:
            raise ValueError(f"Unknown reveal delay type: {self.reveal_delay_type}")
        if self.reveal_delay_type == "custom" and self.custom_reveal_at is None:
            raise ValueError("custom_reveal_at is required for a custom reveal")
        if self.filter not in CAMERA_FILTERS:
            raise ValueError(f"Unknown filter: {self.filter}")
        if self.max_guests < 1:
            raise ValueError("max_guests must be positive")

    @classmethod
    def from_remote(cls, remote: RemoteCamera) -> "CameraDraft":
        """Build local settings for a camera known only to the backend."""
        reveal_delay_type = remote.reveal_delay_type
        if reveal_delay_type not in REVEAL_DELAY_TYPES:
            reveal_delay_type = "immediate"
        if reveal_delay_type == "custom" and remote.custom_reveal_at is None:
            reveal_delay_type = "24h"
        max_photos = remote.max_photos_per_person
        return cls(
            name=remote.name,
            start_date=remote.created_at,
            end_date=remote.end_date,
            max_photos_per_person=max_photos if max_photos in PHOTO_LIMITS else 20,
            reveal_delay_type=reveal_delay_type,  # type: ignore[arg-type]
            custom_reveal_at=remote.custom_reveal_at,
        )


@dataclass
class Camera:
    """A photo-sharing event held in the local cache."""

    id: str
    name: str
    start_date: datetime
    end_date: datetime
    max_photos_per_person: int
    allow_camera_roll: bool
    reveal_delay_type: str
    filter: str
    max_guests: int
    is_active: bool
    created_at: datetime
    custom_reveal_at: datetime | None = None
    paid_upgrade: bool = False
    photos: list[Photo] = field(default_factory=list)

    @classmethod
    def from_draft(
        cls, camera_id: str, draft: CameraDraft, created_at: datetime
    ) -> "Camera":
        return cls(
            id=camera_id,
            name=draft.name,
            start_date=draft.start_date,
            end_date=draft.end_date,
            max_photos_per_person=draft.max_photos_per_person,
            allow_camera_roll=draft.allow_camera_roll,
            reveal_delay_type=draft.reveal_delay_type,
            custom_reveal_at=draft.custom_reveal_at,
            filter=draft.filter,
            max_guests=draft.max_guests,
            is_active=draft.is_active,
            paid_upgrade=draft.paid_upgrade,
            created_at=created_at,
        )

    def is_revealed_at(self, now: datetime) -> bool:
        """Return whether this camera's photos are visible at `now`."""
        return is_revealed(
            self.reveal_delay_type, self.end_date, self.custom_reveal_at, now
        )

    def reveal_status(self, now: datetime) -> RevealStatus:
        """Return the reveal state of this camera at `now`."""
        return RevealStatus(
            camera_id=self.id,
            revealed=self.is_revealed_at(now),
            reveal_time=reveal_time(
                self.reveal_delay_type, self.end_date, self.custom_reveal_at
            ),
            reveal_delay_type=self.reveal_delay_type,
        )


def remote_fields(source: Camera | CameraDraft) -> RemoteCameraFields:
    """Select the columns the backend stores for a camera."""
    return RemoteCameraFields(
        name=source.name,
        end_date=source.end_date,
        reveal_delay_type=source.reveal_delay_type,
        custom_reveal_at=source.custom_reveal_at,
        max_photos_per_person=source.max_photos_per_person,
    )
