"""Persisted record layout and versioned migrations for local slots.

Camera records are stored with the camelCase field names used by earlier app
builds so existing slots stay readable. Every record written carries a
``schemaVersion``; records from builds that predate versioning are detected by
their fields and upgraded one step at a time.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from znap_sync.domain.cameras import Camera, Photo
from znap_sync.domain.guests import GuestSession

CURRENT_SCHEMA_VERSION = 3

_Record = dict[str, object]


def _v1_to_v2(record: _Record) -> _Record:
    upgraded = dict(record)
    legacy_delay = upgraded.pop("revealDelay", None)
    if not upgraded.get("revealDelayType"):
        upgraded["revealDelayType"] = (
            "immediate" if legacy_delay == "during" else "24h"
        )
    return upgraded


def _v2_to_v3(record: _Record) -> _Record:
    upgraded = dict(record)
    upgraded["paidUpgrade"] = bool(upgraded.get("paidUpgrade") or False)
    if not upgraded.get("startDate"):
        upgraded["startDate"] = upgraded.get("createdAt")
    return upgraded


_MIGRATIONS: dict[int, Callable[[_Record], _Record]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
}


def schema_version(record: _Record) -> int:
    """Return the schema version a stored camera record was written with."""
    version = record.get("schemaVersion")
    if isinstance(version, int):
        return version
    if record.get("revealDelayType"):
        return 2
    return 1


def upgrade_camera_record(record: _Record) -> tuple[_Record, bool]:
    """Upgrade a stored camera record to the current schema.

    Returns the upgraded record and whether any step was applied.
    """
    version = schema_version(record)
    upgraded = dict(record)
    changed = False
    while version < CURRENT_SCHEMA_VERSION:
        upgraded = _MIGRATIONS[version](upgraded)
        version += 1
        changed = True
    upgraded["schemaVersion"] = version
    return upgraded, changed


def parse_datetime(value: object) -> datetime | None:
    """Parse an ISO-8601 string into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value)
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _require_datetime(record: _Record, key: str) -> datetime:
    parsed = parse_datetime(record.get(key))
    if parsed is None:
        raise ValueError(f"Missing {key}")
    return parsed


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def photo_to_record(photo: Photo) -> _Record:
    return {
        "id": photo.id,
        "uri": photo.uri,
        "takenBy": photo.taken_by,
        "takenAt": format_datetime(photo.taken_at),
        "isRevealed": photo.is_revealed,
    }


def camera_to_record(camera: Camera) -> _Record:
    """Serialize a camera into the current persisted layout."""
    return {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "id": camera.id,
        "name": camera.name,
        "startDate": format_datetime(camera.start_date),
        "endDate": format_datetime(camera.end_date),
        "maxPhotosPerPerson": camera.max_photos_per_person,
        "allowCameraRoll": camera.allow_camera_roll,
        "revealDelayType": camera.reveal_delay_type,
        "customRevealAt": format_datetime(camera.custom_reveal_at),
        "filter": camera.filter,
        "maxGuests": camera.max_guests,
        "photos": [photo_to_record(photo) for photo in camera.photos],
        "isActive": camera.is_active,
        "createdAt": format_datetime(camera.created_at),
        "paidUpgrade": camera.paid_upgrade,
    }


def camera_from_record(record: _Record, camera_id: str) -> Camera:
    """Build a camera, without photos, from a record at the current schema."""
    created_at = _require_datetime(record, "createdAt")
    return Camera(
        id=camera_id,
        name=str(record.get("name", "")),
        start_date=parse_datetime(record.get("startDate")) or created_at,
        end_date=_require_datetime(record, "endDate"),
        max_photos_per_person=int(record.get("maxPhotosPerPerson", 20)),
        allow_camera_roll=bool(record.get("allowCameraRoll", True)),
        reveal_delay_type=str(record.get("revealDelayType", "24h")),
        custom_reveal_at=parse_datetime(record.get("customRevealAt")),
        filter=str(record.get("filter", "none")),
        max_guests=int(record.get("maxGuests", 20)),
        is_active=bool(record.get("isActive", True)),
        created_at=created_at,
        paid_upgrade=bool(record.get("paidUpgrade", False)),
    )


def photo_from_record(record: _Record, photo_id: str, revealed: bool) -> Photo:
    return Photo(
        id=photo_id,
        uri=str(record.get("uri", "")),
        taken_by=str(record.get("takenBy", "")),
        taken_at=_require_datetime(record, "takenAt"),
        is_revealed=revealed,
    )


def session_to_record(session: GuestSession) -> _Record:
    return {
        "cameraId": session.camera_id,
        "guestName": session.guest_name,
        "email": session.email,
        "joinedAt": format_datetime(session.joined_at),
        "isActive": session.is_active,
    }


def session_from_record(record: _Record) -> GuestSession:
    email = record.get("email")
    return GuestSession(
        camera_id=str(record["cameraId"]),
        guest_name=str(record.get("guestName", "")),
        email=str(email) if email else None,
        joined_at=_require_datetime(record, "joinedAt"),
        is_active=bool(record.get("isActive", False)),
    )
