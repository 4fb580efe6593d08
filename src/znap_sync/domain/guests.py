"""Domain models for guest membership."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class GuestSession:
    """A local user's membership in one camera."""

    camera_id: str
    guest_name: str
    joined_at: datetime
    email: str | None = None
    is_active: bool = True
