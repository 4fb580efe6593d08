"""Pydantic models for API request bodies."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from znap_sync.domain.cameras import CameraDraft


class CreateCameraRequest(BaseModel):
    """Camera settings chosen in the create-camera flow."""

    name: str = Field(min_length=1)
    start_date: datetime | None = None
    end_date: datetime
    max_photos_per_person: Literal[20, 25, 30, 50] = 20
    allow_camera_roll: bool = True
    reveal_delay_type: Literal["immediate", "12h", "24h", "custom"] = "24h"
    custom_reveal_at: datetime | None = None
    filter: Literal["none", "disposable"] = "none"
    max_guests: int = Field(default=20, ge=1)
    paid_upgrade: bool = False

    def to_draft(self, now: datetime) -> CameraDraft:
        return CameraDraft(
            name=self.name,
            start_date=self.start_date or now,
            end_date=self.end_date,
            max_photos_per_person=self.max_photos_per_person,
            allow_camera_roll=self.allow_camera_roll,
            reveal_delay_type=self.reveal_delay_type,
            custom_reveal_at=self.custom_reveal_at,
            filter=self.filter,
            max_guests=self.max_guests,
            paid_upgrade=self.paid_upgrade,
        )


class UploadPhotoRequest(BaseModel):
    """Base64-encoded photo upload."""

    image_base64: str = Field(min_length=1)
    mime_type: str = "image/jpeg"
    user_id: str | None = None
    user_name: str | None = None


class JoinCameraRequest(BaseModel):
    """Guest details entered when joining a camera."""

    guest_name: str = Field(min_length=1)
    email: str | None = None
