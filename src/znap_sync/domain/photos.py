"""Remote photo models and the mapping onto the local representation."""

from dataclasses import dataclass
from datetime import datetime

from znap_sync.domain.cameras import PhotoDraft

ANONYMOUS_USER_ID = "anonymous"
ANONYMOUS_USER_NAME = "Anonymous User"


@dataclass(frozen=True)
class PhotoUpload:
    """Image bytes and attribution for a remote upload."""

    camera_id: str
    image_bytes: bytes
    mime_type: str
    user_id: str = ANONYMOUS_USER_ID
    user_name: str = ANONYMOUS_USER_NAME


@dataclass(frozen=True)
class RemotePhoto:
    """A photo row as returned by the remote backend."""

    id: str
    camera_id: str
    file_name: str
    public_url: str
    user_id: str
    user_name: str
    uploaded_at: datetime
    mime_type: str | None = None
    file_size: int | None = None
    is_revealed: bool = True


def photo_draft_from_remote(remote: RemotePhoto) -> PhotoDraft:
    """Map a remote photo onto the local photo shape."""
    return PhotoDraft(
        uri=remote.public_url,
        taken_by=remote.user_name,
        taken_at=remote.uploaded_at,
    )
