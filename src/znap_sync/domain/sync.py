"""Result values reported by synchronization operations."""

from dataclasses import dataclass, field
from enum import StrEnum

from znap_sync.domain.cameras import Camera, Photo
from znap_sync.domain.photos import RemotePhoto


class SyncStatus(StrEnum):
    """Terminal state of a batch operation."""

    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    OFFLINE = "offline"


class UploadStatus(StrEnum):
    """Outcome of a photo upload attempt."""

    UPLOADED = "uploaded"
    OFFLINE = "offline"
    FAILED = "failed"


@dataclass(frozen=True)
class EnsureResult:
    """Outcome of making sure one camera exists remotely."""

    camera_id: str
    success: bool
    created: bool = False
    error: str | None = None
    error_kind: str | None = None


@dataclass(frozen=True)
class ItemResult:
    """Per-item entry of a batch report."""

    camera_id: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class SyncReport:
    """Aggregate result of pushing local cameras to the remote."""

    synced: int = 0
    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    items: list[ItemResult] = field(default_factory=list)
    status: SyncStatus = SyncStatus.COMPLETED

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.COMPLETED


@dataclass(frozen=True)
class ImportReport:
    """Aggregate result of importing remote cameras into the local cache."""

    imported: int = 0
    errors: list[str] = field(default_factory=list)
    items: list[ItemResult] = field(default_factory=list)
    status: SyncStatus = SyncStatus.COMPLETED

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.COMPLETED


@dataclass(frozen=True)
class UploadResult:
    """Outcome of uploading a photo with camera synchronization."""

    status: UploadStatus
    photo: RemotePhoto | None = None
    local_photo: Photo | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.UPLOADED

    @property
    def offline(self) -> bool:
        return self.status == UploadStatus.OFFLINE


@dataclass(frozen=True)
class CreateCameraResult:
    """Outcome of creating a camera locally and, when possible, remotely."""

    camera: Camera | None
    synced: bool
    error: str | None = None


@dataclass(frozen=True)
class PhotoListing:
    """Photos of one camera and where they were read from."""

    photos: list[RemotePhoto] | list[Photo]
    source: str
    hidden_count: int = 0


@dataclass(frozen=True)
class IdAuditEntry:
    """Identifier health of one locally cached camera."""

    camera_id: str
    name: str
    valid: bool
    photo_count: int
    legacy_photo_ids: list[str] = field(default_factory=list)
