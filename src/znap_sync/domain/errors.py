"""Error types raised by stores and remote adapters."""


class ZnapSyncError(Exception):
    """Base class for synchronizer errors."""


class StoreNotLoadedError(ZnapSyncError, RuntimeError):
    """Raised when a store is used before load() has completed."""


class RemoteError(ZnapSyncError):
    """A remote data operation failed."""

    kind = "remote"


class RemoteNotFoundError(RemoteError):
    """The referenced remote record does not exist."""

    kind = "not_found"


class RemoteConflictError(RemoteError):
    """A remote record with the same identifier already exists."""

    kind = "conflict"


class RemoteValidationError(RemoteError):
    """The remote side rejected the payload."""

    kind = "validation"


class RemoteStorageError(RemoteError):
    """Object storage rejected an upload or delete."""

    kind = "storage"


class TransientNetworkError(RemoteError):
    """The remote could not be reached; the call may be retried later."""

    kind = "transient"


class RemotePhotoLimitError(RemoteError):
    """The guest already uploaded the camera's per-person photo allowance."""

    kind = "photo_limit"


class JoinRejectedError(ZnapSyncError, ValueError):
    """A camera refused a new guest session."""
