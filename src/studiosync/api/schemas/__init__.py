"""API request and response models."""

from studiosync.api.schemas.sync import (
    CleanupOut,
    DeletedTrackOut,
    DownloadOut,
    DownloadRequestIn,
    StorageRepairOut,
    SuccessEnvelope,
    SyncRunOut,
)

__all__ = [
    "CleanupOut",
    "DeletedTrackOut",
    "DownloadOut",
    "DownloadRequestIn",
    "StorageRepairOut",
    "SuccessEnvelope",
    "SyncRunOut",
]
