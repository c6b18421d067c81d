"""Application services shared by the sync use cases."""

from studiosync.application.services.download_batcher import DownloadBatcher, DownloadReport
from studiosync.application.services.sync_classifier import (
    SyncClassifier,
    SyncError,
    SyncPlan,
    SyncResult,
)

__all__ = [
    "DownloadBatcher",
    "DownloadReport",
    "SyncClassifier",
    "SyncError",
    "SyncPlan",
    "SyncResult",
]
