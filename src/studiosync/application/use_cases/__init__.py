"""Application use cases - business logic orchestration."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

TRequest = TypeVar("TRequest")
TResponse = TypeVar("TResponse")


class UseCase(ABC, Generic[TRequest, TResponse]):
    """Base class for all use cases following command pattern."""

    @abstractmethod
    async def execute(self, request: TRequest) -> TResponse:
        """Execute the use case with the given request."""
        pass


# Import concrete use cases (after UseCase definition to avoid circular imports)
from studiosync.application.use_cases.cleanup_sync_deletions import (  # noqa: E402
    CleanupSyncDeletionsRequest,
    CleanupSyncDeletionsResponse,
    CleanupSyncDeletionsUseCase,
)
from studiosync.application.use_cases.delete_track import (  # noqa: E402
    DeleteTrackRequest,
    DeleteTrackUseCase,
)
from studiosync.application.use_cases.download_generation import (  # noqa: E402
    DownloadGenerationRequest,
    DownloadGenerationUseCase,
)
from studiosync.application.use_cases.repair_track_storage import (  # noqa: E402
    RepairTrackStorageRequest,
    RepairTrackStorageResponse,
    RepairTrackStorageUseCase,
    StorageRepairItem,
)
from studiosync.application.use_cases.sync_generated_tracks import (  # noqa: E402
    SyncGeneratedTracksRequest,
    SyncGeneratedTracksResponse,
    SyncGeneratedTracksUseCase,
    SyncSummary,
)

__all__ = [
    "CleanupSyncDeletionsRequest",
    "CleanupSyncDeletionsResponse",
    "CleanupSyncDeletionsUseCase",
    "DeleteTrackRequest",
    "DeleteTrackUseCase",
    "DownloadGenerationRequest",
    "DownloadGenerationUseCase",
    "RepairTrackStorageRequest",
    "RepairTrackStorageResponse",
    "RepairTrackStorageUseCase",
    "StorageRepairItem",
    "SyncGeneratedTracksRequest",
    "SyncGeneratedTracksResponse",
    "SyncGeneratedTracksUseCase",
    "SyncSummary",
    "UseCase",
]
