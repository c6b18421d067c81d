"""Response models for the sync endpoints.

The frontend reads generationId / trackId in camelCase inside sync_results, everything
else is snake_case. Models are built with populate_by_name so the routers can fill
them with the Python field names.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from studiosync.application.services import SyncError, SyncResult
from studiosync.application.use_cases import (
    CleanupSyncDeletionsResponse,
    RepairTrackStorageResponse,
    SyncGeneratedTracksResponse,
)
from studiosync.domain.ports import DownloadResult

T = TypeVar("T")


class SuccessEnvelope(BaseModel, Generic[T]):
    """{"success": true, "data": ...}"""

    success: bool = True
    data: T


class SyncResultItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generation_id: str = Field(alias="generationId")
    action: str
    track_id: str | None = Field(default=None, alias="trackId")
    service: str

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResultItem":
        return cls(
            generation_id=result.generation_id,
            action=result.action.value,
            track_id=result.track_id,
            service=result.service,
        )


class SyncErrorItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generation_id: str = Field(alias="generationId")
    error: str
    action: str

    @classmethod
    def from_error(cls, error: SyncError) -> "SyncErrorItem":
        return cls(
            generation_id=error.generation_id, error=error.error, action=error.action
        )


class SyncSummaryOut(BaseModel):
    total_checked: int
    tracks_created: int
    tracks_updated: int
    successful_downloads: int
    failed_operations: int
    errors: list[SyncErrorItem]


class SyncRunOut(BaseModel):
    sync_results: list[SyncResultItem]
    summary: SyncSummaryOut

    @classmethod
    def from_response(cls, response: SyncGeneratedTracksResponse) -> "SyncRunOut":
        summary = response.summary
        return cls(
            sync_results=[SyncResultItem.from_result(r) for r in response.sync_results],
            summary=SyncSummaryOut(
                total_checked=summary.total_checked,
                tracks_created=summary.tracks_created,
                tracks_updated=summary.tracks_updated,
                successful_downloads=summary.successful_downloads,
                failed_operations=summary.failed_operations,
                errors=[SyncErrorItem.from_error(e) for e in summary.errors],
            ),
        )


class CleanupOut(BaseModel):
    deleted_tracks_updated: int
    linked_generations_marked: int
    orphan_generations_marked: int

    @classmethod
    def from_response(cls, response: CleanupSyncDeletionsResponse) -> "CleanupOut":
        return cls(
            deleted_tracks_updated=response.deleted_tracks_updated,
            linked_generations_marked=response.linked_generations_marked,
            orphan_generations_marked=response.orphan_generations_marked,
        )


class StorageRepairItemOut(BaseModel):
    track_id: str
    generation_id: str
    title: str
    success: bool
    error: str | None = None


class StorageRepairOut(BaseModel):
    total: int
    successes: int
    failures: int
    skipped: int
    processed: list[StorageRepairItemOut]

    @classmethod
    def from_response(cls, response: RepairTrackStorageResponse) -> "StorageRepairOut":
        return cls(
            total=response.total,
            successes=response.successes,
            failures=response.failures,
            skipped=response.skipped,
            processed=[
                StorageRepairItemOut(
                    track_id=item.track_id,
                    generation_id=item.generation_id,
                    title=item.title,
                    success=item.success,
                    error=item.error,
                )
                for item in response.processed
            ],
        )


class DownloadRequestIn(BaseModel):
    external_url: str | None = None


class DownloadOut(BaseModel):
    generation_id: str
    track_id: str | None
    local_audio_url: str
    storage_path: str
    file_size: int
    downloaded_at: datetime

    @classmethod
    def from_result(cls, result: DownloadResult) -> "DownloadOut":
        return cls(
            generation_id=result.generation_id,
            track_id=result.track_id,
            local_audio_url=result.local_audio_url,
            storage_path=result.storage_path,
            file_size=result.file_size,
            downloaded_at=result.downloaded_at,
        )


class DeletedTrackOut(BaseModel):
    track_id: str
    deleted_at: str | None
    metadata: dict[str, Any]
