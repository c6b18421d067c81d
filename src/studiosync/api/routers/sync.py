"""Sync endpoints: reconcile generations, repair deletions and storage, downloads."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends

from studiosync.api.dependencies import (
    CurrentUser,
    get_cleanup_use_case,
    get_download_use_case,
    get_storage_repair_use_case,
    get_sync_use_case,
)
from studiosync.api.schemas import (
    CleanupOut,
    DownloadOut,
    DownloadRequestIn,
    StorageRepairOut,
    SuccessEnvelope,
    SyncRunOut,
)
from studiosync.application.use_cases import (
    CleanupSyncDeletionsRequest,
    CleanupSyncDeletionsUseCase,
    DownloadGenerationRequest,
    DownloadGenerationUseCase,
    RepairTrackStorageRequest,
    RepairTrackStorageUseCase,
    SyncGeneratedTracksRequest,
    SyncGeneratedTracksUseCase,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


# Hey future me - a 200 here does NOT mean every job worked! Per-job failures are in
# summary.errors / failed_operations. Only a broken credential (401), a dead auth provider
# (502) or a failure before the first job was touched (500) turns into an error response.
@router.post(
    "/generated-tracks",
    response_model=SuccessEnvelope[SyncRunOut],
    response_model_exclude_none=True,
)
async def sync_generated_tracks(
    user: CurrentUser,
    use_case: Annotated[SyncGeneratedTracksUseCase, Depends(get_sync_use_case)],
) -> SuccessEnvelope[SyncRunOut]:
    """Reconcile the caller's completed generations with the track catalog."""
    response = await use_case.execute(SyncGeneratedTracksRequest(user_id=user.id))
    return SuccessEnvelope[SyncRunOut](data=SyncRunOut.from_response(response))


@router.post("/cleanup-deletions", response_model=SuccessEnvelope[CleanupOut])
async def cleanup_sync_deletions(
    user: CurrentUser,
    use_case: Annotated[CleanupSyncDeletionsUseCase, Depends(get_cleanup_use_case)],
) -> SuccessEnvelope[CleanupOut]:
    """Make sure no soft-deleted track can be restored by a later sync."""
    response = await use_case.execute(CleanupSyncDeletionsRequest(user_id=user.id))
    return SuccessEnvelope[CleanupOut](data=CleanupOut.from_response(response))


@router.post(
    "/generations/{generation_id}/download",
    response_model=SuccessEnvelope[DownloadOut],
)
async def download_generation(
    generation_id: str,
    user: CurrentUser,
    use_case: Annotated[DownloadGenerationUseCase, Depends(get_download_use_case)],
    body: Annotated[DownloadRequestIn | None, Body()] = None,
) -> SuccessEnvelope[DownloadOut]:
    """Download the audio of one generation now instead of waiting for the next sync."""
    result = await use_case.execute(
        DownloadGenerationRequest(
            user_id=user.id,
            generation_id=generation_id,
            external_url=body.external_url if body else None,
        )
    )
    return SuccessEnvelope[DownloadOut](data=DownloadOut.from_result(result))


@router.post("/track-storage", response_model=SuccessEnvelope[StorageRepairOut])
async def repair_track_storage(
    user: CurrentUser,
    use_case: Annotated[RepairTrackStorageUseCase, Depends(get_storage_repair_use_case)],
) -> SuccessEnvelope[StorageRepairOut]:
    """Download audio for tracks that still play from a provider link."""
    response = await use_case.execute(RepairTrackStorageRequest(user_id=user.id))
    return SuccessEnvelope[StorageRepairOut](data=StorageRepairOut.from_response(response))
