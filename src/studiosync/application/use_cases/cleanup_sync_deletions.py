"""Use case for repairing sync state after user deletions."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from studiosync.application.use_cases import UseCase
from studiosync.domain.entities import SyncState
from studiosync.domain.ports import IGenerationJobRepository, ITrackRepository

logger = logging.getLogger(__name__)


@dataclass
class CleanupSyncDeletionsRequest:
    user_id: str


@dataclass
class CleanupSyncDeletionsResponse:
    deleted_tracks_updated: int = 0
    linked_generations_marked: int = 0
    orphan_generations_marked: int = 0


# Hey future me - this is the repair pass for data written before deletions were handled
# atomically. Old soft-deleted tracks may lack prevent_sync_restore, their jobs may still be
# ACTIVE, and some jobs lost their track_id but still share the external_id with a deleted
# track. Any of those would let the next sync resurrect the track. The pass is idempotent:
# running it twice marks nothing the second time.
class CleanupSyncDeletionsUseCase(
    UseCase[CleanupSyncDeletionsRequest, CleanupSyncDeletionsResponse]
):
    """Blocks every user-deleted track from being restored by sync."""

    def __init__(
        self,
        job_repository: IGenerationJobRepository,
        track_repository: ITrackRepository,
    ) -> None:
        self._jobs = job_repository
        self._tracks = track_repository

    async def execute(
        self, request: CleanupSyncDeletionsRequest
    ) -> CleanupSyncDeletionsResponse:
        user_id = request.user_id
        response = CleanupSyncDeletionsResponse()
        now = datetime.now(UTC)

        deleted_tracks = await self._tracks.list_soft_deleted(user_id)
        for track in deleted_tracks:
            if track.metadata.get("prevent_sync_restore") is True:
                continue
            track.metadata = {
                **track.metadata,
                "prevent_sync_restore": True,
                "sync_cleanup_applied": True,
                "sync_cleanup_at": now.isoformat(),
            }
            await self._tracks.update_metadata(track)
            response.deleted_tracks_updated += 1

        linked = await self._jobs.list_by_track_ids(
            user_id, [track.id for track in deleted_tracks]
        )
        for job in linked:
            if job.sync_state == SyncState.USER_DELETED:
                continue
            job.mark_user_deleted(now, sync_cleanup_applied=True)
            await self._jobs.save_sync_fields(job)
            response.linked_generations_marked += 1

        deleted_external_ids = {
            track.metadata.get("external_id")
            for track in deleted_tracks
            if track.metadata.get("external_id")
        }
        if deleted_external_ids:
            for job in await self._jobs.list_unlinked_completed(user_id):
                if job.external_id not in deleted_external_ids:
                    continue
                job.mark_user_deleted(now, orphan_cleanup=True)
                await self._jobs.save_sync_fields(job)
                response.orphan_generations_marked += 1

        logger.info(
            "Sync cleanup for user %s: tracks=%d linked=%d orphans=%d",
            user_id,
            response.deleted_tracks_updated,
            response.linked_generations_marked,
            response.orphan_generations_marked,
        )
        return response
