"""Use case for moving tracks off provider CDN links into local storage."""

import logging
from dataclasses import dataclass, field

from studiosync.application.services.download_batcher import DownloadBatcher
from studiosync.application.use_cases import UseCase
from studiosync.config import SyncSettings
from studiosync.domain.entities import DownloadTask
from studiosync.domain.ports import ITrackRepository
from studiosync.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)


@dataclass
class RepairTrackStorageRequest:
    user_id: str


@dataclass
class StorageRepairItem:
    """Outcome for one track."""

    track_id: str
    generation_id: str
    title: str
    success: bool
    error: str | None = None


@dataclass
class RepairTrackStorageResponse:
    total: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0
    processed: list[StorageRepairItem] = field(default_factory=list)


# Hey future me - sync only downloads what it touches in the current run. Tracks that were
# created before local storage existed, or whose download failed and whose generation fell
# out of the newest-N window, keep playing from the provider CDN until that link expires.
# This pass finds them (storage pending or failed, generation still syncable and never
# downloaded) and runs them through the same batcher as sync. Idempotent: a stored track
# is never selected again.
class RepairTrackStorageUseCase(
    UseCase[RepairTrackStorageRequest, RepairTrackStorageResponse]
):
    """Downloads audio for tracks that still point at provider links."""

    def __init__(
        self,
        track_repository: ITrackRepository,
        download_batcher: DownloadBatcher,
        settings: SyncSettings,
    ) -> None:
        self._tracks = track_repository
        self._downloads = download_batcher
        self._settings = settings

    async def execute(
        self, request: RepairTrackStorageRequest
    ) -> RepairTrackStorageResponse:
        user_id = request.user_id
        candidates = await self._tracks.list_needing_storage(
            user_id, self._settings.fetch_limit
        )
        response = RepairTrackStorageResponse(total=len(candidates))

        tasks: list[DownloadTask] = []
        queued = []
        for track, job in candidates:
            url = job.audio_url()
            if not url:
                response.skipped += 1
                continue
            tasks.append(
                DownloadTask(generation_id=job.id, external_url=url, service=job.provider)
            )
            queued.append((track, job))

        if not tasks:
            logger.info("No tracks need storage for user %s", user_id)
            return response

        async with log_operation(
            logger, "storage.repair", user_id=user_id, queued=len(tasks)
        ):
            report = await self._downloads.run(tasks)

        errors = {error.generation_id: error.error for error in report.errors}
        for track, job in queued:
            error = errors.get(job.id)
            response.processed.append(
                StorageRepairItem(
                    track_id=track.id,
                    generation_id=job.id,
                    title=track.title,
                    success=error is None,
                    error=error,
                )
            )
            if error is None:
                response.successes += 1
            else:
                response.failures += 1

        logger.info(
            "Storage repair for user %s: total=%d stored=%d failed=%d skipped=%d",
            user_id,
            response.total,
            response.successes,
            response.failures,
            response.skipped,
        )
        return response
