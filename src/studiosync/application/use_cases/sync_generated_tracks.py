"""Use case for reconciling a user's generation jobs with the track catalog.

Hey future me - this is THE sync run. A user hits "sync" (or the frontend does it after a
generation finishes) and we make sure every completed generation ends up as exactly one
track with playable, locally stored audio. The run is:

1. Fetch    - the newest completed, sync-eligible jobs (bounded by sync.fetch_limit)
2. Inbox    - make sure the user has an inbox project (fatal if that fails)
3. Classify - decide per job: create / update / download / unlink / skip (no writes)
4. Apply    - persist job-level changes from Classify (unlink, service backfill, deletions)
5. Materialize - create or update tracks, one isolated transaction per job
6. Download - fetch remote audio in batches of 3

Only Fetch and Inbox failures abort the run. Everything after that is per job: a broken job
ends up in summary.errors and the others carry on. Running sync twice in a row is safe -
the second run finds tracks with audio and skips them.
"""

import logging
from dataclasses import dataclass, field

from studiosync.application.services.download_batcher import DownloadBatcher
from studiosync.application.services.sync_classifier import (
    SyncClassifier,
    SyncError,
    SyncPlan,
    SyncResult,
)
from studiosync.application.use_cases import UseCase
from studiosync.config import SyncSettings
from studiosync.domain.entities import GenerationJob, SyncAction
from studiosync.domain.exceptions import SyncAbortedError
from studiosync.domain.ports import (
    IGenerationJobRepository,
    IInboxProjectProvider,
    ITrackMaterializer,
    ITrackRepository,
)
from studiosync.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)


@dataclass
class SyncGeneratedTracksRequest:
    """Request to sync the generations of one user."""

    user_id: str


@dataclass
class SyncSummary:
    """Counters reported back to the caller."""

    total_checked: int = 0
    tracks_created: int = 0
    tracks_updated: int = 0
    successful_downloads: int = 0
    failed_operations: int = 0
    errors: list[SyncError] = field(default_factory=list)


@dataclass
class SyncGeneratedTracksResponse:
    """Per-job results plus the run summary."""

    sync_results: list[SyncResult] = field(default_factory=list)
    summary: SyncSummary = field(default_factory=SyncSummary)


class SyncGeneratedTracksUseCase(
    UseCase[SyncGeneratedTracksRequest, SyncGeneratedTracksResponse]
):
    """Reconciles completed generation jobs with tracks and local audio."""

    def __init__(
        self,
        job_repository: IGenerationJobRepository,
        track_repository: ITrackRepository,
        inbox_provider: IInboxProjectProvider,
        materializer: ITrackMaterializer,
        download_batcher: DownloadBatcher,
        settings: SyncSettings,
    ) -> None:
        self._jobs = job_repository
        self._inbox = inbox_provider
        self._materializer = materializer
        self._downloads = download_batcher
        self._classifier = SyncClassifier(track_repository)
        self._settings = settings

    async def execute(
        self, request: SyncGeneratedTracksRequest
    ) -> SyncGeneratedTracksResponse:
        user_id = request.user_id

        async with log_operation(logger, "sync.run", user_id=user_id):
            try:
                jobs = await self._jobs.list_pending(user_id, self._settings.fetch_limit)
            except Exception as e:
                raise SyncAbortedError("fetch", str(e)) from e

            summary = SyncSummary(total_checked=len(jobs))
            if not jobs:
                logger.info("No pending generations for user %s", user_id)
                return SyncGeneratedTracksResponse(summary=summary)

            # Hey future me - the inbox is ensured ONCE up front, not per job. If this fails
            # the database is in trouble and materializing 50 jobs would just produce 50
            # identical errors.
            try:
                await self._inbox.ensure_user_inbox(user_id)
            except Exception as e:
                raise SyncAbortedError("inbox", str(e)) from e

            plan = await self._classifier.classify(jobs)
            errors: list[SyncError] = list(plan.errors)

            for job in plan.job_updates:
                try:
                    await self._jobs.save_sync_fields(job)
                except Exception as e:
                    logger.error("Failed to update generation %s: %s", job.id, e)
                    errors.append(
                        SyncError(generation_id=job.id, error=str(e), action="update-job")
                    )

            materializations = [(job, SyncAction.CREATE_TRACK) for job in plan.to_create]
            materializations += [(job, SyncAction.UPDATE_TRACK) for job in plan.to_update]
            for job, action in materializations:
                await self._materialize(job, action, plan, summary, errors)

            if plan.to_download:
                async with log_operation(
                    logger, "sync.download", user_id=user_id, queued=len(plan.to_download)
                ):
                    report = await self._downloads.run(plan.to_download)
                summary.successful_downloads = report.successful
                errors.extend(report.errors)

            summary.errors = errors
            summary.failed_operations = len(errors)
            logger.info(
                "Sync finished for user %s: checked=%d created=%d updated=%d downloads=%d failed=%d",
                user_id,
                summary.total_checked,
                summary.tracks_created,
                summary.tracks_updated,
                summary.successful_downloads,
                summary.failed_operations,
            )
            return SyncGeneratedTracksResponse(sync_results=plan.results, summary=summary)

    async def _materialize(
        self,
        job: GenerationJob,
        action: SyncAction,
        plan: SyncPlan,
        summary: SyncSummary,
        errors: list[SyncError],
    ) -> None:
        try:
            outcome = await self._materializer.create_or_update_from_generation(job.id)
        except Exception as e:
            logger.error(
                "Failed to %s for generation %s: %s", action.value, job.id, e
            )
            errors.append(
                SyncError(generation_id=job.id, error=str(e), action=action.value)
            )
            return

        if outcome.created:
            summary.tracks_created += 1
        else:
            summary.tracks_updated += 1

        result = plan.result_for(job.id)
        if result is not None:
            result.track_id = outcome.track_id
