"""Classify fetched generation jobs into a sync plan.

Hey future me - this is a FOLD, not a pipeline with side effects. It walks the fetched jobs
once, looks at each job's track (read-only), and decides what should happen. Nothing is
written here. The resulting SyncPlan is handed by value to Materialize and Download, so the
order of the run is always: decide everything first, then act.

Per job, in order:
    no track_id, no track points back    -> create-track (+ download if remote-only)
    track_id set, track is gone           -> unlink
    track deleted / prevent_sync_restore  -> mark job USER_DELETED, never touch again
    track healthy, audio not stored yet   -> update-track + download
    track audio already in our storage    -> skip

A provider CDN link on the track does not count as stored: a download that failed after
the track picked up the remote URL is scheduled again on the next run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from studiosync.domain.entities import (
    DownloadTask,
    GenerationJob,
    SyncAction,
    Track,
)
from studiosync.domain.ports import ITrackRepository

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """What the run decided (and later did) for one job."""

    generation_id: str
    action: SyncAction
    service: str
    track_id: str | None = None
    download_scheduled: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class SyncError:
    """A recoverable per-job failure, reported in the summary."""

    generation_id: str
    error: str
    action: str


@dataclass
class SyncPlan:
    """Everything Classify decided for one run."""

    to_create: list[GenerationJob] = field(default_factory=list)
    to_update: list[GenerationJob] = field(default_factory=list)
    to_download: list[DownloadTask] = field(default_factory=list)
    # Jobs whose track link, service or sync state changed during classification.
    job_updates: list[GenerationJob] = field(default_factory=list)
    results: list[SyncResult] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)

    def result_for(self, generation_id: str) -> SyncResult | None:
        for result in self.results:
            if result.generation_id == generation_id:
                return result
        return None


class SyncClassifier:
    """Builds a SyncPlan from the pending jobs of one user."""

    def __init__(self, track_repository: ITrackRepository) -> None:
        self._tracks = track_repository

    async def classify(self, jobs: Sequence[GenerationJob]) -> SyncPlan:
        plan = SyncPlan()
        for job in jobs:
            try:
                await self._classify_job(job, plan)
            except Exception as e:
                # One broken job (garbage metadata, failed lookup) must not stop the run.
                logger.warning("Could not classify generation %s: %s", job.id, e)
                plan.errors.append(
                    SyncError(generation_id=job.id, error=str(e), action="classify")
                )
        return plan

    async def _classify_job(self, job: GenerationJob, plan: SyncPlan) -> None:
        # Raises TypeError on malformed metadata, before anything is planned.
        url = job.audio_url()
        changed = job.ensure_service()

        if job.track_id:
            track = await self._tracks.get_by_id(job.track_id)
            if track is None:
                job.unlink_track()
                plan.job_updates.append(job)
                plan.results.append(
                    SyncResult(
                        generation_id=job.id,
                        action=SyncAction.UNLINK,
                        service=job.provider,
                        reason="track-missing",
                    )
                )
                return
        else:
            # A track may point back at this job even though the job never got linked
            # (earlier run crashed between insert and link).
            track = await self._tracks.get_by_generation_id(job.id)
            if track is None:
                self._plan_create(job, url, plan)
                if changed:
                    plan.job_updates.append(job)
                return

        self._plan_existing(job, track, url, changed, plan)

    def _plan_create(self, job: GenerationJob, url: str | None, plan: SyncPlan) -> None:
        plan.to_create.append(job)
        download = bool(url) and not job.local_storage_path
        if download:
            plan.to_download.append(
                DownloadTask(generation_id=job.id, external_url=url, service=job.provider)
            )
        plan.results.append(
            SyncResult(
                generation_id=job.id,
                action=SyncAction.CREATE_TRACK,
                service=job.provider,
                download_scheduled=download,
            )
        )

    def _plan_existing(
        self,
        job: GenerationJob,
        track: Track,
        url: str | None,
        changed: bool,
        plan: SyncPlan,
    ) -> None:
        # Hey future me - THE anti-resurrection rule. The user deleted this track; the job
        # moves to USER_DELETED and is never fetched again. No create, no update, no download.
        if track.is_user_deleted:
            job.mark_user_deleted()
            plan.job_updates.append(job)
            plan.results.append(
                SyncResult(
                    generation_id=job.id,
                    action=SyncAction.SKIP,
                    service=job.provider,
                    track_id=track.id,
                    reason="track-deleted",
                )
            )
            return

        if track.has_local_audio or not url:
            if job.track_id != track.id:
                job.link_track(track.id)
                changed = True
            if changed:
                plan.job_updates.append(job)
            plan.results.append(
                SyncResult(
                    generation_id=job.id,
                    action=SyncAction.SKIP,
                    service=job.provider,
                    track_id=track.id,
                    reason="has-audio" if track.has_local_audio else "no-audio-url",
                )
            )
            return

        if changed:
            plan.job_updates.append(job)

        # The back-referenced track only needs the download. A job that was already
        # downloaded needs the update to copy its local URL onto the track.
        needs_update = (
            track.generation_id != job.id
            or job.track_id != track.id
            or job.local_storage_path is not None
        )
        download = job.local_storage_path is None
        if needs_update:
            plan.to_update.append(job)
        if download:
            plan.to_download.append(
                DownloadTask(generation_id=job.id, external_url=url, service=job.provider)
            )
        plan.results.append(
            SyncResult(
                generation_id=job.id,
                action=SyncAction.UPDATE_TRACK
                if needs_update
                else SyncAction.SCHEDULE_DOWNLOAD,
                service=job.provider,
                track_id=track.id,
                download_scheduled=download,
            )
        )
