"""Download remote provider audio into local storage.

Hey future me - provider CDN links (Suno, Mureka) expire after a while. This downloader
pulls the file once, writes it under storage/audio/<user>/<service>/, and repoints the
generation job and its track at the local copy. After that the track keeps playing even
when the provider link is long dead.

Layout: {audio_path}/{user_id}/{service}/{service}-track-{id[:8]}-{timestamp}.mp3
Public URL: {public_base_url}/{user_id}/{service}/{filename}
"""

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studiosync.config import StorageSettings
from studiosync.domain.entities import StorageStatus
from studiosync.domain.exceptions import (
    EntityNotFoundException,
    ExternalServiceError,
    ValidationException,
)
from studiosync.domain.ports import DownloadResult, IAudioDownloader
from studiosync.domain.value_objects import is_usable_url
from studiosync.infrastructure.integrations.http_pool import HttpClientPool
from studiosync.infrastructure.persistence.models import (
    GenerationJobModel,
    TrackModel,
)

logger = logging.getLogger(__name__)

USER_AGENT = "studiosync-downloader/1.0"


def build_storage_filename(service: str, generation_id: str, when: datetime) -> str:
    """Unique file name for one download of a generation."""
    timestamp = when.strftime("%Y-%m-%dT%H-%M-%S-%f")
    return f"{service}-track-{generation_id[:8]}-{timestamp}.mp3"


class LocalAudioDownloader(IAudioDownloader):
    """httpx + local filesystem implementation of download-and-persist."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: StorageSettings,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings

    async def download_and_persist(
        self, generation_id: str, external_url: str
    ) -> DownloadResult:
        """Fetch the audio file and attach the local copy to job and track.

        Raises:
            ValidationException: URL is empty or the "missing" sentinel
            EntityNotFoundException: generation does not exist
            httpx.HTTPError: network failure (callers decide whether to retry)
            ExternalServiceError: provider answered with an empty body
        """
        if not is_usable_url(external_url):
            raise ValidationException(
                f"No usable audio URL for generation {generation_id}"
            )

        async with self._session_factory() as session:
            job = await session.get(GenerationJobModel, generation_id)
            if job is None:
                raise EntityNotFoundException("Generation", generation_id)
            user_id = job.user_id
            service = job.service or "unknown"
            track = await self._find_track(session, job)
            track_id = track.id if track is not None else None
            if track is not None:
                track.storage_status = StorageStatus.DOWNLOADING.value
                await session.commit()

        try:
            return await self._download(
                generation_id, external_url, user_id, service
            )
        except Exception as exc:
            if track_id:
                await self._mark_failed(track_id, exc)
            raise

    async def _download(
        self, generation_id: str, external_url: str, user_id: str, service: str
    ) -> DownloadResult:
        data = await self._fetch(external_url)
        if not data:
            raise ExternalServiceError(
                f"Provider returned an empty audio file for {generation_id}",
                service=service,
            )

        now = datetime.now(UTC)
        filename = build_storage_filename(service, generation_id, now)
        relative_path = f"{user_id}/{service}/{filename}"
        full_path = Path(self._settings.audio_path) / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(full_path.write_bytes, data)

        local_url = f"{self._settings.public_base_url.rstrip('/')}/{relative_path}"
        storage_fields = {
            "local_storage_path": relative_path,
            "original_external_url": external_url,
            "downloaded_at": now.isoformat(),
            "file_size": len(data),
        }

        # The file is only worth keeping once job and track point at it.
        try:
            track_id = await self._attach(
                generation_id, local_url, relative_path, storage_fields
            )
        except Exception:
            await asyncio.to_thread(full_path.unlink, missing_ok=True)
            raise

        logger.info(
            "Stored %d bytes for generation %s at %s",
            len(data),
            generation_id,
            relative_path,
        )
        return DownloadResult(
            generation_id=generation_id,
            track_id=track_id,
            local_audio_url=local_url,
            storage_path=relative_path,
            file_size=len(data),
            downloaded_at=now,
        )

    async def _fetch(self, url: str) -> bytes:
        client = await HttpClientPool.get_client()
        response = await client.get(
            url,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=self._settings.download_timeout,
        )
        response.raise_for_status()
        return response.content

    @staticmethod
    async def _find_track(
        session: AsyncSession, job: GenerationJobModel
    ) -> TrackModel | None:
        """The job's linked track, else the track that back-references the job."""
        if job.track_id:
            track = await session.get(TrackModel, job.track_id)
            if track is not None:
                return track
        result = await session.execute(
            select(TrackModel).where(TrackModel.generation_id == job.id).limit(1)
        )
        return result.scalars().first()

    # Yo, the job is re-read here instead of trusting what the caller saw: the track link
    # may have been set by Materialize a moment ago. A job with no linked or
    # back-referencing track still gets its local copy, there is just no track to update.
    async def _attach(
        self,
        generation_id: str,
        local_url: str,
        relative_path: str,
        storage_fields: dict,
    ) -> str | None:
        async with self._session_factory() as session:
            try:
                job = await session.get(GenerationJobModel, generation_id)
                if job is None:
                    raise EntityNotFoundException("Generation", generation_id)
                job.result_url = local_url
                job.metadata_ = {**(job.metadata_ or {}), **storage_fields}

                track = await self._find_track(session, job)
                track_id = track.id if track is not None else None
                if track is not None:
                    track.audio_url = local_url
                    track.metadata_ = {**(track.metadata_ or {}), **storage_fields}
                    track.storage_status = StorageStatus.COMPLETED.value
                    track.storage_path = relative_path
                    track.storage_metadata = {
                        "completed_at": storage_fields["downloaded_at"],
                        "file_size": storage_fields["file_size"],
                        "storage_url": local_url,
                    }
                await session.commit()
                return track_id
            except Exception:
                await session.rollback()
                raise

    async def _mark_failed(self, track_id: str, error: Exception) -> None:
        """Record the failed download on the track; the original error still wins."""
        try:
            async with self._session_factory() as session:
                track = await session.get(TrackModel, track_id)
                if track is None:
                    return
                track.storage_status = StorageStatus.FAILED.value
                track.storage_metadata = {
                    **(track.storage_metadata or {}),
                    "error": str(error) or type(error).__name__,
                    "failed_at": datetime.now(UTC).isoformat(),
                }
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Could not mark storage of track %s as failed", track_id)


def is_transient_download_error(exc: Exception) -> bool:
    """Network hiccups and 5xx answers are worth another attempt, 4xx are not."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False
