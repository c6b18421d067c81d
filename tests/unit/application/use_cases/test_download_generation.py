"""Tests for the on-demand single download."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from studiosync.application.use_cases import (
    DownloadGenerationRequest,
    DownloadGenerationUseCase,
)
from studiosync.domain.entities import GenerationStatus
from studiosync.domain.exceptions import (
    AuthorizationError,
    EntityNotFoundException,
    InvalidStateException,
    ValidationException,
)
from studiosync.domain.ports import (
    DownloadResult,
    IAudioDownloader,
    IGenerationJobRepository,
)


@pytest.fixture
def job_repository() -> AsyncMock:
    return AsyncMock(spec=IGenerationJobRepository)


@pytest.fixture
def downloader() -> AsyncMock:
    mock = AsyncMock(spec=IAudioDownloader)
    mock.download_and_persist.return_value = DownloadResult(
        generation_id="gen-1",
        track_id="track-1",
        local_audio_url="http://media.test/audio/x.mp3",
        storage_path="user-1/suno/x.mp3",
        file_size=10,
        downloaded_at=datetime.now(UTC),
    )
    return mock


@pytest.fixture
def use_case(job_repository, downloader) -> DownloadGenerationUseCase:
    return DownloadGenerationUseCase(job_repository, downloader)


class TestDownloadGeneration:
    async def test_downloads_resolved_url(
        self, use_case, job_repository, downloader, make_job
    ) -> None:
        job = make_job(metadata={"suno_track_data": {"audio_url": "https://cdn.test/a.mp3"}})
        job_repository.get_by_id.return_value = job

        result = await use_case.execute(
            DownloadGenerationRequest(user_id="user-1", generation_id=job.id)
        )

        downloader.download_and_persist.assert_awaited_once_with(
            job.id, "https://cdn.test/a.mp3"
        )
        assert result.track_id == "track-1"

    async def test_explicit_url_overrides(
        self, use_case, job_repository, downloader, make_job
    ) -> None:
        job = make_job(result_url="https://cdn.test/a.mp3")
        job_repository.get_by_id.return_value = job

        await use_case.execute(
            DownloadGenerationRequest(
                user_id="user-1",
                generation_id=job.id,
                external_url="https://cdn.test/override.mp3",
            )
        )

        downloader.download_and_persist.assert_awaited_once_with(
            job.id, "https://cdn.test/override.mp3"
        )

    async def test_unknown_generation(self, use_case, job_repository) -> None:
        job_repository.get_by_id.return_value = None
        with pytest.raises(EntityNotFoundException):
            await use_case.execute(
                DownloadGenerationRequest(user_id="user-1", generation_id="nope")
            )

    async def test_foreign_generation(self, use_case, job_repository, make_job) -> None:
        job_repository.get_by_id.return_value = make_job(user_id="someone-else")
        with pytest.raises(AuthorizationError):
            await use_case.execute(
                DownloadGenerationRequest(user_id="user-1", generation_id="gen-1")
            )

    async def test_deleted_generation_is_never_downloaded(
        self, use_case, job_repository, downloader, make_job
    ) -> None:
        job = make_job(result_url="https://cdn.test/a.mp3")
        job.mark_user_deleted()
        job_repository.get_by_id.return_value = job

        with pytest.raises(InvalidStateException):
            await use_case.execute(
                DownloadGenerationRequest(user_id="user-1", generation_id=job.id)
            )
        downloader.download_and_persist.assert_not_awaited()

    async def test_pending_generation_is_rejected(
        self, use_case, job_repository, make_job
    ) -> None:
        job_repository.get_by_id.return_value = make_job(status=GenerationStatus.RUNNING)
        with pytest.raises(InvalidStateException):
            await use_case.execute(
                DownloadGenerationRequest(user_id="user-1", generation_id="gen-1")
            )

    async def test_no_url_at_all(self, use_case, job_repository, make_job) -> None:
        job_repository.get_by_id.return_value = make_job(result_url="missing")
        with pytest.raises(ValidationException):
            await use_case.execute(
                DownloadGenerationRequest(user_id="user-1", generation_id="gen-1")
            )
