"""Tests for the sync run use case with mocked ports."""

from unittest.mock import AsyncMock

import pytest

from studiosync.application.services import DownloadBatcher, DownloadReport, SyncError
from studiosync.application.use_cases import (
    SyncGeneratedTracksRequest,
    SyncGeneratedTracksUseCase,
)
from studiosync.config import SyncSettings
from studiosync.domain.entities import SyncAction
from studiosync.domain.exceptions import SyncAbortedError
from studiosync.domain.ports import (
    IGenerationJobRepository,
    IInboxProjectProvider,
    ITrackMaterializer,
    ITrackRepository,
    MaterializeOutcome,
)

CDN_URL = "https://cdn.test/audio.mp3"


@pytest.fixture
def job_repository() -> AsyncMock:
    repo = AsyncMock(spec=IGenerationJobRepository)
    repo.list_pending.return_value = []
    return repo


@pytest.fixture
def track_repository() -> AsyncMock:
    repo = AsyncMock(spec=ITrackRepository)
    repo.get_by_id.return_value = None
    repo.get_by_generation_id.return_value = None
    return repo


@pytest.fixture
def inbox_provider() -> AsyncMock:
    provider = AsyncMock(spec=IInboxProjectProvider)
    provider.ensure_user_inbox.return_value = "inbox-1"
    return provider


@pytest.fixture
def materializer() -> AsyncMock:
    mock = AsyncMock(spec=ITrackMaterializer)
    mock.create_or_update_from_generation.side_effect = (
        lambda gid, *args, **kwargs: MaterializeOutcome(track_id=f"track-{gid}", created=True)
    )
    return mock


@pytest.fixture
def download_batcher() -> AsyncMock:
    batcher = AsyncMock(spec=DownloadBatcher)
    batcher.run.side_effect = lambda tasks: DownloadReport(successful=len(tasks))
    return batcher


@pytest.fixture
def use_case(
    job_repository: AsyncMock,
    track_repository: AsyncMock,
    inbox_provider: AsyncMock,
    materializer: AsyncMock,
    download_batcher: AsyncMock,
) -> SyncGeneratedTracksUseCase:
    return SyncGeneratedTracksUseCase(
        job_repository=job_repository,
        track_repository=track_repository,
        inbox_provider=inbox_provider,
        materializer=materializer,
        download_batcher=download_batcher,
        settings=SyncSettings(fetch_limit=50),
    )


REQUEST = SyncGeneratedTracksRequest(user_id="user-1")


class TestHappyPath:
    async def test_new_generations_are_created_and_downloaded(
        self, use_case, job_repository, materializer, download_batcher, make_job
    ) -> None:
        jobs = [make_job(result_url=CDN_URL), make_job(result_url=CDN_URL)]
        job_repository.list_pending.return_value = jobs

        response = await use_case.execute(REQUEST)

        job_repository.list_pending.assert_awaited_once_with("user-1", 50)
        assert materializer.create_or_update_from_generation.await_count == 2
        download_batcher.run.assert_awaited_once()
        summary = response.summary
        assert summary.total_checked == 2
        assert summary.tracks_created == 2
        assert summary.tracks_updated == 0
        assert summary.successful_downloads == 2
        assert summary.failed_operations == 0
        assert [r.track_id for r in response.sync_results] == [
            f"track-{job.id}" for job in jobs
        ]
        assert {r.action for r in response.sync_results} == {SyncAction.CREATE_TRACK}

    async def test_existing_track_counts_as_update(
        self, use_case, job_repository, track_repository, materializer, make_job, make_track
    ) -> None:
        track = make_track()
        track_repository.get_by_id.return_value = track
        job = make_job(track_id=track.id, result_url=CDN_URL)
        job_repository.list_pending.return_value = [job]
        materializer.create_or_update_from_generation.side_effect = None
        materializer.create_or_update_from_generation.return_value = MaterializeOutcome(
            track_id=track.id, created=False
        )

        response = await use_case.execute(REQUEST)

        assert response.summary.tracks_updated == 1
        assert response.summary.tracks_created == 0

    async def test_nothing_pending_skips_inbox_and_downloads(
        self, use_case, inbox_provider, download_batcher
    ) -> None:
        response = await use_case.execute(REQUEST)

        assert response.summary.total_checked == 0
        inbox_provider.ensure_user_inbox.assert_not_awaited()
        download_batcher.run.assert_not_awaited()

    async def test_classification_changes_are_saved(
        self, use_case, job_repository, make_job
    ) -> None:
        job = make_job(track_id="deleted-hard", metadata={"service": "suno"})
        job_repository.list_pending.return_value = [job]

        response = await use_case.execute(REQUEST)

        job_repository.save_sync_fields.assert_awaited_once_with(job)
        assert job.track_id is None
        assert response.sync_results[0].action == SyncAction.UNLINK


class TestFaultIsolation:
    async def test_one_failed_materialization_does_not_stop_the_run(
        self, use_case, job_repository, materializer, make_job
    ) -> None:
        good, bad = make_job(result_url=CDN_URL), make_job(result_url=CDN_URL)
        job_repository.list_pending.return_value = [bad, good]

        def materialize(gid: str, *args, **kwargs) -> MaterializeOutcome:
            if gid == bad.id:
                raise RuntimeError("constraint exploded")
            return MaterializeOutcome(track_id="track-good", created=True)

        materializer.create_or_update_from_generation.side_effect = materialize

        response = await use_case.execute(REQUEST)

        summary = response.summary
        assert summary.tracks_created == 1
        assert summary.failed_operations == 1
        assert summary.errors == [
            SyncError(generation_id=bad.id, error="constraint exploded", action="create-track")
        ]

    async def test_download_errors_are_reported(
        self, use_case, job_repository, download_batcher, make_job
    ) -> None:
        job = make_job(result_url=CDN_URL)
        job_repository.list_pending.return_value = [job]
        download_batcher.run.side_effect = None
        download_batcher.run.return_value = DownloadReport(
            successful=0,
            errors=[SyncError(generation_id=job.id, error="404", action="download")],
        )

        response = await use_case.execute(REQUEST)

        assert response.summary.tracks_created == 1
        assert response.summary.successful_downloads == 0
        assert response.summary.failed_operations == 1

    async def test_failed_job_update_is_recorded(
        self, use_case, job_repository, make_job
    ) -> None:
        job = make_job(provider="mureka")
        job_repository.list_pending.return_value = [job]
        job_repository.save_sync_fields.side_effect = RuntimeError("locked")

        response = await use_case.execute(REQUEST)

        assert response.summary.errors[0].action == "update-job"
        assert response.summary.tracks_created == 1


class TestFatalStages:
    async def test_fetch_failure_aborts(self, use_case, job_repository) -> None:
        job_repository.list_pending.side_effect = RuntimeError("db down")

        with pytest.raises(SyncAbortedError) as exc_info:
            await use_case.execute(REQUEST)

        assert exc_info.value.stage == "fetch"

    async def test_inbox_failure_aborts_before_any_write(
        self, use_case, job_repository, inbox_provider, materializer, make_job
    ) -> None:
        job_repository.list_pending.return_value = [make_job(result_url=CDN_URL)]
        inbox_provider.ensure_user_inbox.side_effect = RuntimeError("no artists table")

        with pytest.raises(SyncAbortedError) as exc_info:
            await use_case.execute(REQUEST)

        assert exc_info.value.stage == "inbox"
        materializer.create_or_update_from_generation.assert_not_awaited()
        job_repository.save_sync_fields.assert_not_awaited()
