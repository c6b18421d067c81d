"""Tests for the sync classification fold."""

from unittest.mock import AsyncMock

import pytest

from studiosync.application.services import SyncClassifier
from studiosync.domain.entities import StorageStatus, SyncAction, SyncState
from studiosync.domain.ports import ITrackRepository

CDN_URL = "https://cdn.test/audio.mp3"


@pytest.fixture
def track_repository() -> AsyncMock:
    repo = AsyncMock(spec=ITrackRepository)
    repo.get_by_id.return_value = None
    repo.get_by_generation_id.return_value = None
    return repo


@pytest.fixture
def classifier(track_repository: AsyncMock) -> SyncClassifier:
    return SyncClassifier(track_repository)


class TestNewGenerations:
    async def test_unlinked_job_with_url_creates_track_and_downloads(
        self, classifier: SyncClassifier, make_job
    ) -> None:
        job = make_job(result_url=CDN_URL)

        plan = await classifier.classify([job])

        assert plan.to_create == [job]
        assert [t.generation_id for t in plan.to_download] == [job.id]
        assert plan.to_download[0].external_url == CDN_URL
        assert plan.results[0].action == SyncAction.CREATE_TRACK
        assert plan.results[0].download_scheduled is True

    async def test_already_downloaded_job_creates_without_download(
        self, classifier: SyncClassifier, make_job
    ) -> None:
        job = make_job(
            result_url="http://media.test/audio/user-1/suno/a.mp3",
            metadata={"local_storage_path": "user-1/suno/a.mp3", "service": "suno"},
        )

        plan = await classifier.classify([job])

        assert plan.to_create == [job]
        assert plan.to_download == []
        assert plan.job_updates == []

    async def test_job_without_any_url_still_creates_track(
        self, classifier: SyncClassifier, make_job
    ) -> None:
        job = make_job(result_url="missing")

        plan = await classifier.classify([job])

        assert plan.to_create == [job]
        assert plan.to_download == []

    async def test_service_backfill_is_persisted(
        self, classifier: SyncClassifier, make_job
    ) -> None:
        job = make_job(provider="mureka", metadata={})

        plan = await classifier.classify([job])

        assert plan.job_updates == [job]
        assert job.metadata["service"] == "mureka"


class TestLinkedGenerations:
    async def test_dangling_track_id_is_unlinked(
        self, classifier: SyncClassifier, make_job
    ) -> None:
        job = make_job(track_id="gone", result_url=CDN_URL)

        plan = await classifier.classify([job])

        assert job.track_id is None
        assert plan.job_updates == [job]
        assert plan.results[0].action == SyncAction.UNLINK
        assert plan.to_create == []
        assert plan.errors == []

    async def test_deleted_track_suppresses_job_forever(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job, make_track
    ) -> None:
        track = make_track(metadata={"deleted": True})
        track_repository.get_by_id.return_value = track
        job = make_job(track_id=track.id, result_url=CDN_URL)

        plan = await classifier.classify([job])

        assert job.sync_state == SyncState.USER_DELETED
        assert job.metadata["skip_sync"] is True
        assert plan.job_updates == [job]
        assert plan.to_create == []
        assert plan.to_update == []
        assert plan.to_download == []
        assert plan.results[0].reason == "track-deleted"

    async def test_back_referenced_deleted_track_is_not_recreated(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job, make_track
    ) -> None:
        job = make_job(result_url=CDN_URL)
        track_repository.get_by_generation_id.return_value = make_track(
            generation_id=job.id, metadata={"prevent_sync_restore": True}
        )

        plan = await classifier.classify([job])

        assert plan.to_create == []
        assert job.sync_state == SyncState.USER_DELETED

    async def test_track_without_audio_is_updated_and_downloaded(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job, make_track
    ) -> None:
        track = make_track(generation_id=None)
        track_repository.get_by_id.return_value = track
        job = make_job(track_id=track.id, result_url=CDN_URL)

        plan = await classifier.classify([job])

        assert plan.to_update == [job]
        assert len(plan.to_download) == 1
        assert plan.results[0].action == SyncAction.UPDATE_TRACK
        assert plan.results[0].track_id == track.id

    async def test_back_referenced_track_only_schedules_download(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job, make_track
    ) -> None:
        job = make_job(result_url=CDN_URL)
        track = make_track(generation_id=job.id)
        job.track_id = track.id
        track_repository.get_by_id.return_value = track

        plan = await classifier.classify([job])

        assert plan.to_update == []
        assert len(plan.to_download) == 1
        assert plan.results[0].action == SyncAction.SCHEDULE_DOWNLOAD

    async def test_track_with_audio_is_skipped(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job, make_track
    ) -> None:
        track = make_track(audio_url="http://media.test/audio/a.mp3")
        track_repository.get_by_id.return_value = track
        job = make_job(track_id=track.id, result_url=CDN_URL, metadata={"service": "suno"})

        plan = await classifier.classify([job])

        assert plan.results[0].action == SyncAction.SKIP
        assert plan.results[0].reason == "has-audio"
        assert plan.to_create == plan.to_update == []
        assert plan.to_download == []
        assert plan.job_updates == []

    async def test_track_still_on_provider_link_is_downloaded_again(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job, make_track
    ) -> None:
        job = make_job(result_url=CDN_URL)
        track = make_track(
            generation_id=job.id, audio_url=CDN_URL, storage_status=StorageStatus.FAILED
        )
        job.track_id = track.id
        track_repository.get_by_id.return_value = track

        plan = await classifier.classify([job])

        assert plan.results[0].action == SyncAction.SCHEDULE_DOWNLOAD
        assert plan.results[0].download_scheduled is True
        assert plan.to_update == []
        assert [task.external_url for task in plan.to_download] == [CDN_URL]


class TestFaultIsolation:
    async def test_malformed_metadata_is_a_per_job_error(
        self, classifier: SyncClassifier, make_job
    ) -> None:
        broken = make_job(metadata=["not", "a", "mapping"])
        healthy = make_job(result_url=CDN_URL)

        plan = await classifier.classify([broken, healthy])

        assert [e.generation_id for e in plan.errors] == [broken.id]
        assert plan.errors[0].action == "classify"
        assert plan.to_create == [healthy]

    async def test_lookup_failure_is_recorded(
        self, classifier: SyncClassifier, track_repository: AsyncMock, make_job
    ) -> None:
        track_repository.get_by_id.side_effect = RuntimeError("db hiccup")
        job = make_job(track_id="track-1")

        plan = await classifier.classify([job])

        assert plan.errors[0].error == "db hiccup"
        assert plan.results == []
