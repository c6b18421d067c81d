"""Tests for the sync, tracks and health endpoints."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from studiosync.api.dependencies import (
    get_auth_provider,
    get_cleanup_use_case,
    get_current_user,
    get_delete_track_use_case,
    get_download_use_case,
    get_storage_repair_use_case,
    get_sync_use_case,
)
from studiosync.application.services import SyncError, SyncResult
from studiosync.application.use_cases import (
    CleanupSyncDeletionsResponse,
    CleanupSyncDeletionsUseCase,
    DeleteTrackUseCase,
    DownloadGenerationUseCase,
    RepairTrackStorageResponse,
    RepairTrackStorageUseCase,
    StorageRepairItem,
    SyncGeneratedTracksResponse,
    SyncGeneratedTracksUseCase,
    SyncSummary,
)
from studiosync.config import Settings
from studiosync.domain.entities import SyncAction, Track
from studiosync.domain.exceptions import (
    AuthorizationError,
    ExternalServiceError,
    InvalidStateException,
    SyncAbortedError,
)
from studiosync.domain.ports import AuthenticatedUser, DownloadResult, IAuthProvider
from studiosync.main import create_app

AUTH = {"Authorization": "Bearer token-abc"}


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    app = create_app(settings)
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(id="user-1")
    return app


# No "with" block: the lifespan (database, logging) is not needed with overridden
# use cases.
@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def sync_use_case(app: FastAPI) -> AsyncMock:
    use_case = AsyncMock(spec=SyncGeneratedTracksUseCase)
    app.dependency_overrides[get_sync_use_case] = lambda: use_case
    return use_case


class TestSyncGeneratedTracks:
    def test_returns_results_and_summary(
        self, client: TestClient, sync_use_case: AsyncMock
    ) -> None:
        sync_use_case.execute.return_value = SyncGeneratedTracksResponse(
            sync_results=[
                SyncResult(
                    generation_id="gen-1",
                    action=SyncAction.CREATE_TRACK,
                    service="suno",
                    track_id="track-1",
                    download_scheduled=True,
                ),
                SyncResult(
                    generation_id="gen-2",
                    action=SyncAction.SKIP,
                    service="mureka",
                ),
            ],
            summary=SyncSummary(
                total_checked=2,
                tracks_created=1,
                successful_downloads=0,
                failed_operations=1,
                errors=[
                    SyncError(generation_id="gen-1", error="timeout", action="download")
                ],
            ),
        )

        response = client.post("/api/sync/generated-tracks", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        results = body["data"]["sync_results"]
        assert results[0] == {
            "generationId": "gen-1",
            "action": "create-track",
            "trackId": "track-1",
            "service": "suno",
        }
        assert "trackId" not in results[1]
        summary = body["data"]["summary"]
        assert summary["total_checked"] == 2
        assert summary["tracks_created"] == 1
        assert summary["failed_operations"] == 1
        assert summary["errors"] == [
            {"generationId": "gen-1", "error": "timeout", "action": "download"}
        ]
        request = sync_use_case.execute.call_args.args[0]
        assert request.user_id == "user-1"

    def test_aborted_run_is_a_500(
        self, client: TestClient, sync_use_case: AsyncMock
    ) -> None:
        sync_use_case.execute.side_effect = SyncAbortedError("inbox", "disk full")

        response = client.post("/api/sync/generated-tracks", headers=AUTH)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "inbox" in body["error"]
        assert "timestamp" in body


class TestAuthentication:
    @pytest.fixture
    def unauthenticated_app(self, app: FastAPI) -> FastAPI:
        del app.dependency_overrides[get_current_user]
        return app

    def test_missing_header_is_401(
        self,
        unauthenticated_app: FastAPI,
        client: TestClient,
        sync_use_case: AsyncMock,
    ) -> None:
        response = client.post("/api/sync/generated-tracks")

        assert response.status_code == 401
        assert response.json()["success"] is False
        sync_use_case.execute.assert_not_called()

    def test_wrong_scheme_is_401(
        self,
        unauthenticated_app: FastAPI,
        client: TestClient,
        sync_use_case: AsyncMock,
    ) -> None:
        response = client.post(
            "/api/sync/generated-tracks", headers={"Authorization": "Basic abc"}
        )

        assert response.status_code == 401

    def test_auth_provider_outage_is_502(
        self,
        unauthenticated_app: FastAPI,
        client: TestClient,
        sync_use_case: AsyncMock,
    ) -> None:
        provider = AsyncMock(spec=IAuthProvider)
        provider.get_user.side_effect = ExternalServiceError(
            "Auth provider unreachable", service="auth"
        )
        unauthenticated_app.dependency_overrides[get_auth_provider] = lambda: provider

        response = client.post("/api/sync/generated-tracks", headers=AUTH)

        assert response.status_code == 502
        provider.get_user.assert_awaited_once_with("token-abc")
        sync_use_case.execute.assert_not_called()

    def test_resolved_user_reaches_the_use_case(
        self,
        unauthenticated_app: FastAPI,
        client: TestClient,
        sync_use_case: AsyncMock,
    ) -> None:
        provider = AsyncMock(spec=IAuthProvider)
        provider.get_user.return_value = AuthenticatedUser(id="user-77")
        unauthenticated_app.dependency_overrides[get_auth_provider] = lambda: provider
        sync_use_case.execute.return_value = SyncGeneratedTracksResponse()

        response = client.post("/api/sync/generated-tracks", headers=AUTH)

        assert response.status_code == 200
        assert sync_use_case.execute.call_args.args[0].user_id == "user-77"


class TestCleanupDeletions:
    def test_returns_counts(self, app: FastAPI, client: TestClient) -> None:
        use_case = AsyncMock(spec=CleanupSyncDeletionsUseCase)
        use_case.execute.return_value = CleanupSyncDeletionsResponse(
            deleted_tracks_updated=2,
            linked_generations_marked=3,
            orphan_generations_marked=1,
        )
        app.dependency_overrides[get_cleanup_use_case] = lambda: use_case

        response = client.post("/api/sync/cleanup-deletions", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["data"] == {
            "deleted_tracks_updated": 2,
            "linked_generations_marked": 3,
            "orphan_generations_marked": 1,
        }


class TestTrackStorageRepair:
    def test_returns_per_track_outcomes(self, app: FastAPI, client: TestClient) -> None:
        use_case = AsyncMock(spec=RepairTrackStorageUseCase)
        use_case.execute.return_value = RepairTrackStorageResponse(
            total=2,
            successes=1,
            failures=1,
            processed=[
                StorageRepairItem("track-1", "gen-1", "Night Drive", success=True),
                StorageRepairItem(
                    "track-2", "gen-2", "Rain", success=False, error="HTTP 410"
                ),
            ],
        )
        app.dependency_overrides[get_storage_repair_use_case] = lambda: use_case

        response = client.post("/api/sync/track-storage", headers=AUTH)

        assert response.status_code == 200
        data = response.json()["data"]
        assert (data["total"], data["successes"], data["failures"]) == (2, 1, 1)
        assert data["skipped"] == 0
        assert data["processed"][1] == {
            "track_id": "track-2",
            "generation_id": "gen-2",
            "title": "Rain",
            "success": False,
            "error": "HTTP 410",
        }
        assert use_case.execute.await_args.args[0].user_id == "user-1"


class TestDownloadGeneration:
    @pytest.fixture
    def download_use_case(self, app: FastAPI) -> AsyncMock:
        use_case = AsyncMock(spec=DownloadGenerationUseCase)
        app.dependency_overrides[get_download_use_case] = lambda: use_case
        return use_case

    def test_downloads_with_explicit_url(
        self, client: TestClient, download_use_case: AsyncMock
    ) -> None:
        download_use_case.execute.return_value = DownloadResult(
            generation_id="gen-1",
            track_id="track-1",
            local_audio_url="http://media.test/audio/user-1/suno/a.mp3",
            storage_path="user-1/suno/a.mp3",
            file_size=1234,
            downloaded_at=datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC),
        )

        response = client.post(
            "/api/sync/generations/gen-1/download",
            headers=AUTH,
            json={"external_url": "https://cdn.test/a.mp3"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["local_audio_url"] == "http://media.test/audio/user-1/suno/a.mp3"
        assert data["file_size"] == 1234
        request = download_use_case.execute.call_args.args[0]
        assert request.generation_id == "gen-1"
        assert request.user_id == "user-1"
        assert request.external_url == "https://cdn.test/a.mp3"

    def test_body_is_optional(
        self, client: TestClient, download_use_case: AsyncMock
    ) -> None:
        download_use_case.execute.side_effect = InvalidStateException(
            "Generation gen-1 is not eligible for sync"
        )

        response = client.post("/api/sync/generations/gen-1/download", headers=AUTH)

        assert response.status_code == 409
        assert download_use_case.execute.call_args.args[0].external_url is None

    def test_foreign_generation_is_403(
        self, client: TestClient, download_use_case: AsyncMock
    ) -> None:
        download_use_case.execute.side_effect = AuthorizationError("not yours")

        response = client.post("/api/sync/generations/gen-9/download", headers=AUTH)

        assert response.status_code == 403
        assert response.json()["error"] == "not yours"

    def test_invalid_body_uses_error_envelope(
        self, client: TestClient, download_use_case: AsyncMock
    ) -> None:
        response = client.post(
            "/api/sync/generations/gen-1/download",
            headers=AUTH,
            json={"external_url": 5},
        )

        assert response.status_code == 422
        assert response.json()["success"] is False
        download_use_case.execute.assert_not_called()


class TestDeleteTrack:
    def test_soft_deletes_track(self, app: FastAPI, client: TestClient) -> None:
        use_case = AsyncMock(spec=DeleteTrackUseCase)
        use_case.execute.return_value = Track(
            id="track-1",
            title="Night Drive",
            project_id="project-1",
            metadata={
                "deleted": True,
                "deleted_at": "2025-01-02T03:04:05+00:00",
                "prevent_sync_restore": True,
            },
        )
        app.dependency_overrides[get_delete_track_use_case] = lambda: use_case

        response = client.delete("/api/tracks/track-1", headers=AUTH)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["track_id"] == "track-1"
        assert data["deleted_at"] == "2025-01-02T03:04:05+00:00"
        assert data["metadata"]["prevent_sync_restore"] is True
        assert use_case.execute.call_args.args[0].track_id == "track-1"


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_unknown_route_uses_error_envelope(self, client: TestClient) -> None:
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json()["success"] is False
