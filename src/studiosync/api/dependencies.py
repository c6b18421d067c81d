"""Dependency injection for API endpoints."""

from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studiosync.application.services import DownloadBatcher
from studiosync.application.use_cases import (
    CleanupSyncDeletionsUseCase,
    DeleteTrackUseCase,
    DownloadGenerationUseCase,
    RepairTrackStorageUseCase,
    SyncGeneratedTracksUseCase,
)
from studiosync.config import Settings
from studiosync.domain.exceptions import AuthenticationError
from studiosync.domain.ports import (
    AuthenticatedUser,
    IAudioDownloader,
    IAuthProvider,
    IGenerationJobRepository,
    ITrackRepository,
)
from studiosync.infrastructure.integrations import (
    AuthProviderClient,
    LocalAudioDownloader,
    is_transient_download_error,
)
from studiosync.infrastructure.persistence import (
    Database,
    GenerationJobRepository,
    InboxProjectRepository,
    TrackMaterializer,
    TrackRepository,
)


def get_app_settings(request: Request) -> Settings:
    """Settings the app was started with (see lifecycle.lifespan)."""
    settings: Settings = request.app.state.settings
    return settings


# Hey future me - repositories get the session FACTORY, not a request-scoped session. The
# sync run opens one short transaction per job so a failing job can't roll back the others.
def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    db: Database = request.app.state.db
    return db.session_factory


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
SessionFactoryDep = Annotated[
    async_sessionmaker[AsyncSession], Depends(get_session_factory)
]


def get_auth_provider(settings: SettingsDep) -> IAuthProvider:
    return AuthProviderClient(settings.auth)


def get_job_repository(session_factory: SessionFactoryDep) -> IGenerationJobRepository:
    return GenerationJobRepository(session_factory)


def get_track_repository(session_factory: SessionFactoryDep) -> ITrackRepository:
    return TrackRepository(session_factory)


def get_audio_downloader(
    session_factory: SessionFactoryDep, settings: SettingsDep
) -> IAudioDownloader:
    return LocalAudioDownloader(session_factory, settings.storage)


# Yo, the bearer token is NOT validated locally - the auth provider is the only authority.
# A missing or malformed header is a 401 before we even make the call.
async def get_current_user(
    auth_provider: Annotated[IAuthProvider, Depends(get_auth_provider)],
    authorization: Annotated[str | None, Header()] = None,
) -> AuthenticatedUser:
    """Resolve the caller from the Authorization header."""
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be 'Bearer <token>'")
    return await auth_provider.get_user(token.strip())


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


def get_sync_use_case(
    session_factory: SessionFactoryDep,
    settings: SettingsDep,
    downloader: Annotated[IAudioDownloader, Depends(get_audio_downloader)],
) -> SyncGeneratedTracksUseCase:
    return SyncGeneratedTracksUseCase(
        job_repository=GenerationJobRepository(session_factory),
        track_repository=TrackRepository(session_factory),
        inbox_provider=InboxProjectRepository(session_factory),
        materializer=TrackMaterializer(session_factory),
        download_batcher=DownloadBatcher(
            downloader, settings.sync, is_transient=is_transient_download_error
        ),
        settings=settings.sync,
    )


def get_cleanup_use_case(
    jobs: Annotated[IGenerationJobRepository, Depends(get_job_repository)],
    tracks: Annotated[ITrackRepository, Depends(get_track_repository)],
) -> CleanupSyncDeletionsUseCase:
    return CleanupSyncDeletionsUseCase(jobs, tracks)


def get_storage_repair_use_case(
    tracks: Annotated[ITrackRepository, Depends(get_track_repository)],
    settings: SettingsDep,
    downloader: Annotated[IAudioDownloader, Depends(get_audio_downloader)],
) -> RepairTrackStorageUseCase:
    return RepairTrackStorageUseCase(
        track_repository=tracks,
        download_batcher=DownloadBatcher(
            downloader, settings.sync, is_transient=is_transient_download_error
        ),
        settings=settings.sync,
    )


def get_download_use_case(
    jobs: Annotated[IGenerationJobRepository, Depends(get_job_repository)],
    downloader: Annotated[IAudioDownloader, Depends(get_audio_downloader)],
) -> DownloadGenerationUseCase:
    return DownloadGenerationUseCase(jobs, downloader)


def get_delete_track_use_case(
    tracks: Annotated[ITrackRepository, Depends(get_track_repository)],
) -> DeleteTrackUseCase:
    return DeleteTrackUseCase(tracks)
