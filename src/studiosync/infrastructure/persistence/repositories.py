"""Repository implementations for domain entities.

Hey future me - unlike a request-scoped repository, each of these owns its transactions:
they take the session FACTORY and open one short session per public call. The sync run
needs exactly that - one job's failing write must not poison the session the next job
uses, and every metadata patch is its own last-write-wins transaction.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studiosync.domain.entities import (
    GenerationJob,
    GenerationStatus,
    StorageStatus,
    SyncState,
    Track,
)
from studiosync.domain.exceptions import (
    AuthorizationError,
    EntityNotFoundException,
    InvalidStateException,
)
from studiosync.domain.ports import (
    IGenerationJobRepository,
    IInboxProjectProvider,
    ITrackMaterializer,
    ITrackRepository,
    MaterializeOutcome,
)
from studiosync.domain.value_objects import is_usable_url

from .models import (
    ArtistModel,
    GenerationJobModel,
    ProjectModel,
    TrackModel,
    ensure_utc_aware,
)
from .retry import with_db_retry

logger = logging.getLogger(__name__)

DEFAULT_ARTIST_NAME = "Personal Artist"
INBOX_TITLE = "Inbox"
FALLBACK_TRACK_TITLE = "Generated Track"


@asynccontextmanager
async def _transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _job_from_model(model: GenerationJobModel) -> GenerationJob:
    return GenerationJob(
        id=model.id,
        user_id=model.user_id,
        provider=model.service,
        status=GenerationStatus(model.status),
        prompt=model.prompt or "",
        result_url=model.result_url,
        track_id=model.track_id,
        external_id=model.external_id,
        metadata=dict(model.metadata_ or {}),
        sync_state=SyncState(model.sync_state),
        created_at=ensure_utc_aware(model.created_at),
        completed_at=ensure_utc_aware(model.completed_at)
        if model.completed_at
        else None,
    )


def _track_from_model(model: TrackModel) -> Track:
    return Track(
        id=model.id,
        title=model.title,
        project_id=model.project_id,
        audio_url=model.audio_url,
        duration=model.duration,
        track_number=model.track_number,
        lyrics=model.lyrics,
        generation_id=model.generation_id,
        metadata=dict(model.metadata_ or {}),
        storage_status=StorageStatus(model.storage_status),
        storage_path=model.storage_path,
        created_at=ensure_utc_aware(model.created_at),
        updated_at=ensure_utc_aware(model.updated_at),
    )


def _is_deleted_track_model(model: TrackModel) -> bool:
    metadata = model.metadata_ or {}
    return metadata.get("deleted") is True or metadata.get("prevent_sync_restore") is True


_JOB_EXCLUSION_FLAGS = ("skip_sync", "deleted", "track_deleted", "deleted_by_user")
_TRACK_EXCLUSION_FLAGS = ("deleted", "prevent_sync_restore")


def _flag_not_set(column: Any, flag: str) -> Any:
    """SQL: metadata[flag] is absent, null or false."""
    value = column[flag].as_boolean()
    return or_(value.is_(None), value.is_(False))


# Hey future me - the exclusion MUST happen in SQL, before LIMIT. Filtering flagged rows
# in Python after the limit means 50 freshly deleted generations hide every older eligible
# job from every run. as_boolean() renders JSON_EXTRACT on SQLite and ->> + CAST on
# PostgreSQL, so one expression covers both.
def _sync_eligible_job_clauses() -> list[Any]:
    return [
        GenerationJobModel.status == GenerationStatus.COMPLETED.value,
        GenerationJobModel.sync_state == SyncState.ACTIVE.value,
        *(_flag_not_set(GenerationJobModel.metadata_, f) for f in _JOB_EXCLUSION_FLAGS),
    ]


class GenerationJobRepository(IGenerationJobRepository):
    """SQLAlchemy implementation of the generation job store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # Hey future me - newest COMPLETED first, falling back to created_at for rows that
    # never got a completed_at. The limit bounds one run; older jobs stay in the table
    # and are picked up by the next run, so the cap never loses work.
    async def list_pending(self, user_id: str, limit: int) -> list[GenerationJob]:
        stmt = (
            select(GenerationJobModel)
            .where(
                GenerationJobModel.user_id == user_id,
                *_sync_eligible_job_clauses(),
            )
            .order_by(
                func.coalesce(
                    GenerationJobModel.completed_at, GenerationJobModel.created_at
                ).desc(),
                GenerationJobModel.created_at.desc(),
            )
            .limit(limit)
        )
        async with _transaction(self._session_factory) as session:
            result = await session.execute(stmt)
            return [_job_from_model(model) for model in result.scalars().all()]

    async def get_by_id(self, generation_id: str) -> GenerationJob | None:
        async with _transaction(self._session_factory) as session:
            model = await session.get(GenerationJobModel, generation_id)
            return _job_from_model(model) if model else None

    @with_db_retry(max_attempts=3)
    async def save_sync_fields(self, job: GenerationJob) -> None:
        async with _transaction(self._session_factory) as session:
            model = await session.get(GenerationJobModel, job.id)
            if model is None:
                raise EntityNotFoundException("Generation", job.id)
            model.track_id = job.track_id
            model.metadata_ = dict(job.metadata)
            model.sync_state = job.sync_state.value
            model.result_url = job.result_url

    async def list_by_track_ids(
        self, user_id: str, track_ids: list[str]
    ) -> list[GenerationJob]:
        if not track_ids:
            return []
        stmt = select(GenerationJobModel).where(
            GenerationJobModel.user_id == user_id,
            GenerationJobModel.track_id.in_(track_ids),
        )
        async with _transaction(self._session_factory) as session:
            result = await session.execute(stmt)
            return [_job_from_model(model) for model in result.scalars().all()]

    async def list_unlinked_completed(self, user_id: str) -> list[GenerationJob]:
        stmt = select(GenerationJobModel).where(
            GenerationJobModel.user_id == user_id,
            *_sync_eligible_job_clauses(),
            GenerationJobModel.track_id.is_(None),
        )
        async with _transaction(self._session_factory) as session:
            result = await session.execute(stmt)
            return [_job_from_model(model) for model in result.scalars().all()]


def _owned_tracks_stmt(user_id: str) -> Any:
    return (
        select(TrackModel)
        .join(ProjectModel, TrackModel.project_id == ProjectModel.id)
        .join(ArtistModel, ProjectModel.artist_id == ArtistModel.id)
        .where(ArtistModel.user_id == user_id)
    )


class TrackRepository(ITrackRepository):
    """SQLAlchemy implementation of the track store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, track_id: str) -> Track | None:
        async with _transaction(self._session_factory) as session:
            model = await session.get(TrackModel, track_id)
            return _track_from_model(model) if model else None

    async def get_by_generation_id(self, generation_id: str) -> Track | None:
        stmt = select(TrackModel).where(TrackModel.generation_id == generation_id)
        async with _transaction(self._session_factory) as session:
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _track_from_model(model) if model else None

    # Per-user track lists are small, the deleted flag is checked in Python.
    async def list_soft_deleted(self, user_id: str) -> list[Track]:
        async with _transaction(self._session_factory) as session:
            result = await session.execute(_owned_tracks_stmt(user_id))
            return [
                _track_from_model(model)
                for model in result.scalars().all()
                if (model.metadata_ or {}).get("deleted") is True
            ]

    # Yo, the storage repair query. A track qualifies when its audio is not in our storage
    # yet (pending or failed), it isn't deleted, and its generation is still syncable and
    # has not been downloaded. Every condition is SQL so the limit only counts real work.
    async def list_needing_storage(
        self, user_id: str, limit: int
    ) -> list[tuple[Track, GenerationJob]]:
        stmt = (
            select(TrackModel, GenerationJobModel)
            .join(ProjectModel, TrackModel.project_id == ProjectModel.id)
            .join(ArtistModel, ProjectModel.artist_id == ArtistModel.id)
            .join(GenerationJobModel, GenerationJobModel.id == TrackModel.generation_id)
            .where(
                ArtistModel.user_id == user_id,
                TrackModel.storage_status.in_(
                    [StorageStatus.PENDING.value, StorageStatus.FAILED.value]
                ),
                *(_flag_not_set(TrackModel.metadata_, f) for f in _TRACK_EXCLUSION_FLAGS),
                *_sync_eligible_job_clauses(),
                GenerationJobModel.result_url.is_not(None),
                GenerationJobModel.metadata_["local_storage_path"].as_string().is_(None),
            )
            .order_by(TrackModel.created_at.desc())
            .limit(limit)
        )
        async with _transaction(self._session_factory) as session:
            rows = (await session.execute(stmt)).all()
            return [
                (_track_from_model(track), _job_from_model(job)) for track, job in rows
            ]

    @with_db_retry(max_attempts=3)
    async def update_metadata(self, track: Track) -> None:
        async with _transaction(self._session_factory) as session:
            model = await session.get(TrackModel, track.id)
            if model is None:
                raise EntityNotFoundException("Track", track.id)
            model.metadata_ = dict(track.metadata)

    # Hey future me - track flag and job state change in ONE transaction. If the job write
    # failed separately, the next sync would find an ACTIVE job pointing at a deleted track
    # (classify would still suppress it, but only after a round trip).
    async def soft_delete(self, track_id: str, user_id: str) -> Track:
        async with _transaction(self._session_factory) as session:
            model = await session.get(TrackModel, track_id)
            if model is None:
                raise EntityNotFoundException("Track", track_id)
            owner_stmt = (
                select(ArtistModel.user_id)
                .join(ProjectModel, ProjectModel.artist_id == ArtistModel.id)
                .where(ProjectModel.id == model.project_id)
            )
            owner = (await session.execute(owner_stmt)).scalar_one_or_none()
            if owner != user_id:
                raise AuthorizationError("Track belongs to a different user")

            track = _track_from_model(model)
            now = datetime.now(UTC)
            track.soft_delete(now)
            model.metadata_ = dict(track.metadata)

            job_stmt = select(GenerationJobModel).where(
                (GenerationJobModel.track_id == track_id)
                | (GenerationJobModel.id == model.generation_id)
            )
            for job_model in (await session.execute(job_stmt)).scalars().all():
                job = _job_from_model(job_model)
                job.mark_user_deleted(now)
                job_model.metadata_ = dict(job.metadata)
                job_model.sync_state = job.sync_state.value
            return track


async def _ensure_user_inbox(session: AsyncSession, user_id: str) -> str:
    artist_stmt = (
        select(ArtistModel)
        .where(ArtistModel.user_id == user_id)
        .order_by(ArtistModel.created_at.asc())
        .limit(1)
    )
    artist = (await session.execute(artist_stmt)).scalar_one_or_none()
    if artist is None:
        artist = ArtistModel(
            user_id=user_id,
            name=DEFAULT_ARTIST_NAME,
            description="Default artist profile",
        )
        session.add(artist)
        await session.flush()
        logger.info("Created default artist %s for user %s", artist.id, user_id)
    return await _ensure_artist_inbox(session, artist.id)


async def _ensure_artist_inbox(session: AsyncSession, artist_id: str) -> str:
    stmt = (
        select(ProjectModel.id)
        .where(ProjectModel.artist_id == artist_id, ProjectModel.is_inbox.is_(True))
        .order_by(ProjectModel.created_at.asc())
        .limit(1)
    )
    project_id = (await session.execute(stmt)).scalar_one_or_none()
    if project_id is not None:
        return project_id
    project = ProjectModel(
        artist_id=artist_id,
        title=INBOX_TITLE,
        description="Generated tracks without specific project context",
        type="mixtape",
        status="draft",
        is_inbox=True,
    )
    session.add(project)
    await session.flush()
    logger.info("Created inbox project %s for artist %s", project.id, artist_id)
    return project.id


class InboxProjectRepository(IInboxProjectProvider):
    """Finds or creates the user's default artist and inbox project."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @with_db_retry(max_attempts=3)
    async def ensure_user_inbox(self, user_id: str) -> str:
        async with _transaction(self._session_factory) as session:
            return await _ensure_user_inbox(session, user_id)


def derive_track_title(job: GenerationJob) -> str:
    """metadata.title -> metadata.style -> first prompt line -> fallback."""
    for key in ("title", "style"):
        value = job.metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()[:255]
    first_line = (job.prompt or "").split("\n", 1)[0].strip()
    if first_line:
        return first_line[:255]
    return FALLBACK_TRACK_TITLE


def _derive_duration(job: GenerationJob) -> int | None:
    primary = job.metadata.get("suno_track_data")
    raw = primary.get("duration") if isinstance(primary, dict) else None
    if raw is None:
        raw = job.metadata.get("duration")
    try:
        return round(float(raw)) if raw is not None else None
    except (TypeError, ValueError):
        return None


class TrackMaterializer(ITrackMaterializer):
    """Atomic create-or-update of the track belonging to a generation.

    Hey future me - this is THE serialization point for the track catalog. Everything
    happens in one transaction:
    1. Lock the generation row (FOR UPDATE on PostgreSQL, SQLite serializes writers anyway)
    2. Find an existing track via job.track_id or the generation_id back-reference
    3. Update it in place, or resolve the target project server-side and insert
    4. Link the job to the track

    If a concurrent run inserted the track between our lookup and our insert, the UNIQUE
    constraint on tracks.generation_id fires, we roll back and run the whole thing once
    more - the second pass finds the winner's row and updates it. Two calls for the same
    generation never produce two tracks.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_or_update_from_generation(
        self,
        generation_id: str,
        project_id: str | None = None,
        artist_id: str | None = None,
    ) -> MaterializeOutcome:
        try:
            return await self._run(generation_id, project_id, artist_id)
        except IntegrityError:
            logger.info(
                "Concurrent materialization for generation %s, re-reading", generation_id
            )
            return await self._run(generation_id, project_id, artist_id)

    @with_db_retry(max_attempts=3)
    async def _run(
        self, generation_id: str, project_id: str | None, artist_id: str | None
    ) -> MaterializeOutcome:
        async with _transaction(self._session_factory) as session:
            return await self._materialize(session, generation_id, project_id, artist_id)

    async def _materialize(
        self,
        session: AsyncSession,
        generation_id: str,
        project_id: str | None,
        artist_id: str | None,
    ) -> MaterializeOutcome:
        job_model = await session.get(
            GenerationJobModel, generation_id, with_for_update=True
        )
        if job_model is None:
            raise EntityNotFoundException("Generation", generation_id)
        job = _job_from_model(job_model)
        if job.status != GenerationStatus.COMPLETED:
            raise InvalidStateException(
                f"Generation {generation_id} is {job.status.value}, not completed"
            )
        if job.effective_sync_state != SyncState.ACTIVE:
            raise InvalidStateException(
                f"Generation {generation_id} is excluded from sync "
                f"({job.effective_sync_state.value})"
            )

        existing = await self._find_existing(session, job)
        if existing is not None:
            if _is_deleted_track_model(existing):
                raise InvalidStateException(
                    f"Track {existing.id} was deleted by the user"
                )
            self._apply_generation(existing, job)
            job_model.track_id = existing.id
            return MaterializeOutcome(track_id=existing.id, created=False)

        target_project = await self._resolve_project(
            session, job.user_id, project_id, artist_id
        )
        title = await self._dedupe_title(session, target_project, derive_track_title(job))
        track = TrackModel(
            project_id=target_project,
            title=title,
            track_number=await self._next_track_number(session, target_project),
            audio_url=job.result_url if is_usable_url(job.result_url) else None,
            duration=_derive_duration(job),
            lyrics=job.metadata.get("lyrics")
            if isinstance(job.metadata.get("lyrics"), str)
            else None,
            generation_id=job.id,
            metadata_=self._track_metadata({}, job),
        )
        session.add(track)
        self._apply_storage(track, job)
        await session.flush()
        job_model.track_id = track.id
        logger.info(
            "Created track %s (%r) for generation %s", track.id, title, generation_id
        )
        return MaterializeOutcome(track_id=track.id, created=True)

    async def _find_existing(
        self, session: AsyncSession, job: GenerationJob
    ) -> TrackModel | None:
        if job.track_id:
            model = await session.get(TrackModel, job.track_id)
            if model is not None:
                return model
        stmt = select(TrackModel).where(TrackModel.generation_id == job.id)
        return (await session.execute(stmt)).scalar_one_or_none()

    @staticmethod
    def _track_metadata(current: dict[str, Any], job: GenerationJob) -> dict[str, Any]:
        return {
            **current,
            **job.metadata,
            "generation_id": job.id,
            "service": job.provider,
            "external_id": job.external_id,
        }

    def _apply_generation(self, model: TrackModel, job: GenerationJob) -> None:
        # COALESCE semantics: a usable result_url replaces, nothing else clears audio.
        if is_usable_url(job.result_url):
            model.audio_url = job.result_url
        model.metadata_ = self._track_metadata(dict(model.metadata_ or {}), job)
        if model.generation_id is None:
            model.generation_id = job.id
        self._apply_storage(model, job)

    # A job downloaded before its track existed (or got linked) already carries the local
    # copy, so the track is stored as soon as it picks up the job's URL.
    @staticmethod
    def _apply_storage(model: TrackModel, job: GenerationJob) -> None:
        if job.local_storage_path and is_usable_url(job.result_url):
            model.storage_status = StorageStatus.COMPLETED.value
            model.storage_path = job.local_storage_path

    async def _resolve_project(
        self,
        session: AsyncSession,
        user_id: str,
        project_id: str | None,
        artist_id: str | None,
    ) -> str:
        if project_id is not None:
            stmt = (
                select(ArtistModel.user_id)
                .join(ProjectModel, ProjectModel.artist_id == ArtistModel.id)
                .where(ProjectModel.id == project_id)
            )
            owner = (await session.execute(stmt)).scalar_one_or_none()
            if owner is None:
                raise EntityNotFoundException("Project", project_id)
            if owner != user_id:
                raise AuthorizationError("Project belongs to a different user")
            return project_id
        if artist_id is not None:
            artist = await session.get(ArtistModel, artist_id)
            if artist is None:
                raise EntityNotFoundException("Artist", artist_id)
            if artist.user_id != user_id:
                raise AuthorizationError("Artist belongs to a different user")
            return await _ensure_artist_inbox(session, artist_id)
        return await _ensure_user_inbox(session, user_id)

    async def _dedupe_title(
        self, session: AsyncSession, project_id: str, title: str
    ) -> str:
        stmt = select(TrackModel.title).where(
            TrackModel.project_id == project_id,
            TrackModel.title.like(f"{title}%"),
        )
        taken = set((await session.execute(stmt)).scalars().all())
        if title not in taken:
            return title
        pattern = re.compile(rf"^{re.escape(title)} \((\d+)\)$")
        numbers = [int(m.group(1)) for t in taken if (m := pattern.match(t))]
        return f"{title} ({max(numbers, default=1) + 1})"

    async def _next_track_number(self, session: AsyncSession, project_id: str) -> int:
        stmt = select(func.max(TrackModel.track_number)).where(
            TrackModel.project_id == project_id
        )
        current = (await session.execute(stmt)).scalar_one_or_none()
        return (current or 0) + 1
