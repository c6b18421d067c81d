"""SQLAlchemy ORM models for StudioSync."""

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# Hey future me, ALL timestamps are UTC. Never store naive datetime.now().
def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# SQLite drops tzinfo on the way back. Use this before comparing DB datetimes with
# datetime.now(UTC) or you get "can't compare offset-naive and offset-aware".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ArtistModel(Base):
    """A user's artist profile. The first one created is the user's default artist."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    projects: Mapped[list["ProjectModel"]] = relationship(
        "ProjectModel", back_populates="artist", cascade="all, delete-orphan"
    )


# Hey future me - is_inbox marks the catch-all project that receives generated tracks when
# the caller gave no project. ensure_user_inbox() finds or creates it. Only one inbox per
# artist is ever created by this service.
class ProjectModel(Base):
    """A project (album, single, mixtape) owned by an artist."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="mixtape")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    is_inbox: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    artist: Mapped[ArtistModel] = relationship("ArtistModel", back_populates="projects")
    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel", back_populates="project"
    )

    __table_args__ = (Index("ix_projects_artist_inbox", "artist_id", "is_inbox"),)


# Listen up, generation_id is the back-reference to the job this track was materialized
# from. It is ALSO written into metadata["generation_id"] for readers of the raw bag, but
# the column is what we query and what carries the UNIQUE constraint - that constraint is
# the last line of defence against two tracks for one generation under concurrent syncs.
class TrackModel(Base):
    """A playable music asset in the catalog."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    track_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audio_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lyrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    generation_id: Mapped[str | None] = mapped_column(
        String(36), nullable=True, unique=True, index=True
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), nullable=False, default=dict
    )
    # pending / downloading / completed / failed, see StorageStatus. storage_metadata keeps
    # the last outcome (completed_at + file_size, or failed_at + error).
    storage_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )
    storage_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    storage_metadata: Mapped[dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(JSON), nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    project: Mapped[ProjectModel] = relationship("ProjectModel", back_populates="tracks")

    __table_args__ = (
        Index("ix_tracks_project_title", "project_id", "title"),
        Index("ix_tracks_storage_status", "storage_status"),
    )


# Yo, sync_state is the authoritative sync flag (active / user_deleted / sync_suppressed).
# The metadata bag still carries the provider responses and the legacy skip_sync/deleted
# flags. list_pending() filters on the column AND the flags, rows written before the column
# existed only have the flags. Index covers the sync fetch query: user_id + status +
# sync_state, ordered by completed_at.
class GenerationJobModel(Base):
    """A request to an AI provider and its lifecycle."""

    __tablename__ = "ai_generations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    service: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    result_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # No FK on purpose: a hard-deleted track leaves a dangling id that sync unlinks.
    track_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sync_state: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active"
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", MutableDict.as_mutable(JSON), nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_ai_generations_sync", "user_id", "status", "sync_state"),
        Index("ix_ai_generations_track_id", "track_id"),
    )
