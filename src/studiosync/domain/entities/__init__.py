"""Domain entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from studiosync.domain.value_objects import resolve_audio_url


class GenerationStatus(str, Enum):
    """Lifecycle status reported by the provider."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Hey future me, this REPLACES the old pile of overlapping metadata booleans (skip_sync,
# deleted, track_deleted, deleted_by_user) as the thing sync looks at. Only ACTIVE jobs are
# ever picked up by the sync run. USER_DELETED is "the user threw the track away, never bring
# it back". SYNC_SUPPRESSED is "stop syncing this job" without a user deletion behind it.
# Both non-ACTIVE states are terminal for sync - nothing in this service moves a job back.
class SyncState(str, Enum):
    """Sync eligibility of a generation job."""

    ACTIVE = "active"
    USER_DELETED = "user_deleted"
    SYNC_SUPPRESSED = "sync_suppressed"


# Listen up, storage_status answers ONE question: does the track play from OUR storage?
# An audio_url pointing at the provider CDN is PENDING (or FAILED after a broken download),
# and only the downloader moves a track to COMPLETED. Sync and the storage repair pass
# keep scheduling downloads until it gets there.
class StorageStatus(str, Enum):
    """Where a track's audio file lives."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncAction(str, Enum):
    """Outcome of classifying one generation job."""

    CREATE_TRACK = "create-track"
    UPDATE_TRACK = "update-track"
    SCHEDULE_DOWNLOAD = "schedule-download"
    SKIP = "skip"
    UNLINK = "unlink"


_USER_DELETION_FLAGS = ("deleted", "track_deleted", "deleted_by_user")


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class GenerationJob:
    """A request to an AI provider to produce a track."""

    id: str
    user_id: str
    provider: str
    status: GenerationStatus = GenerationStatus.PENDING
    prompt: str = ""
    result_url: str | None = None
    track_id: str | None = None
    external_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    sync_state: SyncState = SyncState.ACTIVE
    created_at: datetime = field(default_factory=_utc_now)
    completed_at: datetime | None = None

    # Rows written before the sync_state column existed only carry the legacy flags.
    # The flags are read here and nowhere else.
    @property
    def effective_sync_state(self) -> SyncState:
        """Sync state with legacy metadata flags folded in."""
        if self.sync_state != SyncState.ACTIVE:
            return self.sync_state
        if any(self.metadata.get(flag) is True for flag in _USER_DELETION_FLAGS):
            return SyncState.USER_DELETED
        if self.metadata.get("skip_sync") is True:
            return SyncState.SYNC_SUPPRESSED
        return SyncState.ACTIVE

    @property
    def is_sync_eligible(self) -> bool:
        """Completed and not excluded by the user."""
        return (
            self.status == GenerationStatus.COMPLETED
            and self.effective_sync_state == SyncState.ACTIVE
        )

    @property
    def local_storage_path(self) -> str | None:
        path = self.metadata.get("local_storage_path")
        return path if isinstance(path, str) and path else None

    @property
    def service(self) -> str | None:
        service = self.metadata.get("service")
        return service if isinstance(service, str) and service else None

    def audio_url(self) -> str | None:
        """Best audio URL for this job (direct result_url wins)."""
        return resolve_audio_url(self.provider, self.result_url, self.metadata)

    def ensure_service(self) -> bool:
        """Backfill metadata.service from the provider.

        Returns:
            True if the metadata changed
        """
        if self.service:
            return False
        self.metadata = {**self.metadata, "service": self.provider}
        return True

    def link_track(self, track_id: str) -> None:
        self.track_id = track_id

    def unlink_track(self) -> None:
        self.track_id = None

    # Hey future me - THE anti-resurrection write! The only path that moves a job to
    # USER_DELETED. The legacy flags are written too so anything still reading the raw
    # metadata bag agrees with sync_state.
    def mark_user_deleted(self, when: datetime | None = None, **extra: Any) -> None:
        """Mark the job as deleted by the user so sync never touches it again."""
        when = when or _utc_now()
        self.sync_state = SyncState.USER_DELETED
        self.metadata = {
            **self.metadata,
            "skip_sync": True,
            "track_deleted": True,
            "deleted_by_user": True,
            "deleted_at": when.isoformat(),
            **extra,
        }

    def suppress_sync(self, reason: str, when: datetime | None = None) -> None:
        """Exclude the job from future syncs without a user deletion."""
        when = when or _utc_now()
        self.sync_state = SyncState.SYNC_SUPPRESSED
        self.metadata = {
            **self.metadata,
            "skip_sync": True,
            "skip_sync_reason": reason,
            "skip_sync_at": when.isoformat(),
        }


@dataclass
class Track:
    """A catalog entry representing a playable music asset."""

    id: str
    title: str
    project_id: str
    audio_url: str | None = None
    duration: int | None = None
    track_number: int | None = None
    lyrics: str | None = None
    generation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    storage_status: StorageStatus = StorageStatus.PENDING
    storage_path: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @property
    def is_user_deleted(self) -> bool:
        """Soft-deleted or explicitly blocked from sync restore."""
        return (
            self.metadata.get("deleted") is True
            or self.metadata.get("prevent_sync_restore") is True
        )

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_url)

    @property
    def has_local_audio(self) -> bool:
        """Audio is attached and stored locally, not just a provider CDN link."""
        return self.has_audio and self.storage_status == StorageStatus.COMPLETED

    def soft_delete(self, when: datetime | None = None) -> None:
        """Flag the track deleted and block sync from restoring it."""
        when = when or _utc_now()
        self.metadata = {
            **self.metadata,
            "deleted": True,
            "prevent_sync_restore": True,
            "deleted_at": when.isoformat(),
        }
        self.updated_at = when


@dataclass
class Artist:
    """A user's artist profile."""

    id: str
    user_id: str
    name: str
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class Project:
    """A collection of tracks; the inbox project collects generated tracks."""

    id: str
    artist_id: str
    title: str
    is_inbox: bool = False
    created_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class DownloadTask:
    """One remote audio file to fetch during a single sync run."""

    generation_id: str
    external_url: str
    service: str


__all__ = [
    "Artist",
    "DownloadTask",
    "GenerationJob",
    "GenerationStatus",
    "Project",
    "StorageStatus",
    "SyncAction",
    "SyncState",
    "Track",
]
