"""Domain ports (interfaces) for dependency inversion.

Hey future me - the sync use case only talks to these interfaces. Every method is ONE
round trip to a collaborator (DB transaction, auth provider call, file download), which
is exactly where the sync run may suspend. Implementations live in infrastructure/.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from studiosync.domain.entities import GenerationJob, Track


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity as resolved by the auth provider."""

    id: str
    email: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MaterializeOutcome:
    """Result of the atomic create-or-update operation."""

    track_id: str
    created: bool


@dataclass(frozen=True)
class DownloadResult:
    """Descriptor returned by the download-and-persist operation."""

    generation_id: str
    track_id: str | None
    local_audio_url: str
    storage_path: str
    file_size: int
    downloaded_at: datetime


class IGenerationJobRepository(ABC):
    """Job store: reads and point updates of generation jobs."""

    @abstractmethod
    async def list_pending(self, user_id: str, limit: int) -> list[GenerationJob]:
        """Completed, sync-eligible jobs of a user, newest-completed first."""
        pass

    @abstractmethod
    async def get_by_id(self, generation_id: str) -> GenerationJob | None:
        """Get a job by ID."""
        pass

    @abstractmethod
    async def save_sync_fields(self, job: GenerationJob) -> None:
        """Persist track_id, metadata and sync_state of a job (last write wins)."""
        pass

    @abstractmethod
    async def list_by_track_ids(
        self, user_id: str, track_ids: list[str]
    ) -> list[GenerationJob]:
        """Jobs of a user linked to any of the given tracks."""
        pass

    @abstractmethod
    async def list_unlinked_completed(self, user_id: str) -> list[GenerationJob]:
        """Completed, sync-eligible jobs of a user that have no track_id."""
        pass


class ITrackRepository(ABC):
    """Track store: point lookups and soft-delete bookkeeping."""

    @abstractmethod
    async def get_by_id(self, track_id: str) -> Track | None:
        """Get a track by ID."""
        pass

    @abstractmethod
    async def get_by_generation_id(self, generation_id: str) -> Track | None:
        """Get the track that back-references a generation."""
        pass

    @abstractmethod
    async def list_soft_deleted(self, user_id: str) -> list[Track]:
        """Soft-deleted tracks of a user."""
        pass

    @abstractmethod
    async def list_needing_storage(
        self, user_id: str, limit: int
    ) -> list[tuple[Track, GenerationJob]]:
        """Tracks whose audio is not in our storage yet, with their generation."""
        pass

    @abstractmethod
    async def update_metadata(self, track: Track) -> None:
        """Persist the metadata of a track."""
        pass

    @abstractmethod
    async def soft_delete(self, track_id: str, user_id: str) -> Track:
        """Soft delete a track and mark its generation job USER_DELETED atomically."""
        pass


class ITrackMaterializer(ABC):
    """Atomic "create or update track from generation" primitive."""

    @abstractmethod
    async def create_or_update_from_generation(
        self,
        generation_id: str,
        project_id: str | None = None,
        artist_id: str | None = None,
    ) -> MaterializeOutcome:
        """Create the track for a generation, or update the one that already exists.

        Never creates a second track for the same generation_id.
        """
        pass


class IInboxProjectProvider(ABC):
    """Ensures every user has an inbox project."""

    @abstractmethod
    async def ensure_user_inbox(self, user_id: str) -> str:
        """Return the inbox project id, creating artist/project on first call."""
        pass


class IAudioDownloader(ABC):
    """Download-and-persist primitive for remote audio."""

    @abstractmethod
    async def download_and_persist(
        self, generation_id: str, external_url: str
    ) -> DownloadResult:
        """Fetch remote audio, store it locally and attach it to job and track."""
        pass


class IAuthProvider(ABC):
    """External auth provider."""

    @abstractmethod
    async def get_user(self, access_token: str) -> AuthenticatedUser:
        """Resolve a bearer token into a user.

        Raises:
            AuthenticationError: token rejected
            ExternalServiceError: provider unreachable
        """
        pass


__all__ = [
    "AuthenticatedUser",
    "DownloadResult",
    "IAudioDownloader",
    "IAuthProvider",
    "IGenerationJobRepository",
    "IInboxProjectProvider",
    "ITrackMaterializer",
    "ITrackRepository",
    "MaterializeOutcome",
]
