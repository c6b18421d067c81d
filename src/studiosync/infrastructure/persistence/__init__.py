"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    ArtistModel,
    Base,
    GenerationJobModel,
    ProjectModel,
    TrackModel,
)
from .repositories import (
    GenerationJobRepository,
    InboxProjectRepository,
    TrackMaterializer,
    TrackRepository,
)
from .retry import is_lock_error, retry_async, with_db_retry

__all__ = [
    "ArtistModel",
    "Base",
    "Database",
    "GenerationJobModel",
    "GenerationJobRepository",
    "InboxProjectRepository",
    "ProjectModel",
    "TrackMaterializer",
    "TrackModel",
    "TrackRepository",
    "is_lock_error",
    "retry_async",
    "with_db_retry",
]
