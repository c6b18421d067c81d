"""Use case for soft-deleting a track."""

import logging
from dataclasses import dataclass

from studiosync.application.use_cases import UseCase
from studiosync.domain.entities import Track
from studiosync.domain.ports import ITrackRepository

logger = logging.getLogger(__name__)


@dataclass
class DeleteTrackRequest:
    user_id: str
    track_id: str


class DeleteTrackUseCase(UseCase[DeleteTrackRequest, Track]):
    """Soft delete a track and keep sync from ever restoring it.

    The repository flags the track and moves its generation job to USER_DELETED in the
    same transaction.
    """

    def __init__(self, track_repository: ITrackRepository) -> None:
        self._tracks = track_repository

    async def execute(self, request: DeleteTrackRequest) -> Track:
        track = await self._tracks.soft_delete(request.track_id, request.user_id)
        logger.info("Track %s deleted by user %s", track.id, request.user_id)
        return track
