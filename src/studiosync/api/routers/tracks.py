"""Track endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from studiosync.api.dependencies import CurrentUser, get_delete_track_use_case
from studiosync.api.schemas import DeletedTrackOut, SuccessEnvelope
from studiosync.application.use_cases import DeleteTrackRequest, DeleteTrackUseCase

router = APIRouter(prefix="/tracks", tags=["tracks"])


@router.delete("/{track_id}", response_model=SuccessEnvelope[DeletedTrackOut])
async def delete_track(
    track_id: str,
    user: CurrentUser,
    use_case: Annotated[DeleteTrackUseCase, Depends(get_delete_track_use_case)],
) -> SuccessEnvelope[DeletedTrackOut]:
    """Soft delete a track; sync will never bring it back."""
    track = await use_case.execute(DeleteTrackRequest(user_id=user.id, track_id=track_id))
    return SuccessEnvelope[DeletedTrackOut](
        data=DeletedTrackOut(
            track_id=track.id,
            deleted_at=track.metadata.get("deleted_at"),
            metadata=track.metadata,
        )
    )
