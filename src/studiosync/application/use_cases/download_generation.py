"""Use case for downloading the audio of a single generation on demand."""

import logging
from dataclasses import dataclass

from studiosync.application.use_cases import UseCase
from studiosync.domain.exceptions import (
    AuthorizationError,
    EntityNotFoundException,
    InvalidStateException,
    ValidationException,
)
from studiosync.domain.ports import (
    DownloadResult,
    IAudioDownloader,
    IGenerationJobRepository,
)
from studiosync.domain.value_objects import is_usable_url

logger = logging.getLogger(__name__)


@dataclass
class DownloadGenerationRequest:
    """Download request for one generation.

    external_url overrides the URL resolved from the job (result_url, then metadata).
    """

    user_id: str
    generation_id: str
    external_url: str | None = None


class DownloadGenerationUseCase(UseCase[DownloadGenerationRequest, DownloadResult]):
    """Fetches and stores the audio of one of the caller's generations."""

    def __init__(
        self,
        job_repository: IGenerationJobRepository,
        downloader: IAudioDownloader,
    ) -> None:
        self._jobs = job_repository
        self._downloader = downloader

    async def execute(self, request: DownloadGenerationRequest) -> DownloadResult:
        job = await self._jobs.get_by_id(request.generation_id)
        if job is None:
            raise EntityNotFoundException("Generation", request.generation_id)
        if job.user_id != request.user_id:
            raise AuthorizationError("Generation belongs to a different user")
        # Same guard as the sync run: a deleted track never gets its audio back.
        if not job.is_sync_eligible:
            raise InvalidStateException(
                f"Generation {job.id} is not eligible for download "
                f"({job.status.value}, {job.effective_sync_state.value})"
            )

        url = request.external_url or job.audio_url()
        if not is_usable_url(url):
            raise ValidationException(f"No usable audio URL for generation {job.id}")

        logger.info("On-demand download for generation %s", job.id)
        return await self._downloader.download_and_persist(job.id, url)
