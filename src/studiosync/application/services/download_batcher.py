"""Run the download queue of a sync run in small concurrent batches."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from studiosync.application.services.sync_classifier import SyncError
from studiosync.config import SyncSettings
from studiosync.domain.entities import DownloadTask
from studiosync.domain.exceptions import ValidationException
from studiosync.domain.ports import DownloadResult, IAudioDownloader
from studiosync.domain.value_objects import is_usable_url
from studiosync.infrastructure.persistence.retry import retry_async

logger = logging.getLogger(__name__)


@dataclass
class DownloadReport:
    """Outcome of one download queue."""

    successful: int = 0
    downloads: list[DownloadResult] = field(default_factory=list)
    errors: list[SyncError] = field(default_factory=list)


def _never_retry(_exc: Exception) -> bool:
    return False


# Hey future me - batches of 3 with a 1s pause are about being polite to the provider CDNs,
# not about our own throughput. Suno in particular starts answering 429 when a user with
# 40 fresh generations hits "sync" and we open 40 connections at once. Inside a batch
# everything runs concurrently, between batches we wait, after the last batch we don't.
# A failed download never rolls back the track that Materialize already wrote - the next
# sync run sees the track without audio and schedules the download again.
class DownloadBatcher:
    """Processes DownloadTasks batch by batch with per-task retry."""

    def __init__(
        self,
        downloader: IAudioDownloader,
        settings: SyncSettings,
        is_transient: Callable[[Exception], bool] = _never_retry,
    ) -> None:
        self._downloader = downloader
        self._settings = settings
        self._is_transient = is_transient

    async def run(self, tasks: Sequence[DownloadTask]) -> DownloadReport:
        report = DownloadReport()
        size = self._settings.download_batch_size
        batches = [list(tasks[i : i + size]) for i in range(0, len(tasks), size)]

        for index, batch in enumerate(batches):
            logger.info(
                "Processing download batch %d/%d (%d tasks)",
                index + 1,
                len(batches),
                len(batch),
            )
            outcomes = await asyncio.gather(
                *(self._download_one(task) for task in batch),
                return_exceptions=True,
            )
            for task, outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, DownloadResult):
                    report.successful += 1
                    report.downloads.append(outcome)
                elif isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.warning(
                        "Download failed for generation %s: %s",
                        task.generation_id,
                        outcome,
                    )
                    report.errors.append(
                        SyncError(
                            generation_id=task.generation_id,
                            error=str(outcome) or type(outcome).__name__,
                            action="download",
                        )
                    )

            if index < len(batches) - 1 and self._settings.download_batch_delay > 0:
                await asyncio.sleep(self._settings.download_batch_delay)

        return report

    async def _download_one(self, task: DownloadTask) -> DownloadResult:
        if not is_usable_url(task.external_url):
            raise ValidationException(
                f"No usable audio URL for generation {task.generation_id}"
            )
        return await retry_async(
            lambda: self._downloader.download_and_persist(
                task.generation_id, task.external_url
            ),
            should_retry=self._is_transient,
            max_attempts=self._settings.download_max_attempts,
            initial_delay=self._settings.download_retry_base_delay,
            label=f"download {task.generation_id}",
        )
