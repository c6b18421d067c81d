"""Shared fixtures for StudioSync tests."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from studiosync.config import (
    AuthSettings,
    DatabaseSettings,
    Settings,
    StorageSettings,
    SyncSettings,
)
from studiosync.domain.entities import GenerationJob, GenerationStatus, Track
from studiosync.infrastructure.integrations.http_pool import HttpClientPool
from studiosync.infrastructure.persistence import Database


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file and storage dir."""
    return Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        auth=AuthSettings(url="https://auth.test", api_key="anon-key"),
        storage=StorageSettings(
            audio_path=tmp_path / "audio",
            public_base_url="http://media.test/audio",
        ),
        sync=SyncSettings(download_batch_delay=0.0, download_retry_base_delay=0.0),
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


# Hey future me - the pool is a class-level singleton. Each test gets its own event loop,
# so a client (and lock) created in one test must not leak into the next.
@pytest.fixture(autouse=True)
async def reset_http_pool() -> AsyncGenerator[None, None]:
    yield
    await HttpClientPool.close()
    HttpClientPool._lock = None


@pytest.fixture
def make_job() -> Callable[..., GenerationJob]:
    """Factory for completed Suno jobs with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> GenerationJob:
        counter["n"] += 1
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "id": f"gen-{counter['n']}",
            "user_id": "user-1",
            "provider": "suno",
            "status": GenerationStatus.COMPLETED,
            "prompt": "Dreamy synthwave\nwith a slow build",
            "result_url": None,
            "metadata": {},
            "created_at": now - timedelta(minutes=10),
            "completed_at": now - timedelta(minutes=counter["n"]),
        }
        values.update(overrides)
        return GenerationJob(**values)

    return _make


@pytest.fixture
def make_track() -> Callable[..., Track]:
    counter = {"n": 0}

    def _make(**overrides: Any) -> Track:
        counter["n"] += 1
        values: dict[str, Any] = {
            "id": f"track-{counter['n']}",
            "title": f"Track {counter['n']}",
            "project_id": "project-1",
        }
        values.update(overrides)
        return Track(**values)

    return _make
