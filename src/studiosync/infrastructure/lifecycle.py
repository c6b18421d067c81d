"""Application lifecycle: startup and shutdown of shared resources."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from studiosync.config import Settings, get_settings
from studiosync.domain.exceptions import ConfigurationError
from studiosync.infrastructure.integrations.http_pool import HttpClientPool
from studiosync.infrastructure.observability.logging import configure_logging
from studiosync.infrastructure.persistence import Database

logger = logging.getLogger(__name__)


def _validate_sqlite_path(settings: Settings) -> None:
    """Make sure the SQLite file's directory exists and is writable.

    The file itself is left to SQLite; it also needs room for journal files next to it.
    """
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return

    try:
        if str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
        marker = db_path.parent / f".{db_path.stem}_write_test"
        marker.write_bytes(b"test")
        marker.unlink()
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to write files in database directory '{db_path.parent}': {exc}. "
            "Update DATABASE_URL or adjust directory permissions."
        ) from exc


def _ensure_audio_storage(settings: Settings) -> None:
    try:
        settings.storage.audio_path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create audio storage '{settings.storage.audio_path}': {exc}"
        ) from exc


# Hey future me - app.state.settings and app.state.db are what the dependencies read. Tests
# build their own app with create_app(settings) so nothing here touches the cached
# get_settings() unless we're running for real. create_tables() is the first-start path;
# production deployments run "alembic upgrade head" before starting, which makes it a no-op.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup and shutdown hook for the FastAPI app."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting %s", settings.app_name)

    _validate_sqlite_path(settings)
    _ensure_audio_storage(settings)

    db = Database(settings)
    app.state.db = db
    await db.create_tables()
    logger.info("Database initialized: %s", settings.database.url)

    try:
        yield
    finally:
        logger.info("Shutting down %s", settings.app_name)
        await HttpClientPool.close()
        await db.close()
