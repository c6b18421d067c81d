"""FastAPI application factory."""

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from studiosync import __version__
from studiosync.api.exception_handlers import register_exception_handlers
from studiosync.api.routers import api_router, health
from studiosync.config import Settings, get_settings
from studiosync.infrastructure.lifecycle import lifespan
from studiosync.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Explicit settings (tests); the cached environment settings otherwise
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="StudioSync",
        description="Reconciles AI generation jobs with the track catalog",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(api_router, prefix="/api")

    # Downloaded audio is served from here; STORAGE_PUBLIC_BASE_URL must point at it.
    app.mount(
        "/media/audio",
        StaticFiles(directory=settings.storage.audio_path, check_dir=False),
        name="audio",
    )
    return app


app = create_app()
