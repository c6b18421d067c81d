"""API router initialization."""

# Hey future me, api_router is mounted under /api in main.py, so the sync router's
# "/sync/generated-tracks" becomes /api/sync/generated-tracks. The health router is NOT in
# here - liveness checks hit /health at the root.

from fastapi import APIRouter

from studiosync.api.routers import health, sync, tracks

api_router = APIRouter()
api_router.include_router(sync.router)
api_router.include_router(tracks.router)

__all__ = ["api_router", "health", "sync", "tracks"]
