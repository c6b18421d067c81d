"""Liveness endpoint for Docker/Kubernetes health checks."""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from studiosync import __version__

router = APIRouter(tags=["health"])


class LivenessStatus(BaseModel):
    status: str = Field(description="alive")
    timestamp: str = Field(description="ISO timestamp")
    version: str = Field(default=__version__)


@router.get("/health", response_model=LivenessStatus)
async def health() -> LivenessStatus:
    """The process is up and serving requests. Does not touch the database."""
    return LivenessStatus(status="alive", timestamp=datetime.now(UTC).isoformat())
