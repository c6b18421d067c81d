"""External integration client implementations."""

from studiosync.infrastructure.integrations.audio_downloader import (
    LocalAudioDownloader,
    is_transient_download_error,
)
from studiosync.infrastructure.integrations.auth_client import AuthProviderClient
from studiosync.infrastructure.integrations.http_pool import HttpClientPool

__all__ = [
    "AuthProviderClient",
    "HttpClientPool",
    "LocalAudioDownloader",
    "is_transient_download_error",
]
