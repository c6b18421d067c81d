"""Configuration module for StudioSync."""

from .settings import (
    AuthSettings,
    DatabaseSettings,
    ObservabilitySettings,
    Settings,
    StorageSettings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "AuthSettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "Settings",
    "StorageSettings",
    "SyncSettings",
    "get_settings",
]
