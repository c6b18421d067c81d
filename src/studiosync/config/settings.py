"""Application settings loaded from environment variables and .env files.

Hey future me - every section is its own BaseSettings with its own env prefix, so
SYNC_DOWNLOAD_BATCH_SIZE=5 lands in settings.sync.download_batch_size without any
nested-delimiter magic. The root Settings only wires the sections together and holds
the handful of app-wide values (name, log level).
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=_ENV_FILE, extra="ignore"
    )

    url: str = "sqlite+aiosqlite:///./studiosync.db"
    echo: bool = False
    pool_pre_ping: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


class AuthSettings(BaseSettings):
    """External auth provider settings.

    The provider resolves a bearer token into a user via GET {url}/auth/v1/user.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_", env_file=_ENV_FILE, extra="ignore"
    )

    url: str = "http://localhost:54321"
    api_key: str = ""
    timeout: float = 10.0

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class StorageSettings(BaseSettings):
    """Local audio storage settings."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_", env_file=_ENV_FILE, extra="ignore"
    )

    audio_path: Path = Path("./storage/audio")
    public_base_url: str = "http://localhost:8000/media/audio"
    download_timeout: float = 60.0


class SyncSettings(BaseSettings):
    """Generation sync tuning."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_", env_file=_ENV_FILE, extra="ignore"
    )

    fetch_limit: int = Field(default=50, ge=1)
    download_batch_size: int = Field(default=3, ge=1)
    download_batch_delay: float = Field(default=1.0, ge=0.0)
    download_max_attempts: int = Field(default=2, ge=1)
    download_retry_base_delay: float = Field(default=0.5, ge=0.0)


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_", env_file=_ENV_FILE, extra="ignore"
    )

    log_json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(env_file=_ENV_FILE, extra="ignore")

    app_name: str = "studiosync"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for other backends / in-memory DBs."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


# Settings are read once per process. Tests that need different values build
# their own Settings() and override the FastAPI dependency instead.
@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
