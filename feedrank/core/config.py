from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from feedrank.core.version import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    PORT: int = 8000
    APP_ENV: Literal["development", "production", "test"] = "production"
    LOG_LEVEL: str = "INFO"

    REDIS_URL: str = "redis://localhost:6379/0"
    # Maximum number of connections Redis client will open per process
    REDIS_MAX_CONNECTIONS: int = 20
    CACHE_ENABLED: bool = True
    CACHE_KEY_PREFIX: str = "feedrank:"

    # Optional JSON file used to seed the in-memory repository
    DATA_SEED_PATH: str | None = None

    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    DEFAULT_FEED_LIMIT: int = 30
    # Upper bound on items / users scanned by a single provider query
    SCAN_LIMIT: int = 5000
    USER_SCAN_LIMIT: int = 1000


settings = Settings()

APP_VERSION = __version__
