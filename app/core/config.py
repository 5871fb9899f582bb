# app/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime and cover:
    - DB connection
    - Zoom Server-to-Server OAuth credentials and webhook secret
    - Internal API key
    - Backfill sweep cadence and throttling
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "OccurrenceSync Monitor"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root logging level.")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./occurrence_sync.db",
        description="SQLAlchemy-compatible database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Zoom API ---
    ZOOM_ACCOUNT_ID: str | None = None
    ZOOM_CLIENT_ID: str | None = None
    ZOOM_CLIENT_SECRET: str | None = None
    ZOOM_API_BASE_URL: str = "https://api.zoom.us/v2"
    ZOOM_OAUTH_URL: str = "https://zoom.us/oauth/token"
    ZOOM_WEBHOOK_SECRET: str | None = Field(
        default=None,
        description="Secret token used to sign and validate Zoom webhook requests.",
    )
    ZOOM_HTTP_TIMEOUT_SECONDS: float = 10.0
    ZOOM_DOWNLOAD_TIMEOUT_SECONDS: float = 30.0
    ZOOM_TOKEN_SAFETY_MARGIN_SECONDS: int = Field(
        default=300,
        description="Seconds subtracted from the token lifetime so it is refreshed early.",
    )
    WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS: int = Field(
        default=0,
        description=(
            "Maximum accepted age of x-zm-request-timestamp in seconds. "
            "0 disables the replay window check."
        ),
    )

    # --- Backfill sweep ---
    BACKFILL_ENABLED: bool = Field(
        default=True,
        description="Run the periodic recording backfill inside the API process.",
    )
    BACKFILL_INTERVAL_HOURS: int = 6
    BACKFILL_STARTUP_DELAY_SECONDS: int = 120
    BACKFILL_BATCH_SIZE: int = 20
    BACKFILL_ITEM_DELAY_SECONDS: float = 2.0
    BACKFILL_LOOKBACK_DAYS: int = 30
    RECORDING_MIN_AGE_MINUTES: int = Field(
        default=10,
        description="Recordings are not looked up until this long after a session ended.",
    )
    HOST_RECORDINGS_WINDOW_DAYS: int = 1

    # --- Supervisor URL backfill ---
    SUPERVISOR_BACKFILL_LIMIT: int = 50
    SUPERVISOR_BACKFILL_DELAY_SECONDS: float = 0.5

    CLIENT_POLL_INTERVAL_SECONDS: int = Field(
        default=30,
        description="Polling interval advertised to dashboard clients.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
