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
    - Logging verbosity
    - Realtime channel tuning
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Meeting Session Service"
    APP_ENV: str = Field("local", description="Environment name: local/test/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./meeting_session.db",
        description="SQLAlchemy-compatible async database URL",
    )
    DB_ECHO: bool = Field(
        default=False,
        description="Echo emitted SQL statements (debugging only).",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level for the service (DEBUG/INFO/WARNING/ERROR).",
    )

    # --- Realtime fan-out ---
    WS_SEND_QUEUE_SIZE: int = Field(
        default=64,
        ge=1,
        description=(
            "Maximum number of outbound messages buffered per WebSocket "
            "connection. When the buffer is full the message is dropped for "
            "that connection instead of blocking the broadcaster."
        ),
    )
    WS_REQUIRE_MEETING_ACCESS: bool = Field(
        default=True,
        description=(
            "Only let a connection join a meeting room when its identity is the "
            "meeting creator, a participant, or may manage the agenda."
        ),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
