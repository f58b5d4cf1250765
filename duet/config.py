"""Duet configuration — loaded from .env via pydantic-settings."""

from pydantic_settings import BaseSettings
from pydantic import Field


class DuetSettings(BaseSettings):
    """All Duet configuration. Reads from .env file and environment variables."""

    # --- Execution ---
    execution_timeout_ms: int = Field(
        default=5000,
        description="Wall-clock budget for a single run, in milliseconds",
    )
    js_max_memory_mb: int = Field(
        default=64,
        description="Heap limit hint passed to the embedded V8 runtime",
    )

    # --- Sessions ---
    default_language: str = Field(
        default="python",
        description="Language selected for a freshly created session",
    )
    session_id_length: int = Field(
        default=8,
        description="Number of hex characters in a session id",
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# Module-level singleton
settings = DuetSettings()
