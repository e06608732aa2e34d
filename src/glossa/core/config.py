"""Configuration for Glossa using environment variables."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment Variables:
        GLOSSA_DB_PATH: Path to the server SQLite database (default: ./data/glossa.db)
        GLOSSA_LOCAL_DB_PATH: Path to the local download cache (default: ./data/glossa-local.db)
        GLOSSA_LOG_LEVEL: Logging level (default: INFO)
        GLOSSA_API_BASE_URL: Base URL of the remote Glossa API
        GLOSSA_HTTP_TIMEOUT: Per-request timeout in seconds
        GLOSSA_CLOSURE_MAX_FETCHES: Ceiling on records fetched by one closure
        GLOSSA_CLOSURE_CONCURRENCY: Parallel fetches per closure wave
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database Configuration
    db_path: Path = Field(
        default=Path("./data/glossa.db"),
        validation_alias="GLOSSA_DB_PATH",
        description="Path to the server SQLite database",
    )
    local_db_path: Path = Field(
        default=Path("./data/glossa-local.db"),
        validation_alias="GLOSSA_LOCAL_DB_PATH",
        description="Path to the local SQLite cache filled by downloads",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        validation_alias="GLOSSA_LOG_LEVEL",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    # Remote API
    api_base_url: str = Field(
        default="http://localhost:8000",
        validation_alias="GLOSSA_API_BASE_URL",
        description="Base URL of the Glossa API used by downloads",
    )
    http_timeout: float = Field(
        default=10.0,
        validation_alias="GLOSSA_HTTP_TIMEOUT",
        description="Timeout in seconds for a single HTTP request",
    )

    # Closure fetch
    closure_max_fetches: int = Field(
        default=500,
        validation_alias="GLOSSA_CLOSURE_MAX_FETCHES",
        description="Hard ceiling on records fetched while closing a gloss graph",
    )
    closure_concurrency: int = Field(
        default=4,
        validation_alias="GLOSSA_CLOSURE_CONCURRENCY",
        description="Maximum parallel fetches within one closure wave",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["*"],
        validation_alias="GLOSSA_CORS_ORIGINS",
        description="Origins allowed to call the API",
    )

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
