"""
Configuration settings for tablemap.

Uses Pydantic Settings to load environment variables for the database
connection, connection establishment, statement batching and logging.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("tablemap", alias="DB_NAME")
    # Full connection URI; takes precedence over the discrete fields above.
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")

    # Connection establishment
    connect_timeout: float = Field(10.0, alias="DB_CONNECT_TIMEOUT", gt=0)
    command_timeout: Optional[float] = Field(None, alias="DB_COMMAND_TIMEOUT", gt=0)
    connect_attempts: int = Field(3, alias="DB_CONNECT_ATTEMPTS", ge=1)
    connect_backoff: float = Field(1.0, alias="DB_CONNECT_BACKOFF", ge=0)

    # Statements
    batch_size: int = Field(500, alias="ORM_BATCH_SIZE", ge=1)
    stream_prefetch: int = Field(100, alias="ORM_STREAM_PREFETCH", ge=1)

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def dsn(self) -> str:
        """Connection URI: ``database_url`` if set, otherwise composed from parts."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{quote(self.db_user, safe='')}:{quote(self.db_password, safe='')}"
            f"@{self.db_host}:{self.db_port}/{quote(self.db_name, safe='')}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
