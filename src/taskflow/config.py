"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Connection strings copied from setup guides are treated as "not configured".
_PLACEHOLDER_MARKERS = ("placeholder", "abc123")


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV", "environment"),
    )

    mongodb_uri: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("MONGODB_URI", "mongodb_uri"),
    )
    mongodb_database: str = Field(
        default="taskflow",
        validation_alias=AliasChoices("MONGODB_DATABASE", "DB_NAME", "mongodb_database"),
    )
    mongodb_collection: str = Field(
        default="tasks",
        validation_alias=AliasChoices("MONGODB_COLLECTION", "mongodb_collection"),
    )
    db_server_selection_timeout_ms: int = Field(
        default=5000,
        ge=1,
        validation_alias=AliasChoices(
            "DB_SERVER_SELECTION_TIMEOUT_MS", "db_server_selection_timeout_ms"
        ),
    )
    db_socket_timeout_ms: int = Field(
        default=30000,
        ge=1,
        validation_alias=AliasChoices("DB_SOCKET_TIMEOUT_MS", "db_socket_timeout_ms"),
    )
    db_max_pool_size: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("DB_MAX_POOL_SIZE", "db_max_pool_size"),
    )
    db_min_pool_size: int = Field(
        default=2,
        ge=0,
        validation_alias=AliasChoices("DB_MIN_POOL_SIZE", "db_min_pool_size"),
    )

    default_page_size: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("DEFAULT_PAGE_SIZE", "default_page_size"),
    )
    max_page_size: int = Field(
        default=100,
        ge=1,
        validation_alias=AliasChoices("MAX_PAGE_SIZE", "max_page_size"),
    )

    seed_sample_tasks: bool = Field(
        default=True,
        validation_alias=AliasChoices("SEED_SAMPLE_TASKS", "seed_sample_tasks"),
        description="Populate the in-memory store with sample tasks when no database is configured.",
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        validation_alias=AliasChoices("CORS_ORIGINS", "cors_origins"),
    )

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"

    @property
    def mongodb_configured(self) -> bool:
        if self.mongodb_uri is None:
            return False
        uri = self.mongodb_uri.get_secret_value().strip()
        return bool(uri) and not any(marker in uri for marker in _PLACEHOLDER_MARKERS)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
