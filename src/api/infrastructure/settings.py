"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

import re
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TAG_PATTERN = re.compile(r"^[A-Z0-9]{1,8}$")
_KIND_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,31}$")


class StoreSettings(BaseSettings):
    """Tenant store connection settings.

    Environment variables:
        SCHOOLHUB_DB_HOST: Database host (default: localhost)
        SCHOOLHUB_DB_PORT: Database port (default: 5432)
        SCHOOLHUB_DB_USERNAME: Database user (default: schoolhub)
        SCHOOLHUB_DB_PASSWORD: Database password (required in production)
        SCHOOLHUB_DB_MAINTENANCE_DATABASE: Database used to create tenant databases (default: postgres)
        SCHOOLHUB_DB_POOL_MIN_CONNECTIONS: Minimum connections per tenant pool (default: 1)
        SCHOOLHUB_DB_POOL_MAX_CONNECTIONS: Maximum connections per tenant pool (default: 10)
        SCHOOLHUB_DB_CONNECT_TIMEOUT_SECONDS: Connection establishment timeout (default: 10)
        SCHOOLHUB_DB_OPERATION_TIMEOUT_MS: Statement timeout for sequence increments (default: 5000)
        SCHOOLHUB_DB_APPLICATION_NAME: application_name reported to the server (default: schoolhub)
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHOOLHUB_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port", ge=1, le=65535)
    username: str = Field(default="schoolhub", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    maintenance_database: str = Field(
        default="postgres",
        description="Database used for CREATE DATABASE and catalog lookups",
    )
    pool_min_connections: int = Field(
        default=1,
        description="Minimum connections in each tenant pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in each tenant pool",
        ge=1,
        le=100,
    )
    connect_timeout_seconds: int = Field(
        default=10,
        description="Seconds to wait while establishing a tenant connection",
        ge=1,
        le=300,
    )
    operation_timeout_ms: int = Field(
        default=5000,
        description="Statement timeout applied to sequence increments",
        ge=1,
    )
    application_name: str = Field(
        default="schoolhub",
        description="application_name reported to the server",
    )

    @field_validator("host", "username", "maintenance_database")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        """Reject blank connection parameters."""
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "StoreSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    def connection_string(self, database: str) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{database}"


def _default_kind_tags() -> dict[str, str]:
    return {"admin": "A", "teacher": "T", "student": "S", "parent": "P"}


class SequenceSettings(BaseSettings):
    """Identifier sequence settings.

    Environment variables:
        SCHOOLHUB_SEQ_START_VALUE: Counter value before the first allocation (default: 0)
        SCHOOLHUB_SEQ_PAD_WIDTH: Zero-padding width of the numeric part (default: 4)
        SCHOOLHUB_SEQ_KIND_TAGS: JSON object mapping entity kind to identifier tag
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHOOLHUB_SEQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    start_value: int = Field(
        default=0,
        description="Counter value before the first allocation",
        ge=0,
    )
    pad_width: int = Field(
        default=4,
        description="Zero-padding width of the numeric part",
        ge=1,
        le=12,
    )
    kind_tags: dict[str, str] = Field(
        default_factory=_default_kind_tags,
        description="Entity kind to identifier tag mapping",
    )

    @field_validator("kind_tags")
    @classmethod
    def validate_kind_tags(cls, value: dict[str, str]) -> dict[str, str]:
        """Normalize kinds to lower case and tags to upper case."""
        if not value:
            raise ValueError("at least one entity kind must be configured")

        normalized: dict[str, str] = {}
        for kind, tag in value.items():
            kind_key = kind.strip().lower()
            tag_value = tag.strip().upper()
            if not _KIND_PATTERN.match(kind_key):
                raise ValueError(f"invalid entity kind: {kind!r}")
            if not _TAG_PATTERN.match(tag_value):
                raise ValueError(f"invalid tag for {kind_key!r}: {tag!r}")
            normalized[kind_key] = tag_value

        if len(set(normalized.values())) != len(normalized):
            raise ValueError("identifier tags must be unique per entity kind")
        return normalized


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="SCHOOLHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="SchoolHub API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def store(self) -> StoreSettings:
        """Get store settings."""
        return get_store_settings()

    @property
    def sequences(self) -> SequenceSettings:
        """Get sequence settings."""
        return get_sequence_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_store_settings() -> StoreSettings:
    """Get cached store settings."""
    return StoreSettings()


@lru_cache
def get_sequence_settings() -> SequenceSettings:
    """Get cached sequence settings."""
    return SequenceSettings()
