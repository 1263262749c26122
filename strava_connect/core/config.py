"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the dependency factories
and the maintenance scripts share one configuration surface. Settings are
built once per process and handed to the components that need them.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)


class StravaSettings(_EnvSettings):
    """Strava OAuth client and API configuration.

    Client credentials may be omitted here, in which case they are read from
    AWS Secrets Manager on first use.
    """

    client_id: Optional[str] = Field(None, validation_alias="STRAVA_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="STRAVA_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="REDIRECT_URI",
        description="Front-end base URL users land on after connecting Strava.",
    )
    callback_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="STRAVA_CALLBACK_URL",
        description="Public URL of the /auth/exchange_token endpoint.",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("read", "activity:read_all"),
        validation_alias="STRAVA_SCOPES",
    )
    api_base_url: str = Field(
        "https://www.strava.com/api/v3", validation_alias="STRAVA_API_BASE_URL"
    )
    oauth_base_url: str = Field(
        "https://www.strava.com/oauth", validation_alias="STRAVA_OAUTH_BASE_URL"
    )
    request_timeout_seconds: float = Field(10.0, validation_alias="STRAVA_REQUEST_TIMEOUT")
    refresh_margin_seconds: int = Field(
        0,
        ge=0,
        validation_alias="TOKEN_REFRESH_MARGIN",
        description="Refresh access tokens this many seconds before they expire.",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)


class AWSSettings(_EnvSettings):
    """Settings for AWS services used by the platform."""

    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    secrets_id: str = Field(
        "coach-connect-secrets",
        validation_alias="STRAVA_SECRETS_ID",
        description="Secrets Manager entry holding the Strava client credentials.",
    )
    dynamodb_table_name: str = Field("user_profiles", validation_alias="DYNAMODB_TABLE_NAME")


class StorageSettings(_EnvSettings):
    """Selects the record store backend and local database locations."""

    backend: Literal["dynamodb", "sqlite"] = Field(
        "dynamodb", validation_alias="STORAGE_BACKEND"
    )
    record_store_path: str = Field("data/records.db", validation_alias="RECORD_STORE_PATH")
    legacy_tokens_path: str = Field("data/tokens.db", validation_alias="LEGACY_TOKENS_DB")


class SessionSettings(_EnvSettings):
    """Signing and cookie configuration for the session credential."""

    secret: Optional[str] = Field(None, validation_alias="SESSION_SECRET")
    issuer: str = Field("strava-connect", validation_alias="SESSION_ISSUER")
    audience: str = Field("strava-app", validation_alias="SESSION_AUDIENCE")
    ttl_seconds: int = Field(24 * 60 * 60, gt=0, validation_alias="SESSION_TTL_SECONDS")
    cookie_name: str = Field("auth_token", validation_alias="SESSION_COOKIE_NAME")
    cookie_samesite: Literal["lax", "strict"] = Field(
        "lax", validation_alias="SESSION_COOKIE_SAMESITE"
    )


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    cors_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.hmap.click", "http://localhost:5173"),
        validation_alias="CORS_ALLOWED_ORIGINS",
    )
    strava: StravaSettings = Field(default_factory=StravaSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "AWSSettings",
    "SecuritySettings",
    "SessionSettings",
    "StorageSettings",
    "StravaSettings",
    "get_settings",
]
