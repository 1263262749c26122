"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_account_service,
    get_legacy_token_table,
    get_record_store,
    get_secret_provider,
    get_session_token_service,
    get_strava_api_client,
    get_strava_credentials,
    get_strava_oauth_client,
    get_token_cipher_service,
    get_token_refresh_service,
    get_token_store,
    get_workout_service,
)
from .config import get_app_settings

__all__ = [
    "get_account_service",
    "get_app_settings",
    "get_legacy_token_table",
    "get_record_store",
    "get_secret_provider",
    "get_session_token_service",
    "get_strava_api_client",
    "get_strava_credentials",
    "get_strava_oauth_client",
    "get_token_cipher_service",
    "get_token_refresh_service",
    "get_token_store",
    "get_workout_service",
]
