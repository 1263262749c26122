"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from strava_connect.clients import (
    DynamoDBClient,
    LegacyTokenTable,
    RecordStore,
    SecretsManagerProvider,
    SQLiteStore,
    StravaAPIClient,
    StravaCredentials,
    StravaOAuthClient,
    resolve_strava_credentials,
)
from strava_connect.core.config import get_settings
from strava_connect.services import (
    AccountService,
    SessionTokenService,
    TokenCipherService,
    TokenRefreshService,
    TokenStore,
    WorkoutService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_secret_provider() -> SecretsManagerProvider:
    """Provide the Secrets Manager reader used when credentials are not in env."""
    return SecretsManagerProvider(_settings().aws)


@lru_cache()
def get_strava_credentials() -> StravaCredentials:
    """Resolve Strava client credentials once per process."""
    settings = _settings()
    provider = None
    if not (
        settings.strava.client_id
        and settings.strava.client_secret
        and settings.strava.redirect_uri
    ):
        provider = get_secret_provider()
    return resolve_strava_credentials(settings.strava, provider)


@lru_cache()
def get_strava_oauth_client() -> StravaOAuthClient:
    """Create a singleton Strava OAuth client."""
    return StravaOAuthClient(get_strava_credentials(), _settings().strava)


@lru_cache()
def get_strava_api_client() -> StravaAPIClient:
    """Provide the Strava resource API client."""
    return StravaAPIClient(_settings().strava)


@lru_cache()
def get_record_store() -> RecordStore:
    """Provide the profile/token/workout record store for the configured backend."""
    settings = _settings()
    if settings.storage.backend == "sqlite":
        return SQLiteStore(settings.storage.record_store_path)
    return DynamoDBClient(settings.aws)


@lru_cache()
def get_legacy_token_table() -> LegacyTokenTable:
    """Provide the flat legacy token table."""
    return LegacyTokenTable(_settings().storage.legacy_tokens_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.session.secret
    if not secret:
        secret = get_strava_credentials().client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_session_token_service() -> SessionTokenService:
    """Provide the session credential signer/verifier."""
    settings = _settings()
    return SessionTokenService(settings.session, production=settings.is_production)


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the token store writing both token representations."""
    return TokenStore(
        record_store=get_record_store(),
        legacy_table=get_legacy_token_table(),
        token_cipher=get_token_cipher_service(),
    )


@lru_cache()
def get_token_refresh_service() -> TokenRefreshService:
    """Provide helper for obtaining non-expired Strava access tokens."""
    return TokenRefreshService(
        token_store=get_token_store(),
        oauth_client=get_strava_oauth_client(),
        refresh_margin_seconds=_settings().strava.refresh_margin_seconds,
    )


def get_workout_service() -> WorkoutService:
    """Build a workout service over the shared record store."""
    return WorkoutService(get_record_store())


def get_account_service(
    token_store: Annotated[TokenStore, Depends(get_token_store)],
) -> AccountService:
    """Build an account service for revocation and deletion.

    The OAuth client is resolved on first revocation, not per request.
    """
    return AccountService(
        token_store=token_store,
        oauth_client_factory=get_strava_oauth_client,
    )


__all__ = [
    "get_account_service",
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
