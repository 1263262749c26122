"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBClient
from .legacy_tokens import LegacyTokenStoreError, LegacyTokenTable
from .secrets_manager import (
    SecretProviderError,
    SecretsManagerProvider,
    StravaCredentials,
    resolve_strava_credentials,
)
from .sqlite_store import SQLiteStore
from .storage import RecordStore, RecordStoreError
from .strava_api import StravaAPIClient, StravaAPIError
from .strava_auth import (
    OAuthRevocationError,
    OAuthTokenExchangeError,
    OAuthTokenNotFoundError,
    StravaOAuthClient,
)

__all__ = [
    "DynamoDBClient",
    "LegacyTokenStoreError",
    "LegacyTokenTable",
    "OAuthRevocationError",
    "OAuthTokenExchangeError",
    "OAuthTokenNotFoundError",
    "RecordStore",
    "RecordStoreError",
    "SQLiteStore",
    "SecretProviderError",
    "SecretsManagerProvider",
    "StravaAPIClient",
    "StravaAPIError",
    "StravaCredentials",
    "StravaOAuthClient",
    "resolve_strava_credentials",
]
