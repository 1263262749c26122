"""Pytest configuration and fakes shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback when tests is not a package
    import _bootstrap  # type: ignore # noqa: F401

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest

from strava_connect.clients import (
    LegacyTokenTable,
    OAuthRevocationError,
    OAuthTokenExchangeError,
    SecretProviderError,
    SQLiteStore,
    StravaAPIError,
    StravaCredentials,
)
from strava_connect.core.config import AppSettings, SessionSettings
from strava_connect.models.oauth import TokenGrant
from strava_connect.services import (
    AccountService,
    SessionTokenService,
    TokenCipherService,
    TokenRefreshService,
    TokenStore,
    WorkoutService,
)

ATHLETE = {
    "id": 12345,
    "username": "tempo_tom",
    "firstname": "Tom",
    "lastname": "Tempo",
    "city": "Boulder",
    "state": "CO",
    "country": "USA",
    "sex": "M",
    "premium": False,
    "profile": "https://avatar.example.com/12345.jpg",
}


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class FakeOAuthClient:
    """Stands in for StravaOAuthClient without touching the network."""

    def __init__(self) -> None:
        self.codes: list[str] = []
        self.refresh_calls: list[str] = []
        self.revoked: list[str] = []
        self.fail_exchange = False
        self.fail_refresh = False
        self.fail_revoke = False
        self.refreshed_access_token = "refreshed-access"
        self.refreshed_refresh_token = "refreshed-refresh"

    def build_authorization_url(self, redirect_uri: str, state: str | None = None) -> str:
        return f"https://www.strava.com/oauth/authorize?redirect_uri={redirect_uri}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        self.codes.append(code)
        if self.fail_exchange:
            raise OAuthTokenExchangeError("Bad Request")
        return TokenGrant(
            access_token="initial-access",
            refresh_token="initial-refresh",
            expires_at=int(time.time()) + 6 * 3600,
            scope="read,activity:read_all",
            athlete=dict(ATHLETE),
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.fail_refresh:
            raise OAuthTokenExchangeError("invalid refresh_token")
        return TokenGrant(
            access_token=self.refreshed_access_token,
            refresh_token=self.refreshed_refresh_token,
            expires_at=int(time.time()) + 6 * 3600,
        )

    async def deauthorize(self, access_token: str) -> None:
        self.revoked.append(access_token)
        if self.fail_revoke:
            raise OAuthRevocationError("Authorization Error")


class FakeStravaAPI:
    def __init__(self) -> None:
        self.tokens_used: list[str] = []
        self.activity_params: list[dict[str, Any]] = []
        self.error: StravaAPIError | None = None
        self.activities: list[dict[str, Any]] = [
            {"id": 1, "name": "Morning Run", "distance": 10012.3},
            {"id": 2, "name": "Tempo Tuesday", "distance": 8000.0},
        ]

    async def list_activities(self, access_token: str, **params: Any) -> list[dict]:
        self.tokens_used.append(access_token)
        self.activity_params.append(params)
        if self.error:
            raise self.error
        return self.activities

    async def get_athlete_stats(self, access_token: str, athlete_id: int) -> dict:
        self.tokens_used.append(access_token)
        if self.error:
            raise self.error
        return {"athlete_id": athlete_id, "all_run_totals": {"count": 42}}


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="test-secret")


@pytest.fixture
def record_store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(str(tmp_path / "records.db"))


@pytest.fixture
def legacy_table(tmp_path: Path) -> LegacyTokenTable:
    return LegacyTokenTable(str(tmp_path / "tokens.db"))


@pytest.fixture
def token_store(record_store, legacy_table, cipher) -> TokenStore:
    return TokenStore(record_store=record_store, legacy_table=legacy_table, token_cipher=cipher)


@pytest.fixture
def oauth_client() -> FakeOAuthClient:
    return FakeOAuthClient()


@pytest.fixture
def session_service() -> SessionTokenService:
    return SessionTokenService(SessionSettings(SESSION_SECRET="test-session-secret"))


def make_grant(*, expires_in: int, access: str = "stored-access", refresh: str = "stored-refresh") -> TokenGrant:
    return TokenGrant(
        access_token=access,
        refresh_token=refresh,
        expires_at=int(time.time()) + expires_in,
        scope="read,activity:read_all",
        token_type="Bearer",
    )


@dataclass
class APIHarness:
    client: httpx.AsyncClient
    settings: AppSettings
    token_store: TokenStore
    record_store: SQLiteStore
    legacy_table: LegacyTokenTable
    cipher: TokenCipherService
    oauth: FakeOAuthClient
    strava_api: FakeStravaAPI
    sessions: SessionTokenService

    def login(self, athlete: dict | None = None, *, expires_in: int = 3600) -> str:
        """Store a profile and tokens and return a valid session credential."""
        athlete = athlete or ATHLETE
        self.token_store.save_profile_and_tokens(
            str(athlete["id"]), athlete, make_grant(expires_in=expires_in)
        )
        return self.sessions.issue(athlete, scope="read,activity:read_all")

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def api(
    anyio_backend, token_store, record_store, legacy_table, cipher, oauth_client, session_service
):
    from strava_connect import dependencies
    from strava_connect.main import app

    settings = AppSettings(APP_ENV="test")
    strava_api = FakeStravaAPI()
    credentials = StravaCredentials(
        client_id="client", client_secret="secret", redirect_uri="https://app.example.com"
    )

    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_session_token_service: lambda: session_service,
            dependencies.get_strava_credentials: lambda: credentials,
            dependencies.get_strava_oauth_client: lambda: oauth_client,
            dependencies.get_strava_api_client: lambda: strava_api,
            dependencies.get_token_store: lambda: token_store,
            dependencies.get_token_refresh_service: lambda: TokenRefreshService(
                token_store=token_store, oauth_client=oauth_client
            ),
            dependencies.get_workout_service: lambda: WorkoutService(record_store),
            dependencies.get_account_service: lambda: AccountService(
                token_store=token_store, oauth_client_factory=lambda: oauth_client
            ),
        }
    )

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        yield APIHarness(
            client=client,
            settings=settings,
            token_store=token_store,
            record_store=record_store,
            legacy_table=legacy_table,
            cipher=cipher,
            oauth=oauth_client,
            strava_api=strava_api,
            sessions=session_service,
        )

    app.dependency_overrides.clear()


@pytest.fixture
def credentials_unavailable(api, monkeypatch):
    """Serve the real account service while Strava credentials cannot be resolved."""
    from strava_connect import dependencies
    from strava_connect.dependencies import clients as dependency_factories
    from strava_connect.main import app

    def unavailable() -> StravaCredentials:
        raise SecretProviderError("secrets manager unreachable")

    app.dependency_overrides.pop(dependencies.get_account_service, None)
    dependency_factories.get_strava_oauth_client.cache_clear()
    monkeypatch.setattr(dependency_factories, "get_strava_credentials", unavailable)
    yield api
    dependency_factories.get_strava_oauth_client.cache_clear()
