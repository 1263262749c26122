"""
Strava OAuth utilities.

These helpers manage the authorization-code exchange, the refresh-token
exchange and upstream deauthorization.
"""

from __future__ import annotations

import time
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from fastapi import status

from strava_connect.clients.secrets_manager import StravaCredentials
from strava_connect.core.config import StravaSettings
from strava_connect.models.oauth import TokenGrant


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class OAuthTokenNotFoundError(Exception):
    """Raised when no persisted OAuth token is available for a user."""


class OAuthRevocationError(Exception):
    """Raised when Strava refuses to deauthorize an access token."""


class StravaOAuthClient:
    """Build Strava authorization URLs and exchange codes and refresh tokens."""

    def __init__(
        self,
        credentials: StravaCredentials,
        strava_settings: StravaSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._strava = strava_settings
        self._transport = transport

    @property
    def token_url(self) -> str:
        return f"{self._strava.api_base_url}/oauth/token"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._strava.request_timeout_seconds, transport=self._transport
        )

    def build_authorization_url(self, redirect_uri: str, state: str | None = None) -> str:
        """Construct the Strava OAuth consent URL."""
        params = {
            "client_id": self._credentials.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": ",".join(self._strava.scopes),
        }
        if state:
            params["state"] = state
        return f"{self._strava.oauth_base_url}/authorize?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens and the athlete summary.
        """
        payload = {
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
            "code": code,
            "grant_type": "authorization_code",
        }
        token_payload = await self._post_token(payload)

        athlete = token_payload.get("athlete")
        if not isinstance(athlete, dict):
            raise OAuthTokenExchangeError("Token payload did not include the athlete.")
        if athlete.get("id") is None:
            raise OAuthTokenExchangeError("Athlete summary did not include an id.")
        return self._parse_grant(token_payload)

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Refresh the access token using a stored refresh token.

        Strava may rotate the refresh token, so callers must persist the
        returned one.
        """
        payload = {
            "client_id": self._credentials.client_id,
            "client_secret": self._credentials.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        token_payload = await self._post_token(payload)
        return self._parse_grant(token_payload)

    async def deauthorize(self, access_token: str) -> None:
        """Revoke the application's access to the athlete's Strava account."""
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self._strava.oauth_base_url}/deauthorize",
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise OAuthRevocationError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthRevocationError(response.text)

    async def _post_token(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.post(self.token_url, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(str(exc)) from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(response.text)

        try:
            return response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError("Token endpoint returned invalid JSON.") from exc

    @staticmethod
    def _parse_grant(token_payload: Dict[str, Any]) -> TokenGrant:
        access_token = token_payload.get("access_token")
        refresh_token = token_payload.get("refresh_token")
        expires_at = token_payload.get("expires_at")
        if expires_at is None and token_payload.get("expires_in") is not None:
            expires_at = int(time.time()) + int(token_payload["expires_in"])

        if not access_token or not refresh_token or expires_at is None:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Strava.")

        return TokenGrant(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int(expires_at),
            scope=token_payload.get("scope"),
            token_type=token_payload.get("token_type") or "Bearer",
            athlete=token_payload.get("athlete"),
        )


__all__ = [
    "OAuthRevocationError",
    "OAuthTokenExchangeError",
    "OAuthTokenNotFoundError",
    "StravaOAuthClient",
]
