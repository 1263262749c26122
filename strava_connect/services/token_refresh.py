"""
Helpers for retrieving and refreshing Strava OAuth tokens.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from strava_connect.clients.strava_auth import (
    OAuthTokenExchangeError,
    OAuthTokenNotFoundError,
    StravaOAuthClient,
)
from strava_connect.models.oauth import TokenRecord
from strava_connect.services.token_store import TokenStore

logger = logging.getLogger(__name__)


class TokenRefreshError(Exception):
    """Raised when Strava rejects a refresh-token exchange."""


class TokenRefreshService:
    """Single entry point handlers use to obtain a usable access token.

    There is no locking: concurrent requests for the same expired user may
    each refresh, and the last token write wins.
    """

    def __init__(
        self,
        token_store: TokenStore,
        oauth_client: StravaOAuthClient,
        *,
        refresh_margin_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = token_store
        self._oauth = oauth_client
        self._margin = refresh_margin_seconds
        self._clock = clock

    async def ensure_fresh_token(self, *, user_id: str) -> TokenRecord:
        """Return stored tokens, refreshing and persisting them first if expired."""
        tokens = self._store.get_tokens(user_id)
        if tokens is None:
            raise OAuthTokenNotFoundError(f"No OAuth token stored for user {user_id}.")

        if not tokens.needs_refresh(self._clock(), self._margin):
            return tokens

        logger.info("Access token expired for user %s, refreshing", user_id)
        try:
            grant = await self._oauth.refresh_token(tokens.refresh_token)
        except OAuthTokenExchangeError as exc:
            logger.error("Token refresh failed for user %s: %s", user_id, exc)
            raise TokenRefreshError(f"Token refresh failed for user {user_id}.") from exc

        refreshed = self._store.save_tokens(user_id, grant, fallback_scope=tokens.scope)
        logger.info("Token refreshed for user %s", user_id)
        return refreshed


__all__ = ["TokenRefreshError", "TokenRefreshService"]
