"""Upstream revocation and account removal."""

from __future__ import annotations

import logging
from typing import Callable

from strava_connect.clients.secrets_manager import SecretProviderError
from strava_connect.clients.storage import RecordStoreError
from strava_connect.clients.strava_auth import OAuthRevocationError, StravaOAuthClient
from strava_connect.services.token_cipher import TokenDecryptionError
from strava_connect.services.token_store import DeletionReport, TokenStore

logger = logging.getLogger(__name__)


class AccountService:
    """Coordinates best-effort Strava deauthorization with local cleanup.

    The OAuth client is only built when a revocation is attempted, so logout
    and local deletion keep working while Strava credentials cannot be
    resolved.
    """

    def __init__(
        self,
        token_store: TokenStore,
        oauth_client_factory: Callable[[], StravaOAuthClient],
    ) -> None:
        self._store = token_store
        self._oauth_client_factory = oauth_client_factory

    async def revoke_upstream(self, *, user_id: str) -> bool:
        """Deauthorize the stored access token. Never raises.

        Returns ``True`` only when Strava confirmed the revocation.
        """
        try:
            tokens = self._store.get_tokens(user_id)
        except (RecordStoreError, TokenDecryptionError):
            logger.warning("Could not load tokens to revoke for user %s", user_id, exc_info=True)
            return False
        if tokens is None:
            logger.info("No stored tokens to revoke for user %s", user_id)
            return False

        try:
            oauth_client = self._oauth_client_factory()
        except SecretProviderError as exc:
            logger.warning("Cannot revoke Strava access for user %s: %s", user_id, exc)
            return False

        try:
            await oauth_client.deauthorize(tokens.access_token)
        except OAuthRevocationError as exc:
            logger.warning("Failed to revoke Strava access for user %s: %s", user_id, exc)
            return False

        logger.info("Revoked Strava access for user %s", user_id)
        return True

    async def delete_account(self, *, user_id: str) -> DeletionReport:
        await self.revoke_upstream(user_id=user_id)
        report = self._store.delete_all(user_id)
        if report.success:
            logger.info("Deleted all data for user %s", user_id)
        else:
            logger.error("Partial deletion for user %s; failed: %s", user_id, report.failed)
        return report


__all__ = ["AccountService"]
