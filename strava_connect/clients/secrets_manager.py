"""
Strava client credentials sourced from the environment or AWS Secrets Manager.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from strava_connect.core.config import AWSSettings, StravaSettings

logger = logging.getLogger(__name__)


class SecretProviderError(Exception):
    """Raised when required OAuth client secrets cannot be resolved."""


@dataclass(frozen=True)
class StravaCredentials:
    client_id: str
    client_secret: str
    redirect_uri: str


class SecretsManagerProvider:
    """Fetch a JSON secret once and serve it from memory for the process lifetime."""

    def __init__(self, settings: AWSSettings, client: Any | None = None) -> None:
        self._secret_id = settings.secrets_id
        self._client = client or boto3.client(
            "secretsmanager", region_name=settings.region_name
        )
        self._cached: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    def get_secrets(self) -> Dict[str, Any]:
        with self._lock:
            if self._cached is None:
                try:
                    response = self._client.get_secret_value(SecretId=self._secret_id)
                except (BotoCoreError, ClientError) as exc:
                    logger.error("Failed to fetch secret %s: %s", self._secret_id, exc)
                    raise SecretProviderError(
                        f"Unable to load secret {self._secret_id}."
                    ) from exc
                try:
                    self._cached = json.loads(response["SecretString"])
                except (KeyError, ValueError) as exc:
                    raise SecretProviderError(
                        f"Secret {self._secret_id} is not a JSON string."
                    ) from exc
            return self._cached


def resolve_strava_credentials(
    strava_settings: StravaSettings,
    provider: SecretsManagerProvider | None,
) -> StravaCredentials:
    """Prefer explicit environment settings and fall back to Secrets Manager."""
    client_id = strava_settings.client_id
    client_secret = strava_settings.client_secret
    redirect_uri = str(strava_settings.redirect_uri) if strava_settings.redirect_uri else None

    if not (client_id and client_secret and redirect_uri):
        if provider is None:
            raise SecretProviderError(
                "Strava credentials are not configured and no secret provider is available."
            )
        secrets = provider.get_secrets()
        client_id = client_id or secrets.get("STRAVA_CLIENT_ID")
        client_secret = client_secret or secrets.get("STRAVA_CLIENT_SECRET")
        redirect_uri = redirect_uri or secrets.get("REDIRECT_URI")

    if not client_id or not client_secret or not redirect_uri:
        raise SecretProviderError(
            "STRAVA_CLIENT_ID, STRAVA_CLIENT_SECRET and REDIRECT_URI must be provided."
        )

    return StravaCredentials(
        client_id=str(client_id),
        client_secret=str(client_secret),
        redirect_uri=str(redirect_uri).rstrip("/"),
    )


__all__ = [
    "SecretProviderError",
    "SecretsManagerProvider",
    "StravaCredentials",
    "resolve_strava_credentials",
]
