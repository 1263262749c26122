"""
Signed session credentials issued after a successful Strava login.

Credentials are compact HS256 JWS strings (``header.payload.signature``)
signed with the process-wide session secret. Verification is stateless, so
any instance can validate any credential; expiry is the only invalidation.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
import time
from hashlib import sha256
from typing import Any, Callable, Dict, Mapping, Optional

from strava_connect.core.config import SessionSettings
from strava_connect.models.oauth import SessionIdentity

logger = logging.getLogger(__name__)

_HEADER = {"alg": "HS256", "typ": "JWT"}
_DEVELOPMENT_SECRET = "development-session-secret-change-me"
DEFAULT_FEATURES = ("strava_sync", "activities_view")


class SessionTokenError(Exception):
    """Base class for credential verification failures."""


class SessionTokenExpiredError(SessionTokenError):
    """The credential is past its expiry."""


class SessionTokenInvalidError(SessionTokenError):
    """The credential is malformed or its signature does not match."""


class SessionTokenClaimsError(SessionTokenError):
    """The credential was issued for another issuer or audience."""


class SessionTokenSigningError(Exception):
    """Raised when a credential cannot be signed (configuration problem)."""


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


class SessionTokenService:
    """Mint and verify session credentials."""

    def __init__(
        self,
        settings: SessionSettings,
        *,
        production: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._secret: Optional[bytes] = None
        if settings.secret:
            self._secret = settings.secret.encode("utf-8")
        elif not production:
            logger.warning("SESSION_SECRET is not set; using the development secret.")
            self._secret = _DEVELOPMENT_SECRET.encode("utf-8")

    @property
    def ttl_seconds(self) -> int:
        return self._settings.ttl_seconds

    def issue(self, athlete: Mapping[str, Any], scope: Optional[str] = None) -> str:
        """Create a credential for a Strava athlete (or a stored profile)."""
        if self._secret is None:
            raise SessionTokenSigningError("Session secret is not configured.")

        athlete_id = athlete.get("id")
        if athlete_id is None:
            raise SessionTokenSigningError("Athlete payload has no id.")

        issued_at = int(self._clock())
        payload = {
            "sub": str(athlete_id),
            "strava_id": int(athlete_id),
            "username": athlete.get("username") or f"athlete_{athlete_id}",
            "firstname": athlete.get("firstname"),
            "lastname": athlete.get("lastname"),
            "scope": scope or "read",
            "app_role": "user",
            "features": list(DEFAULT_FEATURES),
            "iss": self._settings.issuer,
            "aud": self._settings.audience,
            "iat": issued_at,
            "exp": issued_at + self._settings.ttl_seconds,
        }

        signing_input = ".".join(
            (
                _b64encode(json.dumps(_HEADER, separators=(",", ":")).encode("utf-8")),
                _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")),
            )
        )
        signature = hmac.new(self._secret, signing_input.encode("ascii"), sha256).digest()
        logger.info("Issued session credential for user %s", payload["sub"])
        return f"{signing_input}.{_b64encode(signature)}"

    def decode(self, token: str) -> Dict[str, Any]:
        """Return the verified claims or raise a ``SessionTokenError`` subclass."""
        if self._secret is None:
            raise SessionTokenInvalidError("Session secret is not configured.")

        parts = token.split(".")
        if len(parts) != 3:
            raise SessionTokenInvalidError("Credential must have three segments.")
        header_segment, payload_segment, signature_segment = parts

        try:
            header = json.loads(_b64decode(header_segment))
            signature = _b64decode(signature_segment)
        except (binascii.Error, ValueError) as exc:
            raise SessionTokenInvalidError("Credential is not valid base64url/JSON.") from exc
        if not isinstance(header, dict) or header.get("alg") != _HEADER["alg"]:
            raise SessionTokenInvalidError("Unsupported credential algorithm.")

        signing_input = f"{header_segment}.{payload_segment}".encode("utf-8")
        expected = hmac.new(self._secret, signing_input, sha256).digest()
        if not hmac.compare_digest(signature, expected):
            raise SessionTokenInvalidError("Credential signature mismatch.")

        try:
            claims = json.loads(_b64decode(payload_segment))
        except (binascii.Error, ValueError) as exc:
            raise SessionTokenInvalidError("Credential payload is not JSON.") from exc
        if not isinstance(claims, dict):
            raise SessionTokenInvalidError("Credential payload is not an object.")

        if claims.get("iss") != self._settings.issuer:
            raise SessionTokenClaimsError("Unexpected credential issuer.")
        audience = claims.get("aud")
        audiences = audience if isinstance(audience, list) else [audience]
        if self._settings.audience not in audiences:
            raise SessionTokenClaimsError("Unexpected credential audience.")

        expires_at = claims.get("exp")
        if not isinstance(expires_at, (int, float)) or "sub" not in claims:
            raise SessionTokenInvalidError("Credential is missing required claims.")
        if self._clock() >= expires_at:
            raise SessionTokenExpiredError("Credential has expired.")

        return claims

    def verify(self, token: str) -> Optional[SessionIdentity]:
        """Return the identity for a valid credential, otherwise ``None``."""
        try:
            claims = self.decode(token)
        except SessionTokenExpiredError:
            logger.info("Session credential expired")
            return None
        except SessionTokenClaimsError as exc:
            logger.warning("Session credential rejected: %s", exc)
            return None
        except SessionTokenInvalidError as exc:
            logger.warning("Invalid session credential: %s", exc)
            return None

        try:
            identity = SessionIdentity(
                user_id=claims["sub"],
                strava_id=claims.get("strava_id", claims["sub"]),
                username=claims.get("username") or f"athlete_{claims['sub']}",
                firstname=claims.get("firstname"),
                lastname=claims.get("lastname"),
                scope=claims.get("scope") or "read",
                app_role=claims.get("app_role") or "user",
                features=claims.get("features") or [],
            )
        except ValueError as exc:
            logger.warning("Session credential has malformed claims: %s", exc)
            return None

        logger.debug("Session credential verified for user %s", identity.user_id)
        return identity


__all__ = [
    "DEFAULT_FEATURES",
    "SessionTokenClaimsError",
    "SessionTokenError",
    "SessionTokenExpiredError",
    "SessionTokenInvalidError",
    "SessionTokenService",
    "SessionTokenSigningError",
]
