"""
Request authentication gate.

The session credential is read from the ``auth_token`` cookie first and from
an ``Authorization: Bearer`` header second. ``require_identity`` rejects
requests without a valid credential; ``optional_identity`` lets them through
anonymously.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import Depends, Request, Response

from strava_connect.api.errors import APIError
from strava_connect.core.config import AppSettings
from strava_connect.dependencies import get_app_settings, get_session_token_service
from strava_connect.models.oauth import SessionIdentity
from strava_connect.services.session_tokens import SessionTokenService

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "


def extract_session_token(request: Request, cookie_name: str) -> Optional[str]:
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token

    authorization = request.headers.get("authorization", "")
    if authorization.startswith(_BEARER_PREFIX):
        return authorization[len(_BEARER_PREFIX):].strip() or None
    return None


async def require_identity(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    sessions: Annotated[SessionTokenService, Depends(get_session_token_service)],
) -> SessionIdentity:
    token = extract_session_token(request, settings.session.cookie_name)
    if not token:
        logger.info("No session credential on %s %s", request.method, request.url.path)
        raise APIError(
            HTTPStatus.UNAUTHORIZED,
            "Authentication required",
            "No authentication token provided",
        )

    identity = sessions.verify(token)
    if identity is None:
        raise APIError(
            HTTPStatus.UNAUTHORIZED,
            "Invalid token",
            "Authentication token is invalid or expired",
        )

    request.state.identity = identity
    return identity


async def optional_identity(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    sessions: Annotated[SessionTokenService, Depends(get_session_token_service)],
) -> Optional[SessionIdentity]:
    token = extract_session_token(request, settings.session.cookie_name)
    identity = sessions.verify(token) if token else None
    request.state.identity = identity
    return identity


def set_session_cookie(response: Response, token: str, settings: AppSettings) -> None:
    response.set_cookie(
        key=settings.session.cookie_name,
        value=token,
        max_age=settings.session.ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.session.cookie_samesite,
    )


def clear_session_cookie(response: Response, settings: AppSettings) -> None:
    response.delete_cookie(
        key=settings.session.cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite=settings.session.cookie_samesite,
    )


RequiredIdentity = Annotated[SessionIdentity, Depends(require_identity)]
OptionalIdentity = Annotated[Optional[SessionIdentity], Depends(optional_identity)]

__all__ = [
    "OptionalIdentity",
    "RequiredIdentity",
    "clear_session_cookie",
    "extract_session_token",
    "optional_identity",
    "require_identity",
    "set_session_cookie",
]
