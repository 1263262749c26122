"""
FastAPI routes for the Strava connect API.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from strava_connect.api.errors import APIError
from strava_connect.api.security import (
    OptionalIdentity,
    RequiredIdentity,
    clear_session_cookie,
    set_session_cookie,
)
from strava_connect.clients import (
    OAuthTokenExchangeError,
    OAuthTokenNotFoundError,
    RecordStoreError,
    StravaAPIError,
    StravaCredentials,
)
from strava_connect.core.config import AppSettings
from strava_connect.dependencies import (
    get_account_service,
    get_app_settings,
    get_session_token_service,
    get_strava_api_client,
    get_strava_credentials,
    get_strava_oauth_client,
    get_token_refresh_service,
    get_token_store,
    get_workout_service,
)
from strava_connect.models.oauth import TokenRecord
from strava_connect.schemas import (
    AccountDeletionRequest,
    LogoutRequest,
    ProfileUpdateRequest,
    WorkoutCreateRequest,
)
from strava_connect.services import (
    SessionTokenSigningError,
    TokenDecryptionError,
    TokenRefreshError,
)

router = APIRouter()
logger = logging.getLogger(__name__)

Settings = Annotated[AppSettings, Depends(get_app_settings)]


def _diagnostic(settings: AppSettings, exc: Exception) -> Optional[str]:
    """Upstream detail is only exposed outside production."""
    return None if settings.is_production else str(exc)


def _profile_summary(user_id: str, record: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": user_id,
        "profile": record.get("profile"),
        "preferences": record.get("preferences") or {},
        "settings": record.get("settings") or {},
        "subscription_tier": record.get("subscription_tier") or "free",
        "created_at": record.get("created_at"),
        "updated_at": record.get("updated_at"),
        "last_login": record.get("last_login"),
    }


async def _fresh_tokens(refresher: Any, user_id: str, settings: AppSettings) -> TokenRecord:
    try:
        return await refresher.ensure_fresh_token(user_id=user_id)
    except OAuthTokenNotFoundError as exc:
        raise APIError(HTTPStatus.NOT_FOUND, "User tokens not found") from exc
    except TokenRefreshError as exc:
        raise APIError(
            HTTPStatus.BAD_GATEWAY,
            "Token refresh failed",
            _diagnostic(settings, exc.__cause__ or exc),
        ) from exc
    except (RecordStoreError, TokenDecryptionError) as exc:
        logger.exception("Failed to load tokens for user %s", user_id)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to load user tokens"
        ) from exc


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/authorize")
async def start_strava_oauth_flow(
    request: Request,
    settings: Settings,
    oauth_client: Annotated[Any, Depends(get_strava_oauth_client)],
) -> RedirectResponse:
    """Send the browser to the Strava consent screen."""
    callback = settings.strava.callback_url or request.url_for("exchange_token")
    authorization_url = oauth_client.build_authorization_url(redirect_uri=str(callback))
    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)


@router.get("/auth/exchange_token", name="exchange_token")
async def exchange_token(
    settings: Settings,
    oauth_client: Annotated[Any, Depends(get_strava_oauth_client)],
    token_store: Annotated[Any, Depends(get_token_store)],
    sessions: Annotated[Any, Depends(get_session_token_service)],
    credentials: Annotated[StravaCredentials, Depends(get_strava_credentials)],
    code: Optional[str] = Query(None, description="Authorization code from Strava."),
    scope: Optional[str] = Query(None, description="Scopes the athlete accepted."),
    error: Optional[str] = Query(None, description="Set by Strava when access is denied."),
) -> RedirectResponse:
    """Complete the OAuth exchange, store tokens, set the session cookie and redirect."""
    if error:
        logger.info("Strava authorization denied: %s", error)
        raise APIError(HTTPStatus.BAD_REQUEST, "Authorization denied", error)
    if not code:
        raise APIError(HTTPStatus.BAD_REQUEST, "Authorization code is required")

    try:
        grant = await oauth_client.exchange_authorization_code(code)
    except OAuthTokenExchangeError as exc:
        logger.error("Strava code exchange failed: %s", exc)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Authentication failed",
            "Unable to complete Strava authentication",
        ) from exc

    athlete = grant.athlete or {}
    user_id = str(athlete["id"])
    granted_scope = grant.scope or scope
    if granted_scope and not grant.scope:
        grant = grant.model_copy(update={"scope": granted_scope})

    try:
        token_store.save_profile_and_tokens(user_id, athlete, grant)
    except RecordStoreError as exc:
        logger.exception("Failed to persist login for user %s", user_id)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Authentication failed",
            "Unable to complete Strava authentication",
        ) from exc

    try:
        session_token = sessions.issue(athlete, scope=granted_scope)
    except SessionTokenSigningError as exc:
        logger.error("Cannot sign session credential: %s", exc)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to create authentication token"
        ) from exc

    logger.info("Successfully authenticated user %s", user_id)
    response = RedirectResponse(
        url=f"{credentials.redirect_uri}/dashboard", status_code=HTTPStatus.FOUND
    )
    set_session_cookie(response, session_token, settings)
    return response


@router.post("/auth/logout")
async def logout(
    response: Response,
    identity: OptionalIdentity,
    settings: Settings,
    accounts: Annotated[Any, Depends(get_account_service)],
    payload: Annotated[Optional[LogoutRequest], Body()] = None,
) -> dict:
    """Clear the session cookie and optionally deauthorize on Strava."""
    revoke_requested = bool(payload and payload.revoke_upstream)
    upstream_revoked = False
    if identity is not None and revoke_requested:
        upstream_revoked = await accounts.revoke_upstream(user_id=identity.user_id)

    clear_session_cookie(response, settings)
    logger.info(
        "Logged out %s", identity.user_id if identity else "anonymous session"
    )
    return {
        "success": True,
        "message": "Logged out successfully",
        "upstream_revoked": upstream_revoked,
    }


@router.get("/auth/me")
async def get_current_user(
    identity: RequiredIdentity,
    token_store: Annotated[Any, Depends(get_token_store)],
) -> dict:
    """Return the session identity merged with the stored profile."""
    try:
        record = token_store.get_profile(identity.user_id)
    except RecordStoreError as exc:
        logger.exception("Failed to load profile for user %s", identity.user_id)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to get user information"
        ) from exc
    if not record:
        raise APIError(HTTPStatus.NOT_FOUND, "User profile not found")

    user = _profile_summary(identity.user_id, record)
    user.update(
        username=identity.username,
        firstname=identity.firstname,
        lastname=identity.lastname,
    )
    return {"success": True, "user": user}


@router.post("/auth/refresh")
async def refresh_session(
    response: Response,
    identity: RequiredIdentity,
    settings: Settings,
    token_store: Annotated[Any, Depends(get_token_store)],
    sessions: Annotated[Any, Depends(get_session_token_service)],
) -> dict:
    """Mint a new session credential with a fresh validity window."""
    try:
        record = token_store.get_profile(identity.user_id)
    except RecordStoreError as exc:
        logger.exception("Failed to load profile for user %s", identity.user_id)
        raise APIError(HTTPStatus.INTERNAL_SERVER_ERROR, "Token refresh failed") from exc
    if not record:
        raise APIError(HTTPStatus.NOT_FOUND, "User not found")

    athlete = dict(record.get("profile") or {})
    athlete.setdefault("id", identity.strava_id)
    try:
        session_token = sessions.issue(athlete, scope=identity.scope)
    except SessionTokenSigningError as exc:
        logger.error("Cannot sign session credential: %s", exc)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to create authentication token"
        ) from exc

    set_session_cookie(response, session_token, settings)
    return {
        "success": True,
        "message": "Token refreshed successfully",
        "expires_in": sessions.ttl_seconds,
    }


@router.get("/activities")
async def list_activities(
    identity: RequiredIdentity,
    settings: Settings,
    refresher: Annotated[Any, Depends(get_token_refresh_service)],
    strava_api: Annotated[Any, Depends(get_strava_api_client)],
    before: Optional[int] = Query(None, description="Epoch seconds upper bound."),
    after: Optional[int] = Query(None, description="Epoch seconds lower bound."),
    per_page: int = Query(200, ge=1, le=200),
) -> dict:
    """Fetch the athlete's activities from Strava."""
    tokens = await _fresh_tokens(refresher, identity.user_id, settings)
    try:
        activities = await strava_api.list_activities(
            tokens.access_token, before=before, after=after, per_page=per_page
        )
    except StravaAPIError as exc:
        logger.error("Activities fetch failed for user %s: %s", identity.user_id, exc)
        raise APIError(
            HTTPStatus.BAD_GATEWAY,
            "Failed to fetch activities",
            _diagnostic(settings, exc),
        ) from exc

    logger.info("Retrieved %s activities for user %s", len(activities), identity.user_id)
    return {"success": True, "count": len(activities), "activities": activities}


@router.get("/athletes/stats")
async def get_athlete_stats(
    identity: RequiredIdentity,
    settings: Settings,
    refresher: Annotated[Any, Depends(get_token_refresh_service)],
    strava_api: Annotated[Any, Depends(get_strava_api_client)],
) -> dict:
    """Fetch aggregated athlete stats from Strava."""
    tokens = await _fresh_tokens(refresher, identity.user_id, settings)
    try:
        stats = await strava_api.get_athlete_stats(tokens.access_token, identity.strava_id)
    except StravaAPIError as exc:
        logger.error("Stats fetch failed for user %s: %s", identity.user_id, exc)
        raise APIError(
            HTTPStatus.BAD_GATEWAY,
            "Failed to fetch athlete stats",
            _diagnostic(settings, exc),
        ) from exc
    return {"success": True, "stats": stats}


@router.get("/user/profile")
async def get_profile(
    identity: RequiredIdentity,
    token_store: Annotated[Any, Depends(get_token_store)],
) -> dict:
    try:
        record = token_store.get_profile(identity.user_id)
    except RecordStoreError as exc:
        logger.exception("Failed to load profile for user %s", identity.user_id)
        raise APIError(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to get user profile") from exc
    if not record:
        raise APIError(HTTPStatus.NOT_FOUND, "User profile not found")
    return {"success": True, "user": _profile_summary(identity.user_id, record)}


@router.put("/user/profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    identity: RequiredIdentity,
    token_store: Annotated[Any, Depends(get_token_store)],
) -> dict:
    """Update preferences, settings or subscription tier."""
    updates = payload.updates()
    if not updates:
        raise APIError(
            HTTPStatus.BAD_REQUEST,
            "No valid updates provided",
            "Provide preferences, settings, or subscription_tier to update",
        )

    try:
        record = token_store.update_profile(identity.user_id, updates)
    except RecordStoreError as exc:
        logger.exception("Failed to update profile for user %s", identity.user_id)
        raise APIError(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to update profile") from exc
    if record is None:
        raise APIError(HTTPStatus.NOT_FOUND, "User profile not found")

    logger.info("Updated %s for user %s", sorted(updates), identity.user_id)
    return {
        "success": True,
        "message": "Profile updated successfully",
        "user": {
            "id": identity.user_id,
            "preferences": record.get("preferences") or {},
            "settings": record.get("settings") or {},
            "subscription_tier": record.get("subscription_tier") or "free",
            "updated_at": record.get("updated_at"),
        },
    }


@router.delete("/user/account")
async def delete_account(
    response: Response,
    identity: RequiredIdentity,
    settings: Settings,
    accounts: Annotated[Any, Depends(get_account_service)],
    payload: Annotated[Optional[AccountDeletionRequest], Body()] = None,
) -> dict:
    """Revoke Strava access (best effort) and delete every stored record."""
    if payload is None or not payload.confirm_deletion:
        raise APIError(
            HTTPStatus.BAD_REQUEST,
            "Deletion not confirmed",
            "Include 'confirm_deletion: true' in request body to confirm account deletion",
        )

    report = await accounts.delete_account(user_id=identity.user_id)
    if not report.success:
        raise APIError(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to delete user data")

    clear_session_cookie(response, settings)
    return {
        "success": True,
        "message": "Account deleted successfully",
        "deleted_at": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/user/workouts", status_code=HTTPStatus.CREATED)
async def create_workout(
    payload: WorkoutCreateRequest,
    identity: RequiredIdentity,
    workouts: Annotated[Any, Depends(get_workout_service)],
) -> dict:
    try:
        workout = workouts.create(identity.user_id, payload)
    except RecordStoreError as exc:
        logger.exception("Failed to save workout for user %s", identity.user_id)
        raise APIError(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Failed to save workout",
            "Unable to store workout in database",
        ) from exc
    return {
        "success": True,
        "message": "Workout created successfully",
        "workout": workout.model_dump(),
    }


@router.get("/user/workouts")
async def list_workouts(
    identity: RequiredIdentity,
    workouts: Annotated[Any, Depends(get_workout_service)],
) -> dict:
    try:
        items = workouts.list_workouts(identity.user_id)
    except RecordStoreError as exc:
        logger.exception("Failed to list workouts for user %s", identity.user_id)
        raise APIError(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to fetch workouts") from exc
    return {
        "success": True,
        "count": len(items),
        "workouts": [item.model_dump() for item in items],
    }


@router.delete("/user/workouts/{workout_id}")
async def delete_workout(
    workout_id: str,
    identity: RequiredIdentity,
    workouts: Annotated[Any, Depends(get_workout_service)],
) -> dict:
    try:
        deleted = workouts.delete(identity.user_id, workout_id)
    except RecordStoreError as exc:
        logger.exception("Failed to delete workout %s", workout_id)
        raise APIError(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to delete workout") from exc
    if not deleted:
        raise APIError(
            HTTPStatus.NOT_FOUND,
            "Workout not found",
            "Unable to find or delete the specified workout",
        )
    return {
        "success": True,
        "message": "Workout deleted successfully",
        "deleted_workout_id": workout_id,
    }
