"""
Domain models for OAuth token persistence and session identities.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TokenGrant(BaseModel):
    """Token payload returned by the Strava token endpoint."""

    access_token: str
    refresh_token: str
    expires_at: int = Field(..., description="Absolute expiry in epoch seconds.")
    scope: Optional[str] = None
    token_type: Optional[str] = "Bearer"
    athlete: Optional[Dict[str, Any]] = Field(
        None, description="Athlete summary, only present on authorization-code grants."
    )


class TokenRecord(BaseModel):
    """Decrypted view of the upstream tokens stored for a user."""

    user_id: str
    access_token: str
    refresh_token: str
    expires_at: int
    scope: Optional[str] = None
    token_type: Optional[str] = None
    updated_at: Optional[str] = None

    def needs_refresh(self, now: float, margin_seconds: int = 0) -> bool:
        return now >= self.expires_at - margin_seconds


class SessionIdentity(BaseModel):
    """Identity claims carried by a verified session credential."""

    user_id: str
    strava_id: int
    username: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    scope: str = "read"
    app_role: str = "user"
    features: list[str] = Field(default_factory=list)


__all__ = ["SessionIdentity", "TokenGrant", "TokenRecord"]
