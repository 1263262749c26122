"""Schemas related to the Strava login flow and session handling."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field


class LogoutRequest(BaseModel):
    """Optional body accepted by the logout endpoint."""

    revoke_upstream: bool = Field(
        False,
        validation_alias=AliasChoices("revoke_upstream", "revoke_strava"),
        description="Also deauthorize the application on Strava.",
    )


__all__ = ["LogoutRequest"]
