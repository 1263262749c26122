"""Schemas for profile updates and account deletion."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ProfileUpdateRequest(BaseModel):
    """Only these application-local fields may be changed by the user."""

    preferences: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None
    subscription_tier: Optional[Literal["free", "premium", "pro"]] = None

    def updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class AccountDeletionRequest(BaseModel):
    confirm_deletion: bool = Field(
        False, description="Must be true for the account to be deleted."
    )


__all__ = ["AccountDeletionRequest", "ProfileUpdateRequest"]
