"""Schemas for user-defined custom workouts."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

Difficulty = Literal["easy", "medium", "hard"]


class WorkoutCreateRequest(BaseModel):
    """Payload for creating a custom workout."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    duration: Optional[int] = Field(None, ge=0, description="Duration in seconds.")
    difficulty: Optional[Difficulty] = Field(
        None, description="Defaults to 'medium' when omitted."
    )
    count: Optional[int] = Field(None, ge=0)
    date: Optional[datetime] = Field(
        None, description="ISO-8601 date of the workout; defaults to now."
    )


class Workout(BaseModel):
    """Stored representation returned to clients."""

    workout_id: str
    name: str
    description: Optional[str] = None
    duration: int = 0
    difficulty: Difficulty = "medium"
    count: int = 0
    workout_date: str
    created_at: str


__all__ = ["Difficulty", "Workout", "WorkoutCreateRequest"]
