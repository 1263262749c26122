"""Public schema exports."""

from .auth import LogoutRequest
from .user import AccountDeletionRequest, ProfileUpdateRequest
from .workouts import Difficulty, Workout, WorkoutCreateRequest

__all__ = [
    "AccountDeletionRequest",
    "Difficulty",
    "LogoutRequest",
    "ProfileUpdateRequest",
    "Workout",
    "WorkoutCreateRequest",
]
