"""Service layer exports."""

from .accounts import AccountService
from .session_tokens import SessionTokenService, SessionTokenSigningError
from .token_cipher import TokenCipherService, TokenDecryptionError
from .token_refresh import TokenRefreshError, TokenRefreshService
from .token_store import DeletionReport, TokenStore
from .workouts import WorkoutService

__all__ = [
    "AccountService",
    "DeletionReport",
    "SessionTokenService",
    "SessionTokenSigningError",
    "TokenCipherService",
    "TokenDecryptionError",
    "TokenRefreshError",
    "TokenRefreshService",
    "TokenStore",
    "WorkoutService",
]
