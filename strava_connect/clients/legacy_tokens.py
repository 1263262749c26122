"""Legacy one-row-per-user token table kept in sync for older readers."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional


class LegacyTokenStoreError(Exception):
    """Raised when the legacy token table cannot be read or written."""


class LegacyTokenTable:
    """Flat ``user_tokens`` table holding the latest Strava tokens per user.

    Token columns hold whatever the caller passes in; the token store writes
    ciphertext.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_tokens (
                    user_id TEXT PRIMARY KEY,
                    access_token TEXT,
                    refresh_token TEXT,
                    expires_at INTEGER
                )
                """
            )

    def upsert(
        self,
        user_id: str,
        *,
        access_token: str,
        refresh_token: str,
        expires_at: int,
    ) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO user_tokens (user_id, access_token, refresh_token, expires_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        access_token = excluded.access_token,
                        refresh_token = excluded.refresh_token,
                        expires_at = excluded.expires_at
                    """,
                    (str(user_id), access_token, refresh_token, int(expires_at)),
                )
        except sqlite3.Error as exc:
            raise LegacyTokenStoreError(f"Failed to store tokens for {user_id}") from exc

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT access_token, refresh_token, expires_at
                    FROM user_tokens WHERE user_id = ?
                    """,
                    (str(user_id),),
                ).fetchone()
        except sqlite3.Error as exc:
            raise LegacyTokenStoreError(f"Failed to read tokens for {user_id}") from exc
        if not row:
            return None
        return {
            "access_token": row["access_token"],
            "refresh_token": row["refresh_token"],
            "expires_at": row["expires_at"],
        }

    def delete(self, user_id: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM user_tokens WHERE user_id = ?", (str(user_id),))
        except sqlite3.Error as exc:
            raise LegacyTokenStoreError(f"Failed to remove tokens for {user_id}") from exc


__all__ = ["LegacyTokenStoreError", "LegacyTokenTable"]
