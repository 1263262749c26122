"""SQLite-backed substitute for the DynamoDB profile table."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional

from strava_connect.clients.storage import RecordStoreError


class SQLiteStore:
    """Simple key-value store using a normalized table keyed by (pk, sk)."""

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
                CREATE TABLE IF NOT EXISTS user_records (
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (pk, sk)
                )
                """
            )

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        data_json = json.dumps(item)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO user_records (pk, sk, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                    """,
                    (pk, sk, data_json),
                )
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to write {pk}/{sk}") from exc

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT data FROM user_records WHERE pk = ? AND sk = ?",
                    (partition_key, sort_key),
                ).fetchone()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to read {partition_key}/{sort_key}") from exc
        if not row:
            return None
        return json.loads(row["data"])

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    "DELETE FROM user_records WHERE pk = ? AND sk = ?",
                    (partition_key, sort_key),
                )
        except sqlite3.Error as exc:
            raise RecordStoreError(
                f"Failed to delete {partition_key}/{sort_key}"
            ) from exc

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        # substr() instead of LIKE so '%' and '_' in ids are matched literally.
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT data FROM user_records
                    WHERE pk = ? AND substr(sk, 1, ?) = ?
                    ORDER BY sk
                    """,
                    (partition_key, len(sort_key_prefix), sort_key_prefix),
                ).fetchall()
        except sqlite3.Error as exc:
            raise RecordStoreError(f"Failed to query {partition_key}") from exc
        return [json.loads(row["data"]) for row in rows]


__all__ = ["SQLiteStore"]
