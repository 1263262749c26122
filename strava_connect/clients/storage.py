"""Shared contract for the composite-key record stores."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol


class RecordStoreError(Exception):
    """Raised when a record store read or write fails."""


class RecordStore(Protocol):
    """Key-value store addressed by a partition key and a sort key.

    Implemented by ``DynamoDBClient`` in deployed environments and by
    ``SQLiteStore`` for local development.
    """

    def put_item(self, item: Dict[str, Any]) -> None:
        ...

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        ...

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        ...

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        ...


__all__ = ["RecordStore", "RecordStoreError"]
