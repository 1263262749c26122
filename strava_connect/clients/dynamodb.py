"""
Utility wrapper for storing user profiles, OAuth tokens and workouts in DynamoDB.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from strava_connect.clients.storage import RecordStoreError
from strava_connect.core.config import AWSSettings


def _to_dynamo(item: Dict[str, Any]) -> Dict[str, Any]:
    """DynamoDB rejects Python floats, so numbers are re-parsed as Decimal."""
    return json.loads(json.dumps(item), parse_float=Decimal)


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: _from_dynamo(inner) for key, inner in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(inner) for inner in value]
    return value


class DynamoDBClient:
    """CRUD operations against the composite-key (pk, sk) profile table."""

    def __init__(self, settings: AWSSettings, resource: Any | None = None) -> None:
        self._settings = settings
        self._resource = resource or boto3.resource(
            "dynamodb", region_name=settings.region_name
        )
        self._table = self._resource.Table(settings.dynamodb_table_name)

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table."""
        try:
            self._table.put_item(Item=_to_dynamo(item))
        except (BotoCoreError, ClientError) as exc:
            raise RecordStoreError(
                f"Failed to write {item.get('pk')}/{item.get('sk')}"
            ) from exc

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        """Retrieve an item using its key."""
        try:
            response = self._table.get_item(Key={"pk": partition_key, "sk": sort_key})
        except (BotoCoreError, ClientError) as exc:
            raise RecordStoreError(f"Failed to read {partition_key}/{sort_key}") from exc
        item = response.get("Item")
        return _from_dynamo(item) if item else None

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        try:
            self._table.delete_item(Key={"pk": partition_key, "sk": sort_key})
        except (BotoCoreError, ClientError) as exc:
            raise RecordStoreError(
                f"Failed to delete {partition_key}/{sort_key}"
            ) from exc

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        """Query items sharing a partition key whose sort key starts with a prefix."""
        condition = Key("pk").eq(partition_key) & Key("sk").begins_with(sort_key_prefix)
        items: list[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {"KeyConditionExpression": condition}
        try:
            while True:
                response = self._table.query(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as exc:
            raise RecordStoreError(f"Failed to query {partition_key}") from exc
        return [_from_dynamo(item) for item in items]


__all__ = ["DynamoDBClient"]
