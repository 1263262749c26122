from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from strava_connect.clients.dynamodb import DynamoDBClient
from strava_connect.clients.legacy_tokens import LegacyTokenTable
from strava_connect.clients.sqlite_store import SQLiteStore
from strava_connect.clients.storage import RecordStoreError
from strava_connect.core.config import AWSSettings


class FakeTable:
    def __init__(self, page_size: int = 100) -> None:
        self.items: dict[tuple[str, str], dict] = {}
        self.page_size = page_size
        self.queries: list[dict] = []
        self.fail = False

    def _check(self, operation: str) -> None:
        if self.fail:
            raise ClientError(
                {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow"}},
                operation,
            )

    def put_item(self, *, Item: dict) -> None:
        self._check("PutItem")
        self.items[(Item["pk"], Item["sk"])] = Item

    def get_item(self, *, Key: dict) -> dict:
        self._check("GetItem")
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": item} if item else {}

    def delete_item(self, *, Key: dict) -> None:
        self._check("DeleteItem")
        self.items.pop((Key["pk"], Key["sk"]), None)

    def query(self, **kwargs) -> dict:
        self._check("Query")
        self.queries.append(kwargs)
        keys = sorted(self.items)
        start = 0
        if "ExclusiveStartKey" in kwargs:
            last = kwargs["ExclusiveStartKey"]
            start = keys.index((last["pk"], last["sk"])) + 1
        page = keys[start : start + self.page_size]
        response = {"Items": [self.items[key] for key in page]}
        if start + self.page_size < len(keys):
            pk, sk = page[-1]
            response["LastEvaluatedKey"] = {"pk": pk, "sk": sk}
        return response


class FakeResource:
    def __init__(self, table: FakeTable) -> None:
        self.table = table
        self.names: list[str] = []

    def Table(self, name: str) -> FakeTable:  # noqa: N802 - boto3 naming
        self.names.append(name)
        return self.table


def test_sqlite_store_round_trip(tmp_path: Path) -> None:
    store = SQLiteStore(str(tmp_path / "nested" / "records.db"))

    store.put_item({"pk": "USER#1", "sk": "PROFILE", "profile": {"id": 1}})

    assert store.get_item(partition_key="USER#1", sort_key="PROFILE") == {
        "pk": "USER#1",
        "sk": "PROFILE",
        "profile": {"id": 1},
    }
    store.delete_item(partition_key="USER#1", sort_key="PROFILE")
    assert store.get_item(partition_key="USER#1", sort_key="PROFILE") is None


def test_sqlite_store_requires_keys(tmp_path: Path) -> None:
    store = SQLiteStore(str(tmp_path / "records.db"))

    with pytest.raises(ValueError):
        store.put_item({"pk": "USER#1"})


def test_sqlite_prefix_query_is_literal(tmp_path: Path) -> None:
    store = SQLiteStore(str(tmp_path / "records.db"))
    store.put_item({"pk": "USER#1", "sk": "WORKOUT#b"})
    store.put_item({"pk": "USER#1", "sk": "WORKOUT#a"})
    store.put_item({"pk": "USER#1", "sk": "WORKOUTS_ARCHIVE"})
    store.put_item({"pk": "USER#2", "sk": "WORKOUT#c"})

    items = store.list_items_with_prefix(partition_key="USER#1", sort_key_prefix="WORKOUT#")

    assert [item["sk"] for item in items] == ["WORKOUT#a", "WORKOUT#b"]
    assert store.list_items_with_prefix(partition_key="USER#1", sort_key_prefix="WORKOUT_") == []


def test_legacy_table_upsert_and_delete(tmp_path: Path) -> None:
    table = LegacyTokenTable(str(tmp_path / "tokens.db"))

    table.upsert("42", access_token="a1", refresh_token="r1", expires_at=100)
    table.upsert("42", access_token="a2", refresh_token="r2", expires_at=200)

    assert table.get("42") == {"access_token": "a2", "refresh_token": "r2", "expires_at": 200}

    table.delete("42")
    assert table.get("42") is None


def test_dynamodb_converts_numbers() -> None:
    table = FakeTable()
    resource = FakeResource(table)
    client = DynamoDBClient(AWSSettings(DYNAMODB_TABLE_NAME="profiles-test"), resource=resource)

    client.put_item({"pk": "USER#1", "sk": "TOKENS", "expires_at": 1700000000, "ratio": 0.5})

    stored = table.items[("USER#1", "TOKENS")]
    assert isinstance(stored["ratio"], Decimal)
    assert resource.names == ["profiles-test"]

    item = client.get_item(partition_key="USER#1", sort_key="TOKENS")
    assert item["expires_at"] == 1700000000
    assert isinstance(item["expires_at"], int)
    assert item["ratio"] == 0.5


def test_dynamodb_prefix_query_follows_pagination() -> None:
    table = FakeTable(page_size=2)
    client = DynamoDBClient(AWSSettings(), resource=FakeResource(table))
    for index in range(5):
        client.put_item({"pk": "USER#1", "sk": f"WORKOUT#{index}"})

    items = client.list_items_with_prefix(partition_key="USER#1", sort_key_prefix="WORKOUT#")

    assert len(items) == 5
    assert len(table.queries) == 3
    assert "ExclusiveStartKey" in table.queries[-1]


def test_dynamodb_errors_are_wrapped() -> None:
    table = FakeTable()
    client = DynamoDBClient(AWSSettings(), resource=FakeResource(table))
    table.fail = True

    with pytest.raises(RecordStoreError):
        client.get_item(partition_key="USER#1", sort_key="PROFILE")
    with pytest.raises(RecordStoreError):
        client.delete_item(partition_key="USER#1", sort_key="PROFILE")
