from __future__ import annotations

import time

import pytest

from conftest import ATHLETE, make_grant
from strava_connect.clients.legacy_tokens import LegacyTokenStoreError
from strava_connect.clients.storage import RecordStoreError
from strava_connect.services.token_store import TokenStore

USER_ID = "12345"
PK = f"USER#{USER_ID}"


class BrokenLegacyTable:
    def __init__(self) -> None:
        self.attempts = 0

    def upsert(self, user_id: str, **_: object) -> None:
        self.attempts += 1
        raise LegacyTokenStoreError("database is locked")

    def get(self, user_id: str) -> None:
        raise LegacyTokenStoreError("database is locked")

    def delete(self, user_id: str) -> None:
        raise LegacyTokenStoreError("database is locked")


class FlakyRecordStore:
    """Wraps a real store and fails deletes for selected sort keys."""

    def __init__(self, inner, failing_sort_keys: set[str]) -> None:
        self._inner = inner
        self._failing = failing_sort_keys

    def put_item(self, item: dict) -> None:
        self._inner.put_item(item)

    def get_item(self, *, partition_key: str, sort_key: str):
        return self._inner.get_item(partition_key=partition_key, sort_key=sort_key)

    def list_items_with_prefix(self, *, partition_key: str, sort_key_prefix: str):
        return self._inner.list_items_with_prefix(
            partition_key=partition_key, sort_key_prefix=sort_key_prefix
        )

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        if sort_key in self._failing:
            raise RecordStoreError(f"cannot delete {sort_key}")
        self._inner.delete_item(partition_key=partition_key, sort_key=sort_key)


def test_save_writes_profile_and_both_token_shapes(token_store, record_store, legacy_table, cipher) -> None:
    grant = make_grant(expires_in=3600)

    profile = token_store.save_profile_and_tokens(USER_ID, ATHLETE, grant)

    assert profile["profile"]["username"] == "tempo_tom"
    assert profile["subscription_tier"] == "free"
    assert profile["settings"] == {"theme": "light", "notifications": True}

    tokens = record_store.get_item(partition_key=PK, sort_key="TOKENS")
    assert tokens is not None
    assert "access_token" not in tokens
    assert tokens["access_token_encrypted"] != "stored-access"
    assert cipher.decrypt(tokens["access_token_encrypted"]) == "stored-access"
    assert tokens["expires_at"] == grant.expires_at

    legacy = legacy_table.get(USER_ID)
    assert legacy is not None
    assert cipher.decrypt(legacy["access_token"]) == "stored-access"
    assert cipher.decrypt(legacy["refresh_token"]) == "stored-refresh"
    assert legacy["expires_at"] == grant.expires_at


def test_repeat_login_keeps_app_fields_and_created_at(token_store) -> None:
    first = token_store.save_profile_and_tokens(USER_ID, ATHLETE, make_grant(expires_in=3600))
    token_store.update_profile(USER_ID, {"subscription_tier": "pro"})

    renamed = {**ATHLETE, "firstname": "Thomas"}
    second = token_store.save_profile_and_tokens(
        USER_ID, renamed, make_grant(expires_in=3600, access="second-access")
    )

    assert second["created_at"] == first["created_at"]
    assert second["subscription_tier"] == "pro"
    assert second["profile"]["firstname"] == "Thomas"
    assert token_store.get_tokens(USER_ID).access_token == "second-access"


def test_legacy_sync_failure_does_not_fail_the_write(record_store, cipher, caplog) -> None:
    legacy = BrokenLegacyTable()
    store = TokenStore(record_store=record_store, legacy_table=legacy, token_cipher=cipher)

    with caplog.at_level("ERROR"):
        store.save_profile_and_tokens(USER_ID, ATHLETE, make_grant(expires_in=3600))

    assert legacy.attempts == 1
    assert store.get_tokens(USER_ID).access_token == "stored-access"
    assert "Legacy token sync failed" in caplog.text


def test_get_tokens_falls_back_to_legacy_and_backfills(token_store, record_store, legacy_table, cipher) -> None:
    expires_at = int(time.time()) + 600
    legacy_table.upsert(
        USER_ID,
        access_token=cipher.encrypt("legacy-access"),
        refresh_token=cipher.encrypt("legacy-refresh"),
        expires_at=expires_at,
    )

    tokens = token_store.get_tokens(USER_ID)

    assert tokens is not None
    assert tokens.access_token == "legacy-access"
    assert tokens.refresh_token == "legacy-refresh"
    assert tokens.expires_at == expires_at

    backfilled = record_store.get_item(partition_key=PK, sort_key="TOKENS")
    assert backfilled is not None
    assert cipher.decrypt(backfilled["refresh_token_encrypted"]) == "legacy-refresh"


def test_plaintext_legacy_row_is_used_and_encrypted(token_store, record_store, legacy_table, cipher) -> None:
    expires_at = int(time.time()) + 600
    legacy_table.upsert(
        USER_ID, access_token="plain-access", refresh_token="plain-refresh", expires_at=expires_at
    )

    tokens = token_store.get_tokens(USER_ID)

    assert tokens is not None
    assert tokens.access_token == "plain-access"
    assert tokens.refresh_token == "plain-refresh"

    backfilled = record_store.get_item(partition_key=PK, sort_key="TOKENS")
    assert cipher.decrypt(backfilled["access_token_encrypted"]) == "plain-access"
    assert cipher.decrypt(backfilled["refresh_token_encrypted"]) == "plain-refresh"

    legacy = legacy_table.get(USER_ID)
    assert legacy["access_token"] != "plain-access"
    assert cipher.decrypt(legacy["access_token"]) == "plain-access"
    assert cipher.decrypt(legacy["refresh_token"]) == "plain-refresh"
    assert legacy["expires_at"] == expires_at


def test_get_tokens_returns_none_when_nothing_is_stored(token_store) -> None:
    assert token_store.get_tokens("404") is None


def test_plaintext_token_record_is_encrypted_on_read(token_store, record_store, cipher) -> None:
    record_store.put_item(
        {
            "pk": PK,
            "sk": "TOKENS",
            "access_token": "plain-access",
            "refresh_token": "plain-refresh",
            "expires_at": int(time.time()) + 600,
        }
    )

    tokens = token_store.get_tokens(USER_ID)

    assert tokens is not None
    assert tokens.access_token == "plain-access"
    stored = record_store.get_item(partition_key=PK, sort_key="TOKENS")
    assert "access_token" not in stored
    assert "refresh_token" not in stored
    assert cipher.decrypt(stored["access_token_encrypted"]) == "plain-access"


def test_update_profile_merges_whitelisted_fields(token_store) -> None:
    token_store.save_profile_and_tokens(USER_ID, ATHLETE, make_grant(expires_in=3600))

    updated = token_store.update_profile(
        USER_ID,
        {"preferences": {"units": "metric"}, "user_id": "999", "profile": {"id": 1}},
    )

    assert updated is not None
    assert updated["preferences"] == {"units": "metric"}
    assert updated["user_id"] == USER_ID
    assert updated["profile"]["id"] == 12345


def test_update_profile_missing_user_writes_nothing(token_store, record_store) -> None:
    assert token_store.update_profile("777", {"preferences": {"units": "metric"}}) is None
    assert record_store.get_item(partition_key="USER#777", sort_key="PROFILE") is None


def test_update_profile_rejects_unknown_tier(token_store) -> None:
    token_store.save_profile_and_tokens(USER_ID, ATHLETE, make_grant(expires_in=3600))

    with pytest.raises(ValueError):
        token_store.update_profile(USER_ID, {"subscription_tier": "platinum"})


def test_delete_all_removes_every_record(token_store, record_store, legacy_table) -> None:
    token_store.save_profile_and_tokens(USER_ID, ATHLETE, make_grant(expires_in=3600))
    record_store.put_item({"pk": PK, "sk": "WORKOUT#abc", "name": "Tempo Run"})

    report = token_store.delete_all(USER_ID)

    assert report.success
    assert set(report.deleted) == {"WORKOUT#abc", "TOKENS", "PROFILE", "legacy_tokens"}
    assert token_store.get_profile(USER_ID) is None
    assert token_store.get_tokens(USER_ID) is None
    assert legacy_table.get(USER_ID) is None


def test_delete_all_attempts_everything_after_a_failure(record_store, legacy_table, cipher) -> None:
    flaky = FlakyRecordStore(record_store, failing_sort_keys={"TOKENS"})
    store = TokenStore(record_store=flaky, legacy_table=legacy_table, token_cipher=cipher)
    store.save_profile_and_tokens(USER_ID, ATHLETE, make_grant(expires_in=3600))

    report = store.delete_all(USER_ID)

    assert not report.success
    assert report.failed == ["TOKENS"]
    assert "PROFILE" in report.deleted
    assert "legacy_tokens" in report.deleted
    assert store.get_profile(USER_ID) is None
    assert legacy_table.get(USER_ID) is None
