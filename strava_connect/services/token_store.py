"""
Persistence for user profiles and Strava tokens.

The profile table (DynamoDB, or SQLite locally) is authoritative and holds a
``PROFILE`` and a ``TOKENS`` record per user under ``pk = USER#<id>``. A flat
``user_tokens`` table is still read by older consumers, so every token write
is mirrored there after the authoritative write succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from strava_connect.clients.legacy_tokens import LegacyTokenStoreError, LegacyTokenTable
from strava_connect.clients.storage import RecordStore, RecordStoreError
from strava_connect.models.oauth import TokenGrant, TokenRecord
from strava_connect.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

PROFILE_SK = "PROFILE"
TOKENS_SK = "TOKENS"
WORKOUT_SK_PREFIX = "WORKOUT#"

PROFILE_FIELDS = (
    "id",
    "username",
    "firstname",
    "lastname",
    "city",
    "state",
    "country",
    "sex",
    "premium",
    "profile",
)
UPDATABLE_PROFILE_FIELDS = ("preferences", "settings", "subscription_tier")
SUBSCRIPTION_TIERS = ("free", "premium", "pro")

DEFAULT_APP_DATA: Dict[str, Any] = {
    "preferences": {},
    "settings": {"theme": "light", "notifications": True},
    "subscription_tier": "free",
}


def user_partition_key(user_id: str) -> str:
    return f"USER#{user_id}"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DeletionReport:
    """Outcome of removing every record held for a user."""

    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class TokenStore:
    """Owns all token state plus the profile record it is created with."""

    def __init__(
        self,
        record_store: RecordStore,
        legacy_table: LegacyTokenTable,
        token_cipher: TokenCipherService,
    ) -> None:
        self._records = record_store
        self._legacy = legacy_table
        self._cipher = token_cipher

    def get_tokens(self, user_id: str) -> Optional[TokenRecord]:
        """Return the decrypted tokens for a user, if any are stored."""
        record = self._records.get_item(
            partition_key=user_partition_key(user_id), sort_key=TOKENS_SK
        )
        if record:
            return self._decode_token_record(user_id, record)
        return self._recover_from_legacy(user_id)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._records.get_item(
            partition_key=user_partition_key(user_id), sort_key=PROFILE_SK
        )

    def save_profile_and_tokens(
        self,
        user_id: str,
        athlete: Mapping[str, Any],
        grant: TokenGrant,
        app_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Upsert the profile and token records after an OAuth exchange.

        Application-local fields of an existing profile survive a repeat
        login; ``app_data`` only seeds new profiles.
        """
        now = _utcnow()
        existing = self.get_profile(user_id)
        defaults = {**DEFAULT_APP_DATA, **(app_data or {})}

        profile_record: Dict[str, Any] = {
            "pk": user_partition_key(user_id),
            "sk": PROFILE_SK,
            "user_id": str(user_id),
            "profile": {key: athlete.get(key) for key in PROFILE_FIELDS},
            "created_at": existing.get("created_at", now) if existing else now,
            "updated_at": now,
            "last_login": now,
        }
        for key in UPDATABLE_PROFILE_FIELDS:
            if existing and key in existing:
                profile_record[key] = existing[key]
            else:
                profile_record[key] = defaults.get(key)

        self._records.put_item(profile_record)
        self._write_tokens(user_id, grant, fallback_scope=None, updated_at=now)
        logger.info("Saved profile and tokens for user %s", user_id)
        return profile_record

    def save_tokens(
        self,
        user_id: str,
        grant: TokenGrant,
        fallback_scope: Optional[str] = None,
    ) -> TokenRecord:
        """Persist refreshed tokens to both representations."""
        return self._write_tokens(
            user_id, grant, fallback_scope=fallback_scope, updated_at=_utcnow()
        )

    def update_profile(
        self, user_id: str, updates: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Merge whitelisted fields into an existing profile.

        Returns ``None`` without writing anything when the profile is missing.
        """
        allowed = {
            key: value for key, value in updates.items() if key in UPDATABLE_PROFILE_FIELDS
        }
        tier = allowed.get("subscription_tier")
        if tier is not None and tier not in SUBSCRIPTION_TIERS:
            raise ValueError(f"Unknown subscription tier: {tier}")

        profile = self.get_profile(user_id)
        if not profile:
            return None

        profile.update(allowed)
        profile["updated_at"] = _utcnow()
        self._records.put_item(profile)
        return profile

    def delete_all(self, user_id: str) -> DeletionReport:
        """Remove workouts, tokens, profile and the legacy row for a user.

        Every deletion is attempted even when an earlier one fails.
        """
        report = DeletionReport()
        pk = user_partition_key(user_id)

        try:
            workouts = self._records.list_items_with_prefix(
                partition_key=pk, sort_key_prefix=WORKOUT_SK_PREFIX
            )
        except RecordStoreError:
            logger.exception("Failed to list workouts for user %s", user_id)
            report.failed.append(f"{WORKOUT_SK_PREFIX}*")
            workouts = []

        sort_keys = [item["sk"] for item in workouts] + [TOKENS_SK, PROFILE_SK]
        for sort_key in sort_keys:
            try:
                self._records.delete_item(partition_key=pk, sort_key=sort_key)
            except RecordStoreError:
                logger.exception("Failed to delete %s for user %s", sort_key, user_id)
                report.failed.append(sort_key)
            else:
                report.deleted.append(sort_key)

        try:
            self._legacy.delete(user_id)
        except LegacyTokenStoreError:
            logger.exception("Failed to delete legacy token row for user %s", user_id)
            report.failed.append("legacy_tokens")
        else:
            report.deleted.append("legacy_tokens")

        return report

    def _write_tokens(
        self,
        user_id: str,
        grant: TokenGrant,
        *,
        fallback_scope: Optional[str],
        updated_at: str,
    ) -> TokenRecord:
        token = TokenRecord(
            user_id=str(user_id),
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at,
            scope=grant.scope or fallback_scope,
            token_type=grant.token_type,
            updated_at=updated_at,
        )
        access_encrypted = self._cipher.encrypt(token.access_token)
        refresh_encrypted = self._cipher.encrypt(token.refresh_token)

        self._records.put_item(
            {
                "pk": user_partition_key(user_id),
                "sk": TOKENS_SK,
                "user_id": str(user_id),
                "provider": "strava",
                "access_token_encrypted": access_encrypted,
                "refresh_token_encrypted": refresh_encrypted,
                "expires_at": token.expires_at,
                "scope": token.scope,
                "token_type": token.token_type,
                "updated_at": updated_at,
            }
        )
        self._sync_legacy(user_id, access_encrypted, refresh_encrypted, token.expires_at)
        return token

    def _sync_legacy(
        self,
        user_id: str,
        access_encrypted: str,
        refresh_encrypted: str,
        expires_at: int,
    ) -> bool:
        # The enhanced record is already written; a failure here only leaves
        # the legacy row stale until the next successful token write.
        try:
            self._legacy.upsert(
                user_id,
                access_token=access_encrypted,
                refresh_token=refresh_encrypted,
                expires_at=expires_at,
            )
        except LegacyTokenStoreError:
            logger.exception("Legacy token sync failed for user %s", user_id)
            return False
        return True

    def _decode_token_record(
        self, user_id: str, record: Dict[str, Any]
    ) -> Optional[TokenRecord]:
        encrypted_access_token = record.get("access_token_encrypted")
        encrypted_refresh_token = record.get("refresh_token_encrypted")

        # Records written before encryption was introduced carry plaintext.
        legacy_access_token = record.get("access_token")
        legacy_refresh_token = record.get("refresh_token")
        update_required = False
        if legacy_access_token and not encrypted_access_token:
            encrypted_access_token = self._cipher.encrypt(legacy_access_token)
            record["access_token_encrypted"] = encrypted_access_token
            update_required = True
        if legacy_refresh_token and not encrypted_refresh_token:
            encrypted_refresh_token = self._cipher.encrypt(legacy_refresh_token)
            record["refresh_token_encrypted"] = encrypted_refresh_token
            update_required = True
        if legacy_access_token or legacy_refresh_token:
            record.pop("access_token", None)
            record.pop("refresh_token", None)
            update_required = True

        expires_at = record.get("expires_at")
        if not encrypted_access_token or not encrypted_refresh_token or expires_at is None:
            logger.warning("Token record for user %s is missing required fields", user_id)
            return None

        if update_required:
            record["updated_at"] = _utcnow()
            self._records.put_item(record)
            logger.info("Encrypted plaintext token record for user %s", user_id)

        return TokenRecord(
            user_id=str(user_id),
            access_token=self._cipher.decrypt(encrypted_access_token),
            refresh_token=self._cipher.decrypt(encrypted_refresh_token),
            expires_at=int(expires_at),
            scope=record.get("scope"),
            token_type=record.get("token_type"),
            updated_at=record.get("updated_at"),
        )

    def _recover_from_legacy(self, user_id: str) -> Optional[TokenRecord]:
        try:
            row = self._legacy.get(user_id)
        except LegacyTokenStoreError:
            logger.exception("Failed to read legacy tokens for user %s", user_id)
            return None
        if not row or not row.get("access_token") or not row.get("refresh_token"):
            return None

        access_token, access_encrypted = self._open_legacy_column(row["access_token"])
        refresh_token, refresh_encrypted = self._open_legacy_column(row["refresh_token"])

        now = _utcnow()
        token = TokenRecord(
            user_id=str(user_id),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int(row["expires_at"] or 0),
            updated_at=now,
        )
        if (access_encrypted, refresh_encrypted) != (row["access_token"], row["refresh_token"]):
            # Rows written before encryption was introduced hold plaintext.
            if self._sync_legacy(user_id, access_encrypted, refresh_encrypted, token.expires_at):
                logger.info("Encrypted plaintext legacy token row for user %s", user_id)

        try:
            self._records.put_item(
                {
                    "pk": user_partition_key(user_id),
                    "sk": TOKENS_SK,
                    "user_id": str(user_id),
                    "provider": "strava",
                    "access_token_encrypted": access_encrypted,
                    "refresh_token_encrypted": refresh_encrypted,
                    "expires_at": token.expires_at,
                    "scope": None,
                    "token_type": None,
                    "updated_at": now,
                }
            )
        except RecordStoreError:
            logger.exception("Failed to backfill token record for user %s", user_id)
        else:
            logger.info("Backfilled token record from legacy row for user %s", user_id)
        return token

    def _open_legacy_column(self, value: str) -> tuple[str, str]:
        """Return ``(plaintext, ciphertext)`` for a legacy token column."""
        if not self._cipher.is_ciphertext(value):
            return value, self._cipher.encrypt(value)
        return self._cipher.decrypt(value), value


__all__ = [
    "DEFAULT_APP_DATA",
    "DeletionReport",
    "PROFILE_SK",
    "SUBSCRIPTION_TIERS",
    "TOKENS_SK",
    "TokenStore",
    "UPDATABLE_PROFILE_FIELDS",
    "WORKOUT_SK_PREFIX",
    "user_partition_key",
]
