"""Symmetric encryption for Strava tokens at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


_FERNET_PREFIX = "gAAAAA"


class TokenDecryptionError(ValueError):
    """Raised when a stored token cannot be decrypted with the current key."""


class TokenCipherService:
    """Encrypt and decrypt access/refresh tokens using a derived Fernet key.

    Both the enhanced token record and the legacy token row are written with
    the same cipher, so either shape can be read back by any process sharing
    the secret.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    @staticmethod
    def is_ciphertext(value: str) -> bool:
        """Fernet tokens always begin with the version byte 0x80 (``gAAAAA``)."""
        return value.startswith(_FERNET_PREFIX)

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise TokenDecryptionError(
                "Failed to decrypt token; invalid ciphertext or rotated key."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService", "TokenDecryptionError"]
