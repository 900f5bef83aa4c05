# webstream/crypto.py
from __future__ import annotations

import base64
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12


class SecretBox:
    """AES-256-GCM for the portal password at rest. Output is base64(nonce || ciphertext)."""

    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            raise ValueError("SecretBox key must be 32 bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_b64(cls, encoded: str) -> "SecretBox":
        return cls(base64.urlsafe_b64decode(encoded))

    @staticmethod
    def generate_key() -> str:
        return base64.urlsafe_b64encode(AESGCM.generate_key(bit_length=256)).decode()

    def encrypt(self, plaintext: str, associated: str = "") -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, plaintext.encode(), associated.encode() or None)
        return base64.urlsafe_b64encode(nonce + sealed).decode()

    def decrypt(self, token: str, associated: str = "") -> str:
        raw = base64.urlsafe_b64decode(token)
        try:
            plain = self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], associated.encode() or None)
        except InvalidTag:
            raise ValueError("stored secret failed authentication") from None
        return plain.decode()
