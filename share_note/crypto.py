"""AES-GCM encryption for published documents."""

from __future__ import annotations

import base64
import os
import secrets
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .models import EncryptedPayload

KEY_BYTES = 16
VALID_KEY_BYTES = (16, 24, 32)
IV_BYTES = 12
FILENAME_BYTES = 16


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"))


def encode_key(raw: bytes) -> str:
    """Encode key material for use in a URL fragment."""
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_key(key: str) -> bytes:
    padding = "=" * (-len(key) % 4)
    return base64.urlsafe_b64decode((key + padding).encode("ascii"))


def is_valid_key(key: str) -> bool:
    """True when ``key`` decodes to AES key material of a usable length."""
    try:
        return len(decode_key(key)) in VALID_KEY_BYTES
    except (ValueError, UnicodeEncodeError):
        return False


class CipherService:
    """Symmetric encryption with key reuse for stable share links."""

    def mint_filename(self) -> str:
        return secrets.token_hex(FILENAME_BYTES)

    def encrypt(self, plaintext: str, key: Optional[str] = None) -> EncryptedPayload:
        """Encrypt ``plaintext``, reusing ``key`` when one is given."""
        raw_key = decode_key(key) if key else AESGCM.generate_key(bit_length=KEY_BYTES * 8)
        iv = os.urandom(IV_BYTES)
        ciphertext = AESGCM(raw_key).encrypt(iv, plaintext.encode("utf-8"), None)
        return EncryptedPayload(
            ciphertext=_b64encode(ciphertext),
            iv=_b64encode(iv),
            key=encode_key(raw_key),
        )

    def decrypt(self, payload: EncryptedPayload) -> str:
        aesgcm = AESGCM(decode_key(payload.key))
        plaintext = aesgcm.decrypt(_b64decode(payload.iv), _b64decode(payload.ciphertext), None)
        return plaintext.decode("utf-8")
