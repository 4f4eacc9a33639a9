"""AES-256-GCM encryption for stored provider credentials.

Ciphertexts are colon-separated hex strings. The current format carries a
per-value scrypt salt (``salt:iv:tag:data``); the legacy format
(``iv:tag:data``) was derived with a fixed salt and is still readable, but
``decrypt_with_metadata`` flags it for re-encryption.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from newsdesk.core.config import settings

IV_LENGTH = 16
SALT_LENGTH = 32
TAG_LENGTH = 16
KEY_LENGTH = 32
LEGACY_SALT = b"salt"

SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1


class DecryptionError(ValueError):
    """Raised when a stored ciphertext cannot be decrypted."""


@dataclass(frozen=True)
class DecryptedValue:
    plaintext: str
    needs_rotation: bool


def _master_key(master_key: str | None) -> str:
    key = master_key if master_key is not None else settings.encryption_key
    if not key or len(key) < 32:
        raise ValueError("ENCRYPTION_KEY must be at least 32 characters long")
    return key


def derive_key(master_key: str, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(master_key.encode("utf-8"))


def encrypt(text: str, master_key: str | None = None) -> str:
    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    key = derive_key(_master_key(master_key), salt)
    sealed = AESGCM(key).encrypt(iv, text.encode("utf-8"), None)
    data, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return ":".join(part.hex() for part in (salt, iv, tag, data))


def _open(key: bytes, iv_hex: str, tag_hex: str, data_hex: str) -> str:
    try:
        iv = bytes.fromhex(iv_hex)
        sealed = bytes.fromhex(data_hex) + bytes.fromhex(tag_hex)
        return AESGCM(key).decrypt(iv, sealed, None).decode("utf-8")
    except (InvalidTag, ValueError) as exc:
        raise DecryptionError("Unable to decrypt value") from exc


def decrypt_with_metadata(encrypted_text: str, master_key: str | None = None) -> DecryptedValue:
    key_material = _master_key(master_key)
    parts = encrypted_text.split(":")

    if len(parts) == 4:
        salt_hex, iv_hex, tag_hex, data_hex = parts
        try:
            salt = bytes.fromhex(salt_hex)
        except ValueError as exc:
            raise DecryptionError("Invalid encrypted text format") from exc
        key = derive_key(key_material, salt)
        return DecryptedValue(_open(key, iv_hex, tag_hex, data_hex), needs_rotation=False)

    if len(parts) == 3:
        iv_hex, tag_hex, data_hex = parts
        key = derive_key(key_material, LEGACY_SALT)
        return DecryptedValue(_open(key, iv_hex, tag_hex, data_hex), needs_rotation=True)

    raise DecryptionError("Invalid encrypted text format")


def decrypt(encrypted_text: str, master_key: str | None = None) -> str:
    return decrypt_with_metadata(encrypted_text, master_key).plaintext
