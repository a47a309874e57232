"""AES-256-GCM encryption for backup payloads."""

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from school_erp.core.config import settings

ASSOCIATED_DATA = b"school-erp-backup"
IV_LENGTH = 12
TAG_LENGTH = 16


class BackupCryptoError(Exception):
    """Raised when a payload cannot be encrypted or decrypted."""


def _key(key: str | bytes | None = None) -> bytes:
    raw = settings.BACKUP_ENCRYPTION_KEY if key is None else key
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if len(raw) != 32:
        raise BackupCryptoError("BACKUP_ENCRYPTION_KEY must be exactly 32 bytes")
    return raw


def checksum(data: bytes) -> str:
    """SHA-256 hex digest of the plaintext."""
    return hashlib.sha256(data).hexdigest()


def encrypt_payload(plaintext: bytes, key: str | bytes | None = None) -> dict[str, str]:
    """Encrypt bytes, returning hex-encoded ciphertext, IV, tag and a checksum."""
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_key(key)).encrypt(iv, plaintext, ASSOCIATED_DATA)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return {
        "encrypted": ciphertext.hex(),
        "iv": iv.hex(),
        "authTag": tag.hex(),
        "checksum": checksum(plaintext),
    }


def decrypt_payload(
    encrypted: str,
    iv: str,
    auth_tag: str,
    key: str | bytes | None = None,
) -> bytes:
    """Decrypt a payload produced by encrypt_payload."""
    try:
        sealed = bytes.fromhex(encrypted) + bytes.fromhex(auth_tag)
        nonce = bytes.fromhex(iv)
    except ValueError as exc:
        raise BackupCryptoError("Backup payload is not valid hex") from exc

    if len(nonce) != IV_LENGTH:
        raise BackupCryptoError("Invalid IV length")

    try:
        return AESGCM(_key(key)).decrypt(nonce, sealed, ASSOCIATED_DATA)
    except InvalidTag as exc:
        raise BackupCryptoError("Backup decryption failed: data is corrupted or the key is wrong") from exc
