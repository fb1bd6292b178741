"""
AES-256-GCM helpers for messages protected by the group key (cryptography lib).

Blob layout:

    nonce (12 bytes) || ciphertext || tag (16 bytes)

Every party holding the same 32-byte SymmetricKey can decrypt any blob.
Base64 encoding for display happens in the caller (cli.py); here we only
deal with raw bytes.
"""

import os
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from groupdh.common.errors import DecryptionError

KEY_SIZE_BYTES: Final[int] = 32
NONCE_SIZE_BYTES: Final[int] = 12
TAG_SIZE_BYTES: Final[int] = 16


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE_BYTES:
        raise ValueError("AES-256 key must be exactly 32 bytes")


def encrypt_group_message(key: bytes, plaintext: bytes, aad: bytes = b"") -> bytes:
    """
    Encrypt plaintext with AES-256-GCM under the group key.

    Args:
        key: 32-byte key from derive_symmetric_key().
        plaintext: Raw message bytes.
        aad: Optional associated data, authenticated but not encrypted.

    Returns:
        nonce || ciphertext || tag.
    """
    _check_key(key)
    nonce = os.urandom(NONCE_SIZE_BYTES)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, aad or None)


def decrypt_group_message(key: bytes, blob: bytes, aad: bytes = b"") -> bytes:
    """
    Decrypt a blob produced by encrypt_group_message.

    Raises:
        ValueError: If the key size is invalid.
        DecryptionError: If the blob is truncated or fails authentication.
    """
    _check_key(key)
    if len(blob) < NONCE_SIZE_BYTES + TAG_SIZE_BYTES:
        raise DecryptionError("ciphertext too short")

    nonce, ct = blob[:NONCE_SIZE_BYTES], blob[NONCE_SIZE_BYTES:]
    try:
        return AESGCM(key).decrypt(nonce, ct, aad or None)
    except InvalidTag as exc:
        raise DecryptionError("authentication failed (wrong key, AAD, or tampering)") from exc
