"""
SHA256(big-endian(K)) key derivation for the group shared secret.

    SymmetricKey = SHA256(big-endian(FinalKey))    # 32 bytes

The integer is encoded minimally (see int_to_big_endian), so every party
derives identical bytes from an identical final key.
"""

from __future__ import annotations

import hashlib
from typing import Final

from groupdh.common.utils import int_to_big_endian

SYMMETRIC_KEY_BYTES: Final[int] = 32


def derive_symmetric_key(final_key: int) -> bytes:
    """
    Derive a 32-byte symmetric key from the group's final key.

    Args:
        final_key: Shared secret as a non-negative integer.

    Returns:
        32-byte key.
    """
    return hashlib.sha256(int_to_big_endian(final_key)).digest()
