"""
Common helpers: integer encoding, base64, and display formatting.

Used by:
  - crypto/kdf.py (canonical big-endian encoding of the final key)
  - cli.py (base64 of ciphertexts, abbreviated large integers)
"""

import base64


def int_to_big_endian(value: int) -> bytes:
    """
    Minimal big-endian encoding of a non-negative integer.

    Zero encodes as a single zero byte so every value has exactly one
    encoding.
    """
    if value < 0:
        raise ValueError("value must be non-negative")
    length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, byteorder="big")


def b64_encode(data: bytes) -> str:
    """Return standard base64 string (no newlines)."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(s: str) -> bytes:
    """Decode base64 string back to bytes."""
    return base64.b64decode(s.encode("ascii"))


def short_int(value: int, digits: int = 16) -> str:
    """Abbreviate a large integer for display: first/last digits only."""
    text = str(value)
    if len(text) <= 2 * digits:
        return text
    return f"{text[:digits]}...{text[-digits:]}"
