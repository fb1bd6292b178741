"""
Modular Diffie-Hellman primitives shared by every exchange variant.

This module implements "plain" modular Diffie-Hellman over explicit,
immutable domain parameters:

- DomainParameters       : (p, g), validated on construction
- MODP_2048 / OAKLEY_768 : well-known groups (RFC 3526 / RFC 2409)
- modpow()               : g^x mod p
- generate_private_key() : x in [1, p-2] from a secure random source
- derive_public_key()    : y = g^x mod p
- compute_shared()       : two-party secret (peer_y)^x mod p

The random source is any callable ``source(n) -> bytes``; it defaults to
``secrets.token_bytes`` and is injectable so tests can run from a fixed
seed.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Final, Optional

from groupdh.common.errors import InsufficientRandomness, InvalidDomainParameters

logger = logging.getLogger(__name__)

RandomSource = Callable[[int], bytes]


@dataclass(frozen=True)
class DomainParameters:
    """Prime modulus p and generator g, fixed for one protocol run."""

    p: int
    g: int
    name: str = "custom"

    def __post_init__(self) -> None:
        if self.p < 5 or self.p % 2 == 0:
            raise InvalidDomainParameters(f"p must be an odd prime >= 5 (got {self.p})")
        if not (1 < self.g < self.p):
            raise InvalidDomainParameters("g must satisfy 1 < g < p")

    @property
    def bits(self) -> int:
        return self.p.bit_length()

    def require_strength(self, min_modulus_bits: int) -> "DomainParameters":
        """
        Reject moduli smaller than min_modulus_bits.

        Returns self so it can be chained at the call site.
        """
        if self.bits < min_modulus_bits:
            raise InvalidDomainParameters(
                f"{self.bits}-bit modulus is below the {min_modulus_bits}-bit minimum"
            )
        return self


def _from_hex(text: str) -> int:
    return int("".join(text.split()), 16)


# 2048-bit MODP group (RFC 3526, group 14), generator 2.
MODP_2048: Final[DomainParameters] = DomainParameters(
    p=_from_hex(
        """
        FFFFFFFF FFFFFFFF C90FDAA2 2168C234 C4C6628B 80DC1CD1
        29024E08 8A67CC74 020BBEA6 3B139B22 514A0879 8E3404DD
        EF9519B3 CD3A431B 302B0A6D F25F1437 4FE1356D 6D51C245
        E485B576 625E7EC6 F44C42E9 A637ED6B 0BFF5CB6 F406B7ED
        EE386BFB 5A899FA5 AE9F2411 7C4B1FE6 49286651 ECE45B3D
        C2007CB8 A163BF05 98DA4836 1C55D39A 69163FA8 FD24CF5F
        83655D23 DCA3AD96 1C62F356 208552BB 9ED52907 7096966D
        670C354E 4ABC9804 F1746C08 CA18217C 32905E46 2E36CE3B
        E39E772C 180E8603 9B2783A2 EC07A28F B5C55DF0 6F4C52C9
        DE2BCBF6 95581718 3995497C EA956AE5 15D22618 98FA0510
        15728E5A 8AACAA68 FFFFFFFF FFFFFFFF
        """
    ),
    g=2,
    name="modp2048",
)

# 768-bit Oakley group 1 (RFC 2409). Demonstration only: it fails the
# default 2048-bit minimum and must be used with a relaxed limit.
OAKLEY_768: Final[DomainParameters] = DomainParameters(
    p=_from_hex(
        """
        FFFFFFFF FFFFFFFF C90FDAA2 2168C234 C4C6628B 80DC1CD1
        29024E08 8A67CC74 020BBEA6 3B139B22 514A0879 8E3404DD
        EF9519B3 CD3A431B 302B0A6D F25F1437 4FE1356D 6D51C245
        E485B576 625E7EC6 F44C42E9 A63A3620 FFFFFFFF FFFFFFFF
        """
    ),
    g=2,
    name="oakley768",
)

GROUPS: Final[dict] = {
    MODP_2048.name: MODP_2048,
    OAKLEY_768.name: OAKLEY_768,
}


def modpow(base: int, exponent: int, modulus: int) -> int:
    """Compute (base^exponent) mod modulus."""
    return pow(base, exponent, modulus)


def _draw(random_source: RandomSource, byte_length: int) -> bytes:
    try:
        data = random_source(byte_length)
    except Exception as exc:
        raise InsufficientRandomness(f"Secure random source unavailable: {exc}") from exc
    if data is None or len(data) < byte_length:
        raise InsufficientRandomness(
            f"Secure random source returned {0 if data is None else len(data)} "
            f"of {byte_length} requested bytes"
        )
    return bytes(data[:byte_length])


def generate_private_key(
    byte_length: int,
    p: int,
    random_source: Optional[RandomSource] = None,
) -> int:
    """
    Generate a random private exponent in [1, p-2].

    Args:
        byte_length: Entropy size in bytes (32 recommended).
        p: Prime modulus.
        random_source: Callable returning n secure random bytes.

    Returns:
        A random integer suitable as a DH private key.

    Raises:
        ValueError: If byte_length < 1 or p < 5.
        InsufficientRandomness: If the random source fails.
    """
    if byte_length < 1:
        raise ValueError("byte_length must be positive")
    if p < 5:
        raise ValueError("DH prime too small")

    source = random_source or secrets.token_bytes
    order = p - 1

    while True:
        raw = bytearray(_draw(source, byte_length))
        # Clear the top bit of the most significant byte.
        raw[0] &= 0x7F
        key = int.from_bytes(raw, byteorder="big") % order
        if key > 0:
            return key
        # 0 has no representative in [1, p-2]; draw again.
        logger.debug("Private key draw reduced to zero, redrawing")


def derive_public_key(private_key: int, params: DomainParameters) -> int:
    """
    Compute public value: Y = g^x mod p.

    Args:
        private_key: Private exponent.
        params: Domain parameters.

    Returns:
        Public value (integer).
    """
    return modpow(params.g, private_key, params.p)


@dataclass(frozen=True)
class KeyPair:
    private: int
    public: int

    def __repr__(self) -> str:
        # Never show the private exponent.
        return f"KeyPair(public={self.public})"


def generate_key_pair(
    params: DomainParameters,
    byte_length: int = 32,
    random_source: Optional[RandomSource] = None,
) -> KeyPair:
    x = generate_private_key(byte_length, params.p, random_source)
    return KeyPair(private=x, public=derive_public_key(x, params))


def validate_private_key(private_key: int, params: DomainParameters) -> int:
    if not (1 <= private_key <= params.p - 2):
        raise ValueError("private key must lie in [1, p-2]")
    return private_key


def compute_shared(peer_public: int, private_key: int, params: DomainParameters) -> int:
    """
    Compute the two-party shared secret Ks = (peer_public)^x mod p.

    Raises:
        ValueError: If peer_public is outside the valid range.
    """
    if not (1 < peer_public < params.p - 1):
        raise ValueError("Invalid peer DH public value")

    return modpow(peer_public, private_key, params.p)
