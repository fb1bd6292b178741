"""
Typed failures of a group key exchange run.

Every error raised by the protocol layer derives from GroupDHError, so a
caller can catch the whole family or a single case:

- InsufficientParties      : fewer than 3 participants requested.
- InsufficientRandomness   : the secure random source failed.
- InvalidDomainParameters  : g outside (1, p), or p too small / even.
- KeyMismatch              : participants computed different final keys.
- ParticipantTimeout       : a threaded participant did not receive its
                             inputs in time (abort this run only).
- DecryptionError          : group cipher authentication failed.
"""

from __future__ import annotations

from typing import Sequence


class GroupDHError(Exception):
    """Base class for all group Diffie-Hellman errors."""


class InsufficientParties(GroupDHError, ValueError):
    def __init__(self, n: int, minimum: int = 3):
        super().__init__(f"At least {minimum} parties are required (got {n})")
        self.n = n
        self.minimum = minimum


class InsufficientRandomness(GroupDHError):
    """The secure random source is unavailable or returned short output."""


class InvalidDomainParameters(GroupDHError, ValueError):
    """Domain parameters (p, g) are unusable."""


class KeyMismatch(GroupDHError):
    def __init__(self, mismatched: Sequence[int]):
        self.mismatched = tuple(mismatched)
        super().__init__(
            "Final keys disagree with the coordinator for participants "
            + ", ".join(str(i) for i in self.mismatched)
        )


class ParticipantTimeout(GroupDHError):
    def __init__(self, index: int, timeout: float):
        super().__init__(
            f"Participant {index} did not receive its inputs within {timeout:.2f}s"
        )
        self.index = index
        self.timeout = timeout


class DecryptionError(GroupDHError):
    """Ciphertext failed authentication (wrong key, AAD, or tampering)."""
