"""
Fixed-formula three-party exchange, used to cross-check the tree engine.

    1-3. Alice, Bob, Charlie broadcast g^x, g^y, g^z     3 events
         Alice and Bob derive k_AB = g^(xy) pairwise
    4.   Alice sends g^(xy) to Charlie                   1 event
         everyone computes k_ABC = g^z * g^(xy) mod p

Four communications instead of the six of three pairwise exchanges.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from groupdh.common.protocol import IntermediateKeysMsg, PublicKeyMsg
from groupdh.common.transcript import CommunicationLog
from groupdh.config import load_settings
from groupdh.crypto.dh import (
    DomainParameters,
    KeyPair,
    RandomSource,
    derive_public_key,
    generate_key_pair,
    modpow,
    validate_private_key,
)
from groupdh.crypto.kdf import derive_symmetric_key
from groupdh.tree import verify_agreement

logger = logging.getLogger(__name__)

ALICE, BOB, CHARLIE = 0, 1, 2
THREE_PARTY_COMMUNICATIONS = 4


def three_party_communication_cost() -> int:
    return THREE_PARTY_COMMUNICATIONS


@dataclass(frozen=True)
class ThreePartyResult:
    public_keys: Tuple[int, int, int]
    pairwise_key: int
    final_keys: Tuple[int, int, int]
    symmetric_key: bytes
    keys_match: bool
    communication_count: int
    transcript_hash: str

    @property
    def final_key(self) -> int:
        return self.final_keys[ALICE]


class ThreePartyExchange:
    def __init__(
        self,
        params: DomainParameters,
        random_source: Optional[RandomSource] = None,
        key_bytes: Optional[int] = None,
        min_modulus_bits: Optional[int] = None,
    ):
        if min_modulus_bits is None or key_bytes is None:
            settings = load_settings()
            min_modulus_bits = settings.min_modulus_bits if min_modulus_bits is None else min_modulus_bits
            key_bytes = settings.private_key_bytes if key_bytes is None else key_bytes

        self.params = params.require_strength(min_modulus_bits)
        self.key_bytes = key_bytes
        self.random_source = random_source

    def run(self, private_keys: Optional[Sequence[int]] = None) -> ThreePartyResult:
        params = self.params
        p = params.p

        if private_keys is None:
            pairs = [generate_key_pair(params, self.key_bytes, self.random_source) for _ in range(3)]
        else:
            if len(private_keys) != 3:
                raise ValueError("exactly 3 private keys are required")
            pairs = [
                KeyPair(private=x, public=derive_public_key(validate_private_key(x, params), params))
                for x in private_keys
            ]
        x, y = pairs[ALICE].private, pairs[BOB].private
        g_x, g_y, g_z = (kp.public for kp in pairs)

        log = CommunicationLog()
        for sender, kp in enumerate(pairs):
            others = tuple(i for i in range(3) if i != sender)
            log.record_broadcast(sender, others, PublicKeyMsg(sender=sender, public_key=kp.public))

        k_ab_alice = modpow(g_y, x, p)
        k_ab_bob = modpow(g_x, y, p)

        # Alice forwards g^(xy) to Charlie. It is the intermediate Charlie lacks.
        g_xy = k_ab_alice
        log.record_send(
            ALICE,
            CHARLIE,
            IntermediateKeysMsg(sender=ALICE, recipient=CHARLIE, intermediates={BOB: g_xy}),
        )

        final_keys = (
            (g_z * k_ab_alice) % p,
            (g_z * k_ab_bob) % p,
            (g_z * g_xy) % p,
        )
        agreed = verify_agreement(final_keys)
        logger.info("Three-party exchange agreed after %d communications", log.count)

        return ThreePartyResult(
            public_keys=(g_x, g_y, g_z),
            pairwise_key=k_ab_alice,
            final_keys=final_keys,
            symmetric_key=derive_symmetric_key(agreed),
            keys_match=True,
            communication_count=log.count,
            transcript_hash=log.transcript_hash_hex(),
        )
