"""
Tree-based (star topology) N-party Diffie-Hellman.

Participant 0 is the coordinator. One run goes through these phases:

    1. KeyGeneration      every party draws (x_i, g^x_i)
    2. Broadcast          every party broadcasts g^x_i           N events
    3. CoordinatorCompute coordinator computes I_i = (g^x_i)^x_0  i = 1..N-1
    4. Distribute         coordinator sends {I_i : i != j} to j   N-1 events
    5. Combine            every party computes its final key

    total communication = N + (N-1) = 2N-1

Combination formulas:

    coordinator:   K_0 = prod_{i=1..N-1} (g^x_i)^x_0          mod p
    member j:      K_j = (g^x_0)^x_j * prod_{i != j} I_i       mod p

Both are the product of the same N-1 factors g^(x_0*x_i), so every K_j
equals g^(x_0 * (x_1 + ... + x_{N-1})) mod p.

Any party that learns two distinct bundles (or one bundle plus its own
private key) can rebuild the group key; compromise of the coordinator or
of any single member compromises the group.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from groupdh.common.errors import InsufficientParties, KeyMismatch
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

logger = logging.getLogger(__name__)

MIN_PARTIES = 3
COORDINATOR = 0

PARTY_NAMES = (
    "Alice", "Bob", "Charlie", "Dave", "Eve",
    "Frank", "Grace", "Heidi", "Ivan", "Julia",
)


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------


class Role(enum.Enum):
    COORDINATOR = "coordinator"
    MEMBER = "member"


@dataclass(frozen=True)
class Participant:
    index: int
    label: str

    @property
    def role(self) -> Role:
        return Role.COORDINATOR if self.index == COORDINATOR else Role.MEMBER

    @property
    def is_coordinator(self) -> bool:
        return self.role is Role.COORDINATOR


def default_labels(n: int) -> List[str]:
    """Alice, Bob, ... then "Party <k>" once the names run out."""
    return [PARTY_NAMES[i] if i < len(PARTY_NAMES) else f"Party {i + 1}" for i in range(n)]


def make_group(n: int, labels: Optional[Sequence[str]] = None) -> Tuple[Participant, ...]:
    require_parties(n)
    if labels is None:
        labels = default_labels(n)
    if len(labels) != n:
        raise ValueError(f"expected {n} labels, got {len(labels)}")
    return tuple(Participant(index=i, label=label) for i, label in enumerate(labels))


def require_parties(n: int) -> int:
    if n < MIN_PARTIES:
        raise InsufficientParties(n, MIN_PARTIES)
    return n


# ---------------------------------------------------------------------------
# Communication accounting
# ---------------------------------------------------------------------------


def tree_communication_cost(n: int) -> int:
    """N broadcasts plus N-1 coordinator sends."""
    return 2 * require_parties(n) - 1


def naive_pairwise_cost(n: int) -> int:
    """One two-party exchange per unordered pair of participants."""
    require_parties(n)
    return n * (n - 1) // 2


def tree_is_cheaper(n: int) -> bool:
    """True iff the tree scheme needs strictly fewer messages (n >= 5)."""
    return tree_communication_cost(n) < naive_pairwise_cost(n)


# ---------------------------------------------------------------------------
# Protocol steps
# ---------------------------------------------------------------------------


def compute_intermediate_keys(
    public_keys: Sequence[int],
    coordinator_private: int,
    params: DomainParameters,
) -> Dict[int, int]:
    """Coordinator only: {i: (g^x_i)^x_0 mod p} for i = 1..N-1."""
    return {
        i: modpow(public_keys[i], coordinator_private, params.p)
        for i in range(1, len(public_keys))
    }


def distribute_intermediate_keys(intermediates: Mapping[int, int]) -> Dict[int, Dict[int, int]]:
    """
    Build each member's received set: every intermediate except its own.

    Returns:
        {j: {i: I_i for i != j}} for every member j.
    """
    return {
        j: {i: value for i, value in intermediates.items() if i != j}
        for j in intermediates
    }


def coordinator_final_key(
    coordinator_private: int,
    public_keys: Sequence[int],
    params: DomainParameters,
) -> int:
    result = 1
    for i in range(1, len(public_keys)):
        result = (result * modpow(public_keys[i], coordinator_private, params.p)) % params.p
    return result


def participant_final_key(
    private_key: int,
    coordinator_public: int,
    received: Iterable[int],
    params: DomainParameters,
) -> int:
    # g^(x0 * xj): the one factor member j can compute on its own
    result = modpow(coordinator_public, private_key, params.p)
    for intermediate in received:
        result = (result * intermediate) % params.p
    return result


def verify_agreement(final_keys: Sequence[int]) -> int:
    """
    Check every final key against the coordinator's.

    Returns:
        The agreed key.

    Raises:
        KeyMismatch: naming every participant that disagrees.
    """
    reference = final_keys[COORDINATOR]
    mismatched = [i for i, key in enumerate(final_keys) if key != reference]
    if mismatched:
        logger.error("Key mismatch for participants %s", mismatched)
        raise KeyMismatch(mismatched)
    return reference


# ---------------------------------------------------------------------------
# Run state and result
# ---------------------------------------------------------------------------


@dataclass
class ExchangeState:
    """Everything known after distribution and before combination."""

    params: DomainParameters
    participants: Tuple[Participant, ...]
    key_pairs: List[KeyPair]
    intermediates: Dict[int, int]
    bundles: Dict[int, IntermediateKeysMsg]
    log: CommunicationLog = field(default_factory=CommunicationLog)

    @property
    def n(self) -> int:
        return len(self.participants)

    @property
    def public_keys(self) -> List[int]:
        return [kp.public for kp in self.key_pairs]

    @property
    def distribution(self) -> Dict[int, Dict[int, int]]:
        return {j: dict(msg.intermediates) for j, msg in self.bundles.items()}


@dataclass(frozen=True)
class ExchangeResult:
    participants: Tuple[Participant, ...]
    public_keys: Tuple[int, ...]
    intermediates: Dict[int, int]
    distribution: Dict[int, Dict[int, int]]
    final_keys: Tuple[int, ...]
    symmetric_key: bytes
    keys_match: bool
    communication_count: int
    transcript_hash: str

    @property
    def final_key(self) -> int:
        return self.final_keys[COORDINATOR]

    @property
    def expected_communications(self) -> int:
        return tree_communication_cost(len(self.participants))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class TreeGroupKeyExchange:
    """
    Sequential simulation of one tree-based exchange among N parties.

    Example:

        engine = TreeGroupKeyExchange(MODP_2048, n=5)
        result = engine.run()
        result.symmetric_key   # 32 bytes, identical for all parties

    ``run`` is ``prepare`` (phases 1-4) followed by ``combine`` (phase 5);
    calling them separately lets a caller inspect or tamper with the
    state in between.
    """

    def __init__(
        self,
        params: DomainParameters,
        n: int,
        random_source: Optional[RandomSource] = None,
        labels: Optional[Sequence[str]] = None,
        key_bytes: Optional[int] = None,
        min_modulus_bits: Optional[int] = None,
    ):
        # Validate before any key material exists.
        self.participants = make_group(n, labels)

        if min_modulus_bits is None or key_bytes is None:
            settings = load_settings()
            if min_modulus_bits is None:
                min_modulus_bits = settings.min_modulus_bits
            if key_bytes is None:
                key_bytes = settings.private_key_bytes

        self.params = params.require_strength(min_modulus_bits)
        self.n = n
        self.key_bytes = key_bytes
        self.random_source = random_source

    # ------------------------------------------------------------------
    # Phases 1-4
    # ------------------------------------------------------------------

    def _key_generation(self, private_keys: Optional[Sequence[int]]) -> List[KeyPair]:
        if private_keys is None:
            return [
                generate_key_pair(self.params, self.key_bytes, self.random_source)
                for _ in self.participants
            ]

        if len(private_keys) != self.n:
            raise ValueError(f"expected {self.n} private keys, got {len(private_keys)}")
        return [
            KeyPair(private=x, public=derive_public_key(validate_private_key(x, self.params), self.params))
            for x in private_keys
        ]

    def prepare(self, private_keys: Optional[Sequence[int]] = None) -> ExchangeState:
        log = CommunicationLog()
        everyone = tuple(p.index for p in self.participants)

        key_pairs = self._key_generation(private_keys)
        logger.info("Generated %d key pairs over %s (%d bits)", self.n, self.params.name, self.params.bits)

        for participant, kp in zip(self.participants, key_pairs):
            others = tuple(i for i in everyone if i != participant.index)
            log.record_broadcast(
                participant.index,
                others,
                PublicKeyMsg(sender=participant.index, public_key=kp.public),
            )

        public_keys = [kp.public for kp in key_pairs]
        intermediates = compute_intermediate_keys(public_keys, key_pairs[COORDINATOR].private, self.params)

        bundles: Dict[int, IntermediateKeysMsg] = {}
        for j, received in distribute_intermediate_keys(intermediates).items():
            msg = IntermediateKeysMsg(sender=COORDINATOR, recipient=j, intermediates=received)
            log.record_send(COORDINATOR, j, msg)
            bundles[j] = msg

        return ExchangeState(
            params=self.params,
            participants=self.participants,
            key_pairs=key_pairs,
            intermediates=intermediates,
            bundles=bundles,
            log=log,
        )

    # ------------------------------------------------------------------
    # Phase 5
    # ------------------------------------------------------------------

    def combine(self, state: ExchangeState) -> ExchangeResult:
        params = state.params
        public_keys = state.public_keys
        coordinator_public = public_keys[COORDINATOR]

        final_keys = [coordinator_final_key(state.key_pairs[COORDINATOR].private, public_keys, params)]
        for participant in state.participants[1:]:
            bundle = state.bundles[participant.index]
            final_keys.append(
                participant_final_key(
                    state.key_pairs[participant.index].private,
                    coordinator_public,
                    bundle.intermediates.values(),
                    params,
                )
            )

        agreed = verify_agreement(final_keys)

        expected = tree_communication_cost(state.n)
        if state.log.count != expected:
            raise RuntimeError(
                f"communication count {state.log.count} != expected {expected}"
            )

        logger.info("All %d parties agree; %d communications", state.n, state.log.count)
        return ExchangeResult(
            participants=state.participants,
            public_keys=tuple(public_keys),
            intermediates=dict(state.intermediates),
            distribution=state.distribution,
            final_keys=tuple(final_keys),
            symmetric_key=derive_symmetric_key(agreed),
            keys_match=True,
            communication_count=state.log.count,
            transcript_hash=state.log.transcript_hash_hex(),
        )

    def run(self, private_keys: Optional[Sequence[int]] = None) -> ExchangeResult:
        return self.combine(self.prepare(private_keys))
