"""
Threaded tree-based exchange: one thread per participant.

Each participant owns a queue.Queue inbox and exchanges JSON lines
(encode_message / decode_message) with the others:

  - every participant puts its PublicKeyMsg in every other inbox
    (logged as ONE broadcast event),
  - the coordinator waits for all N-1 public keys, then puts one
    IntermediateKeysMsg in each member's inbox (one send event each),
  - a member computes its final key only once it holds the coordinator's
    public key AND its own bundle.

A participant that does not get its inputs before ``timeout`` raises
ParticipantTimeout. The whole run is aborted; the caller may simply
start a new one.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Collection, Dict, List, Optional, Sequence

from groupdh.common.errors import ParticipantTimeout
from groupdh.common.protocol import (
    IntermediateKeysMsg,
    PublicKeyMsg,
    decode_message,
    encode_message,
)
from groupdh.common.transcript import CommunicationLog
from groupdh.config import load_settings
from groupdh.crypto.dh import (
    DomainParameters,
    KeyPair,
    RandomSource,
    derive_public_key,
    generate_key_pair,
    validate_private_key,
)
from groupdh.crypto.kdf import derive_symmetric_key
from groupdh.tree import (
    COORDINATOR,
    ExchangeResult,
    Participant,
    compute_intermediate_keys,
    coordinator_final_key,
    make_group,
    participant_final_key,
    tree_communication_cost,
    verify_agreement,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


class _Aborted(Exception):
    """Another participant failed; stop quietly."""


class _Worker:
    def __init__(
        self,
        participant: Participant,
        run: "_ThreadedRun",
        private_key: Optional[int],
    ):
        self.participant = participant
        self.index = participant.index
        self.run = run
        self.private_key = private_key
        self.key_pair: Optional[KeyPair] = None
        self.public_keys: Dict[int, int] = {}
        self.bundle: Optional[IntermediateKeysMsg] = None
        self.intermediates: Dict[int, int] = {}
        self.final_key: Optional[int] = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _receive(self, deadline: float):
        inbox = self.run.inboxes[self.index]
        while True:
            if self.run.abort.is_set():
                raise _Aborted()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ParticipantTimeout(self.index, self.run.timeout)
            try:
                line = inbox.get(timeout=min(remaining, POLL_INTERVAL))
            except queue.Empty:
                continue
            return decode_message(line)

    def _broadcast_public_key(self) -> None:
        msg = PublicKeyMsg(sender=self.index, public_key=self.key_pair.public)
        others = tuple(i for i in self.run.inboxes if i != self.index)
        line = encode_message(msg)
        for i in others:
            self.run.inboxes[i].put(line)
        self.run.log.record_broadcast(self.index, others, msg)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def _coordinator(self, deadline: float) -> None:
        params = self.run.params
        while len(self.public_keys) < self.run.n - 1:
            msg = self._receive(deadline)
            if isinstance(msg, PublicKeyMsg):
                self.public_keys[msg.sender] = msg.public_key

        self.public_keys[self.index] = self.key_pair.public
        ordered = [self.public_keys[i] for i in range(self.run.n)]
        self.intermediates = compute_intermediate_keys(ordered, self.key_pair.private, params)

        for j in range(1, self.run.n):
            received = {i: v for i, v in self.intermediates.items() if i != j}
            msg = IntermediateKeysMsg(sender=self.index, recipient=j, intermediates=received)
            self.run.log.record_send(self.index, j, msg)
            if j in self.run.drop_bundles_to:
                logger.warning("[DROP] bundle for participant %d withheld", j)
                continue
            self.run.inboxes[j].put(encode_message(msg))

        self.final_key = coordinator_final_key(self.key_pair.private, ordered, params)

    def _member(self, deadline: float) -> None:
        while COORDINATOR not in self.public_keys or self.bundle is None:
            msg = self._receive(deadline)
            if isinstance(msg, PublicKeyMsg):
                self.public_keys[msg.sender] = msg.public_key
            elif isinstance(msg, IntermediateKeysMsg) and msg.recipient == self.index:
                self.bundle = msg

        self.final_key = participant_final_key(
            self.key_pair.private,
            self.public_keys[COORDINATOR],
            self.bundle.intermediates.values(),
            self.run.params,
        )

    def __call__(self) -> None:
        deadline = time.monotonic() + self.run.timeout
        try:
            if self.private_key is None:
                self.key_pair = generate_key_pair(
                    self.run.params, self.run.key_bytes, self.run.random_source
                )
            else:
                self.key_pair = KeyPair(
                    private=self.private_key,
                    public=derive_public_key(self.private_key, self.run.params),
                )
            self._broadcast_public_key()

            if self.participant.is_coordinator:
                self._coordinator(deadline)
            else:
                self._member(deadline)
        except _Aborted:
            logger.debug("Participant %d aborted", self.index)
        except Exception as exc:
            self.run.fail(self.index, exc)


class _ThreadedRun:
    def __init__(
        self,
        params: DomainParameters,
        participants: Sequence[Participant],
        timeout: float,
        key_bytes: int,
        random_source: Optional[RandomSource],
        drop_bundles_to: Collection[int],
    ):
        self.params = params
        self.participants = participants
        self.n = len(participants)
        self.timeout = timeout
        self.key_bytes = key_bytes
        self.random_source = random_source
        self.drop_bundles_to = frozenset(drop_bundles_to)
        self.inboxes: Dict[int, queue.Queue] = {p.index: queue.Queue() for p in participants}
        self.log = CommunicationLog()
        self.abort = threading.Event()
        self.errors: Dict[int, Exception] = {}
        self._errors_lock = threading.Lock()

    def fail(self, index: int, exc: Exception) -> None:
        with self._errors_lock:
            self.errors[index] = exc
        self.abort.set()

    def first_error(self) -> Optional[Exception]:
        with self._errors_lock:
            if not self.errors:
                return None
            return self.errors[min(self.errors)]


def run_threaded(
    params: DomainParameters,
    n: int,
    timeout: Optional[float] = None,
    random_source: Optional[RandomSource] = None,
    private_keys: Optional[Sequence[int]] = None,
    labels: Optional[Sequence[str]] = None,
    key_bytes: Optional[int] = None,
    min_modulus_bits: Optional[int] = None,
    drop_bundles_to: Collection[int] = (),
) -> ExchangeResult:
    """
    Run one exchange with every participant on its own thread.

    Args:
        params: Domain parameters shared (read-only) by all threads.
        n: Number of participants (>= 3).
        timeout: Seconds each participant waits for its inputs.
        random_source: Callable returning n secure random bytes.
        private_keys: Fixed private keys, one per participant.
        drop_bundles_to: Members whose bundle the coordinator withholds
            (fault injection: those members time out).

    Raises:
        InsufficientParties, InvalidDomainParameters: before any thread starts.
        ParticipantTimeout: a participant did not receive its inputs.
        KeyMismatch: final keys disagree.
    """
    participants = make_group(n, labels)

    settings = load_settings()
    if min_modulus_bits is None:
        min_modulus_bits = settings.min_modulus_bits
    if key_bytes is None:
        key_bytes = settings.private_key_bytes
    if timeout is None:
        timeout = settings.participant_timeout
    params = params.require_strength(min_modulus_bits)

    if private_keys is not None:
        if len(private_keys) != n:
            raise ValueError(f"expected {n} private keys, got {len(private_keys)}")
        for x in private_keys:
            validate_private_key(x, params)

    run = _ThreadedRun(params, participants, timeout, key_bytes, random_source, drop_bundles_to)
    workers: List[_Worker] = [
        _Worker(p, run, None if private_keys is None else private_keys[p.index])
        for p in participants
    ]
    threads = [
        threading.Thread(target=w, name=f"participant-{w.index}", daemon=True)
        for w in workers
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    error = run.first_error()
    if error is not None:
        logger.error("Threaded run aborted: %s", error)
        raise error

    final_keys = [w.final_key for w in workers]
    agreed = verify_agreement(final_keys)

    expected = tree_communication_cost(n)
    if run.log.count != expected:
        raise RuntimeError(f"communication count {run.log.count} != expected {expected}")

    coordinator = workers[COORDINATOR]
    distribution = {
        j: {i: v for i, v in coordinator.intermediates.items() if i != j}
        for j in coordinator.intermediates
    }
    logger.info("Threaded run: all %d parties agree", n)
    return ExchangeResult(
        participants=participants,
        public_keys=tuple(w.key_pair.public for w in workers),
        intermediates=dict(coordinator.intermediates),
        distribution=distribution,
        final_keys=tuple(final_keys),
        symmetric_key=derive_symmetric_key(agreed),
        keys_match=True,
        communication_count=run.log.count,
        transcript_hash=run.log.transcript_hash_hex(),
    )
