"""
Append-only communication log + TranscriptHash helpers.

Each protocol run keeps one CommunicationLog. Every logical message is
recorded exactly once:

    log = CommunicationLog()
    log.record_broadcast(sender=0, msg=PublicKeyMsg(...))       # 1 event
    log.record_send(sender=0, recipient=2, msg=bundle)          # 1 event

A broadcast to N-1 recipients is ONE communication event; a directed
send is one event per recipient. ``log.count`` is therefore the number
the 2N-1 bound is checked against.

Alongside the events, the log keeps a running SHA-256 over the exact
JSON lines of the messages, so two observers that saw the same messages
in the same order report the same transcript_hash_hex().
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from groupdh.common.protocol import Message, encode_message

logger = logging.getLogger(__name__)

BROADCAST = "broadcast"
SEND = "send"


@dataclass(frozen=True)
class CommunicationEvent:
    seq: int
    kind: str
    sender: int
    recipients: Tuple[int, ...]
    line: str  # encode_message(...) of the payload


class CommunicationLog:
    """
    In-memory, append-only record of one run's communication events.

    Safe to share between threads: appends are serialized so seq numbers
    and the transcript hash follow a single total order.
    """

    def __init__(self) -> None:
        self._events: List[CommunicationEvent] = []
        self._hasher = hashlib.sha256()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Append helpers
    # ------------------------------------------------------------------

    def _append(self, kind: str, sender: int, recipients: Tuple[int, ...], msg: Message) -> CommunicationEvent:
        line = encode_message(msg)
        with self._lock:
            event = CommunicationEvent(
                seq=len(self._events) + 1,
                kind=kind,
                sender=sender,
                recipients=recipients,
                line=line,
            )
            self._events.append(event)
            self._hasher.update(line.encode("utf-8") + b"\n")

        tag = "[BROADCAST]" if kind == BROADCAST else "[SEND]"
        logger.debug("%s #%d %d -> %s %s", tag, event.seq, sender, list(recipients), msg.type)
        return event

    def record_broadcast(self, sender: int, recipients: Tuple[int, ...], msg: Message) -> CommunicationEvent:
        """Record one broadcast event, regardless of fan-out."""
        return self._append(BROADCAST, sender, tuple(recipients), msg)

    def record_send(self, sender: int, recipient: int, msg: Message) -> CommunicationEvent:
        """Record one directed send to a single recipient."""
        return self._append(SEND, sender, (recipient,), msg)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._events)

    @property
    def events(self) -> Tuple[CommunicationEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def count_kind(self, kind: str) -> int:
        return sum(1 for e in self.events if e.kind == kind)

    def received_by(self, index: int, kind: Optional[str] = None) -> Tuple[CommunicationEvent, ...]:
        """Events whose recipients include ``index`` (optionally of one kind)."""
        return tuple(
            e for e in self.events
            if index in e.recipients and (kind is None or e.kind == kind)
        )

    def transcript_hash_hex(self) -> str:
        """Return the hex-encoded SHA-256 of all lines recorded so far."""
        with self._lock:
            return self._hasher.copy().hexdigest()
