"""
Peer Registry

Design Decision: Admission Rule
===============================

The registry is the only writer of the peer table. Each envelope is
checked in order:
1. Protocol tag differs   -> FOREIGN, dropped
2. Address is our own     -> SELF, dropped
3. Address already known  -> DUPLICATE, dropped (last_seen refreshed)
4. Otherwise              -> ACCEPTED, inserted and sinks notified

The decision only looks at (tag, address, membership), never at the
payload, so applying a batch of envelopes in any order with any number
of duplicates builds the same table.

Design Decision: Peer Expiry
============================

Options Considered:
1. Keep peers for the whole session (what earlier builds did)
2. Time-to-live per peer, refreshed on every sighting, removed by a sweep

Decision: both, selected by peer_ttl
- peer_ttl=None keeps every peer until the session ends (default)
- peer_ttl=N removes peers not heard from for N seconds when sweep() runs
"""

import asyncio
import logging
import threading
import time
from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, List, Optional

from .models import PROTOCOL_TAG, Envelope, PeerEntry, canonical_address, label_for

logger = logging.getLogger(__name__)

# Receives a snapshot of the table after every change
ChangeCallback = Callable[[List[PeerEntry]], None]


class Admission(Enum):
    """Outcome of offering an envelope to the registry."""
    ACCEPTED = "accepted"
    FOREIGN = "foreign"
    SELF = "self"
    DUPLICATE = "duplicate"


class PeerRegistry:
    """
    Deduplicated, address-keyed table of discovered peers.

    Mutated by the session's consumer task; readable from any thread.
    """

    def __init__(self, local_address: str, protocol_tag: str = PROTOCOL_TAG,
                 peer_ttl: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the registry.

        Args:
            local_address: Our own address, never admitted
            protocol_tag: Tag an envelope must carry to be admitted
            peer_ttl: Seconds a silent peer is kept (None keeps it forever)
            clock: Monotonic time source
        """
        self.local_address = canonical_address(local_address)
        self.protocol_tag = protocol_tag
        self.peer_ttl = peer_ttl
        self._clock = clock

        self._peers: Dict[str, PeerEntry] = {}
        self._lock = threading.Lock()
        self._callbacks: List[ChangeCallback] = []

    def on_change(self, callback: ChangeCallback):
        """Register a callback for table changes."""
        self._callbacks.append(callback)

    def admit(self, envelope: Envelope) -> Admission:
        """Apply the admission rule to one envelope."""
        if envelope.protocol_tag != self.protocol_tag:
            return Admission.FOREIGN

        address = envelope.source_address
        if address == self.local_address:
            return Admission.SELF

        now = self._clock()
        with self._lock:
            existing = self._peers.get(address)
            if existing is not None:
                existing.last_seen = now
                return Admission.DUPLICATE

            entry = PeerEntry(
                address=address,
                label=label_for(envelope.descriptor),
                first_seen=now,
                last_seen=now,
            )
            self._peers[address] = entry

        logger.info(f"Discovered peer {entry.label} at {address}")
        self._notify()
        return Admission.ACCEPTED

    async def consume(self, queue: 'asyncio.Queue[Envelope]'):
        """Admit envelopes from the queue until cancelled."""
        while True:
            envelope = await queue.get()
            try:
                self.admit(envelope)
            finally:
                queue.task_done()

    def list_peers(self) -> List[PeerEntry]:
        """Snapshot of the known peers, ordered by address."""
        with self._lock:
            return [replace(self._peers[a]) for a in sorted(self._peers)]

    def get(self, address: str) -> Optional[PeerEntry]:
        """Get a peer by address, or None if unknown."""
        with self._lock:
            entry = self._peers.get(address)
            return replace(entry) if entry is not None else None

    def remove(self, address: str) -> Optional[PeerEntry]:
        """Remove a peer by address. Returns the removed entry, or None if unknown."""
        with self._lock:
            entry = self._peers.pop(address, None)

        if entry is not None:
            logger.info(f"Removed peer {entry.label} at {address}")
            self._notify()
        return entry

    def sweep(self, now: Optional[float] = None) -> List[PeerEntry]:
        """
        Remove peers not heard from within peer_ttl.

        Does nothing when no TTL is configured.

        Returns:
            The expired entries
        """
        if self.peer_ttl is None:
            return []

        now = self._clock() if now is None else now
        with self._lock:
            stale = [
                address for address, entry in self._peers.items()
                if now - entry.last_seen > self.peer_ttl
            ]
            expired = [self._peers.pop(address) for address in stale]

        for entry in expired:
            logger.info(f"Peer timed out: {entry.label} at {entry.address}")
        if expired:
            self._notify()
        return expired

    def _notify(self):
        snapshot = self.list_peers()
        for callback in self._callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Callback error: {e}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._peers)

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return address in self._peers
