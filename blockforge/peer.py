"""Peer identities, peer status and the set of known peers."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Peer:
    """A node in the network."""

    host: str

    def match(self, host: str) -> bool:
        """Report whether ``host`` is this peer's host."""
        return self.host == host


@dataclass
class PeerStatus:
    """Status information reported by a peer."""

    latest_block_hash: str = ""
    latest_block_number: int = 0
    known_peers: list[Peer] = field(default_factory=list)


class PeerSet:
    """A thread-safe set of known peers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._set: set[Peer] = set()

    def add(self, peer: Peer) -> bool:
        """Add a peer, returning True if it was not known before."""
        with self._lock:
            if peer in self._set:
                return False
            self._set.add(peer)
            return True

    def remove(self, peer: Peer) -> None:
        """Remove a peer if present."""
        with self._lock:
            self._set.discard(peer)

    def copy(self, host: str) -> list[Peer]:
        """Return the known peers other than the one at ``host``."""
        with self._lock:
            return [peer for peer in self._set if not peer.match(host)]