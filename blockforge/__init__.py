"""Merkle trees, signatures, peers, mempool selection, events and a small WSGI layer."""

__version__ = "0.1.0"

__all__ = ["merkle", "signature", "peer", "selector", "mempool", "events", "web"]