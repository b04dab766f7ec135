"""A cache of pending transactions keyed by account and nonce."""

from __future__ import annotations

import math
import threading

from blockforge.selector import STRATEGY_TIP, Transaction, retrieve


def _map_key(tx: Transaction) -> str:
    if not tx.from_id:
        raise ValueError("transaction has no from account")
    return f"{tx.from_id}:{tx.nonce}"


def _account_from_map_key(key: str) -> str:
    return key.split(":")[0]


class Mempool:
    """Pending transactions, selected for mining with a chosen strategy."""

    def __init__(self, strategy: str = STRATEGY_TIP) -> None:
        self._select = retrieve(strategy)
        self._lock = threading.Lock()
        self._pool: dict[str, Transaction] = {}

    def count(self) -> int:
        """Return the number of transactions in the pool."""
        with self._lock:
            return len(self._pool)

    def __len__(self) -> int:
        return self.count()

    def upsert(self, tx: Transaction) -> None:
        """Add a transaction, or replace one with the same account and nonce.

        Replacing requires the tip to be at least 10% higher.
        """
        key = _map_key(tx)
        with self._lock:
            existing = self._pool.get(key)
            if existing is not None:
                required = int(math.floor(float(existing.tip) * 1.10 + 0.5))
                if tx.tip < required:
                    raise ValueError("replacing a transaction requires a 10% bump in the tip")
            self._pool[key] = tx

    def delete(self, tx: Transaction) -> None:
        """Remove a transaction from the pool if present."""
        key = _map_key(tx)
        with self._lock:
            self._pool.pop(key, None)

    def truncate(self) -> None:
        """Remove every transaction from the pool."""
        with self._lock:
            self._pool = {}

    def pick_best(self, how_many: int = 0) -> list[Transaction]:
        """Select up to ``how_many`` transactions; 0 means all of them."""
        grouped: dict[str, list[Transaction]] = {}
        with self._lock:
            number = how_many or len(self._pool)
            for key, tx in self._pool.items():
                grouped.setdefault(_account_from_map_key(key), []).append(tx)
        return self._select(grouped, number)