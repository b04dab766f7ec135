"""Strategies for picking the best transactions out of a mempool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence

STRATEGY_TIP = "tip"
STRATEGY_TIP_ADVANCED = "tip_advanced"


@dataclass(frozen=True)
class Transaction:
    """A transaction waiting in the mempool to be mined into a block."""

    from_id: str
    to_id: str
    nonce: int = 0
    value: int = 0
    tip: int = 0
    data: bytes = b""


Grouped = Mapping[str, Sequence[Transaction]]
SelectFunc = Callable[[Grouped, int], list[Transaction]]


def _by_nonce(transactions: Grouped) -> dict[str, list[Transaction]]:
    """Copy the grouped transactions with each group ordered by nonce."""
    return {
        account: sorted(group, key=lambda tx: tx.nonce)
        for account, group in transactions.items()
    }


def tip_select(transactions: Grouped, how_many: int) -> list[Transaction]:
    """Pick transactions with the best tips while respecting nonce order.

    Transactions are taken in rows: the lowest outstanding nonce of every
    account forms a row. Whole rows are taken while they fit; the row that
    does not fit is sorted by tip and only its best entries are taken.
    """
    groups = _by_nonce(transactions)

    rows: list[list[Transaction]] = []
    depth = 0
    while True:
        row = [group[depth] for group in groups.values() if depth < len(group)]
        if not row:
            break
        rows.append(row)
        depth += 1

    final: list[Transaction] = []
    for row in rows:
        need = how_many - len(final)
        if len(row) > need:
            best = sorted(row, key=lambda tx: tx.tip, reverse=True)
            final.extend(best[:max(need, 0)])
            break
        final.extend(row)
    return final


class _AdvancedTips:
    """Exhaustive search for the per-account prefix lengths with the best tip."""

    def __init__(self, groups: Mapping[str, Sequence[Transaction]], how_many: int) -> None:
        self.how_many = how_many
        self.best_tip = 0
        self.best_pos: Optional[dict[str, int]] = None
        self.groups = list(groups)
        self.group_tips: dict[str, list[int]] = {}
        for account, group in groups.items():
            tips = [0]
            for i, tx in enumerate(group):
                if i > how_many:
                    break
                tips.append(tx.tip + tips[i])
            self.group_tips[account] = tips

    def find_best(self) -> dict[str, int]:
        self._search(0, self.how_many, self.best_pos, 0)
        return self.best_pos or {}

    def _search(
        self,
        group_id: int,
        left: int,
        current: Optional[dict[str, int]],
        prev_tip: int,
    ) -> None:
        if prev_tip > self.best_tip:
            self.best_tip = prev_tip
            self.best_pos = current

        if group_id >= len(self.groups):
            return
        account = self.groups[group_id]

        for pos, tip in enumerate(self.group_tips[account]):
            if left - pos < 0:
                break
            positions = dict(current or {})
            positions[account] = pos
            self._search(group_id + 1, left - pos, positions, prev_tip + tip)


def advanced_tip_select(transactions: Grouped, how_many: int) -> list[Transaction]:
    """Pick transactions maximising the total tip while respecting nonce order.

    Unlike :func:`tip_select`, this considers taking several low-tip
    transactions of an account to reach a high-tip one behind them.
    """
    groups = _by_nonce(transactions)
    best = _AdvancedTips(groups, how_many).find_best()

    final: list[Transaction] = []
    for account, count in best.items():
        final.extend(groups[account][:count])
    return final


_STRATEGIES: dict[str, SelectFunc] = {
    STRATEGY_TIP: tip_select,
    STRATEGY_TIP_ADVANCED: advanced_tip_select,
}


def retrieve(strategy: str) -> SelectFunc:
    """Return the selection function registered under ``strategy``."""
    try:
        return _STRATEGIES[strategy.lower()]
    except KeyError:
        raise ValueError(f'strategy "{strategy}" does not exist') from None