from __future__ import annotations

from cryptodash.core.logging import get_logger, safe_json
from cryptodash.data.models import SelectionChange, TrackedCoin
from cryptodash.storage.runtime_state import TrackedCoinStore

MAX_TRACKED = 5


class TrackedSelection:
    """Ordered set of pinned coins, unique by id and capped at ``max_coins``.

    Adding past the cap parks the coin as ``pending`` until the caller picks
    a coin to replace or cancels.
    """

    def __init__(self, store: TrackedCoinStore | None = None, max_coins: int = MAX_TRACKED) -> None:
        self.store = store
        self.max_coins = max_coins
        self.pending: TrackedCoin | None = None
        self._coins: list[TrackedCoin] = []
        self._log = get_logger(__name__)
        if store is not None:
            self._coins = self._dedupe(store.load())[:max_coins]

    @staticmethod
    def _dedupe(coins: list[TrackedCoin]) -> list[TrackedCoin]:
        seen: set[str] = set()
        out: list[TrackedCoin] = []
        for coin in coins:
            if coin.id not in seen:
                seen.add(coin.id)
                out.append(coin)
        return out

    @property
    def coins(self) -> tuple[TrackedCoin, ...]:
        return tuple(self._coins)

    @property
    def symbols(self) -> list[str]:
        return [coin.symbol.upper() for coin in self._coins]

    @property
    def is_full(self) -> bool:
        return len(self._coins) >= self.max_coins

    def get(self, coin_id: str) -> TrackedCoin | None:
        return next((c for c in self._coins if c.id == coin_id), None)

    def add(self, coin: TrackedCoin) -> SelectionChange:
        if self.get(coin.id) is not None:
            return SelectionChange("duplicate", coin)
        if self.is_full:
            self.pending = coin
            self._log.info("selection full, replacement pending %s", safe_json({"coin_id": coin.id}))
            return SelectionChange("pending", coin)
        self._coins.append(coin)
        self._persist()
        return SelectionChange("added", coin)

    def remove(self, coin_id: str) -> SelectionChange:
        coin = self.get(coin_id)
        if coin is None:
            return SelectionChange("missing")
        self._coins = [c for c in self._coins if c.id != coin_id]
        self._persist()
        return SelectionChange("removed", removed=[coin])

    def toggle(self, coin: TrackedCoin) -> SelectionChange:
        if self.get(coin.id) is not None:
            return self.remove(coin.id)
        return self.add(coin)

    def replace_and_add(self, coin_id: str) -> SelectionChange:
        pending = self.pending
        self.pending = None
        removed = [c for c in self._coins if c.id == coin_id]
        self._coins = [c for c in self._coins if c.id != coin_id]
        if pending is not None and self.get(pending.id) is None and not self.is_full:
            self._coins.append(pending)
            self._persist()
            return SelectionChange("replaced", pending, removed=removed)
        if removed:
            self._persist()
        return SelectionChange("removed" if removed else "missing", removed=removed)

    def cancel_pending(self) -> SelectionChange:
        pending = self.pending
        self.pending = None
        return SelectionChange("cancelled", pending)

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(list(self._coins))
