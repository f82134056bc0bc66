from __future__ import annotations

from typing import Callable, Protocol

from cryptodash.core.events import StateBus
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.state import DashboardState
from cryptodash.core.utils import now_ms
from cryptodash.data.models import CoinMarket


class MarketSource(Protocol):
    async def fetch_markets(self, page: int = 1) -> list[CoinMarket]: ...


def filter_coins(coins: tuple[CoinMarket, ...] | list[CoinMarket], query: str) -> list[CoinMarket]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(coins)
    return [c for c in coins if needle in c.name.lower() or needle in c.symbol.lower()]


class MarketListService:
    def __init__(self, source: MarketSource, state: DashboardState, bus: StateBus | None = None, clock: Callable[[], int] = now_ms) -> None:
        self.source = source
        self.state = state
        self.bus = bus
        self._clock = clock
        self._log = get_logger(__name__)

    async def refresh(self) -> list[CoinMarket]:
        self.state.coins_loading = True
        self.state.coins_error = None
        try:
            coins = await self.source.fetch_markets()
        except Exception as exc:
            self._log.warning("market listing failed %s", safe_json({"error": str(exc)}))
            self.state.coins_loading = False
            self.state.coins_error = str(exc) or "Failed to fetch coins"
            return list(self.state.coins)
        self.state.set_coins(coins, self._clock())
        if self.bus is not None:
            await self.bus.publish(category="MARKETS", message="market listing updated", payload={"count": len(coins)})
        return coins

    def search(self, query: str) -> list[CoinMarket]:
        return filter_coins(self.state.coins, query)
