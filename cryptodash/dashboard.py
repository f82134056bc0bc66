from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cryptodash.core.config import AppConfig, api_key_from_env
from cryptodash.core.events import StateBus
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.policies import RetryPolicy, TtlPolicy
from cryptodash.core.state import DashboardState, series_key
from cryptodash.data.models import ChartSeries, CoinDetail, CoinMarket, Granularity, Recommendation, SelectionChange, TrackedCoin
from cryptodash.providers.completion import CompletionClient
from cryptodash.providers.market_data import MarketDataClient
from cryptodash.providers.tick_prices import TickPriceClient
from cryptodash.services.aggregator import LivePriceAggregator
from cryptodash.services.charts import ChartResolver
from cryptodash.services.details import CoinDetailService
from cryptodash.services.markets import MarketListService
from cryptodash.services.recommendations import RecommendationService
from cryptodash.services.selection import TrackedSelection
from cryptodash.storage.runtime_state import TrackedCoinStore


@dataclass
class Dashboard:
    state: DashboardState
    bus: StateBus
    selection: TrackedSelection
    aggregator: LivePriceAggregator
    charts: ChartResolver
    details: CoinDetailService
    recommendations: RecommendationService
    markets: MarketListService

    def __post_init__(self) -> None:
        self._log = get_logger(__name__)

    async def start(self) -> None:
        self.aggregator.set_symbols(self.selection.symbols)
        await self.bus.publish(category="SYSTEM", message="dashboard started", payload={"tracked": self.selection.symbols})

    async def shutdown(self) -> None:
        await self.aggregator.aclose()
        await self.bus.publish(category="SYSTEM", message="dashboard stopped", level="WARNING")

    async def track(self, coin: TrackedCoin) -> SelectionChange:
        return await self._apply(self.selection.add(coin))

    async def untrack(self, coin_id: str) -> SelectionChange:
        return await self._apply(self.selection.remove(coin_id))

    async def toggle(self, coin: TrackedCoin) -> SelectionChange:
        return await self._apply(self.selection.toggle(coin))

    async def replace(self, coin_id: str) -> SelectionChange:
        return await self._apply(self.selection.replace_and_add(coin_id))

    async def cancel_pending(self) -> SelectionChange:
        return self.selection.cancel_pending()

    async def _apply(self, change: SelectionChange) -> SelectionChange:
        remaining = set(self.selection.symbols)
        for coin in change.removed:
            # another tracked coin may share the ticker
            if coin.symbol.upper() not in remaining:
                self.state.clear_symbol(coin.symbol)
            self.state.clear_charts(coin.id)
        self.aggregator.set_symbols(self.selection.symbols)
        if change.status in {"added", "removed", "replaced"}:
            self._log.info("selection changed %s", safe_json({"status": change.status, "tracked": self.selection.symbols}))
            await self.bus.publish(
                category="SELECTION",
                message=f"selection {change.status}",
                payload={"coins": [c.to_dict() for c in self.selection.coins]},
            )
        return change

    async def chart(self, coin_id: str | None, symbol: str, granularity: Granularity | str) -> ChartSeries:
        return await self.charts.resolve(coin_id, symbol, Granularity(granularity))

    def cached_chart(self, coin_id: str, granularity: Granularity | str) -> ChartSeries | None:
        return self.state.chart(series_key(coin_id, Granularity(granularity)))

    async def coin_detail(self, coin_id: str) -> CoinDetail | None:
        return await self.details.get(coin_id)

    async def recommend(self, coin_id: str) -> Recommendation | None:
        return await self.recommendations.request(coin_id)

    async def refresh_markets(self) -> list[CoinMarket]:
        return await self.markets.refresh()

    def search_markets(self, query: str) -> list[CoinMarket]:
        return self.markets.search(query)

    def snapshot(self) -> dict[str, Any]:
        return {
            "tracked": [c.to_dict() for c in self.selection.coins],
            "pending": self.selection.pending.to_dict() if self.selection.pending else None,
            "prices": self.state.price_payload(),
        }


def build_dashboard(config: AppConfig) -> Dashboard:
    state = DashboardState(max_history_points=config.polling.max_history_points)
    bus = StateBus()
    retry = RetryPolicy(max_attempts=config.retry.max_attempts, base_delay_s=config.retry.base_delay_s)
    market = MarketDataClient.from_config(config.market_data, api_key=api_key_from_env(config.market_data.api_key_env), retry=retry)
    ticks = TickPriceClient.from_config(config.tick_prices, api_key=api_key_from_env(config.tick_prices.api_key_env))
    completion = CompletionClient.from_config(config.completion, api_key=api_key_from_env(config.completion.api_key_env))
    selection = TrackedSelection(TrackedCoinStore(config.storage.tracked_coins_path), max_coins=config.selection.max_tracked)
    return Dashboard(
        state=state,
        bus=bus,
        selection=selection,
        aggregator=LivePriceAggregator(ticks, state, interval_ms=config.polling.interval_ms, bus=bus),
        charts=ChartResolver(ticks, market, state, bus=bus),
        details=CoinDetailService(market, state, ttl=TtlPolicy(config.cache.detail_ttl_seconds * 1000), bus=bus),
        recommendations=RecommendationService(market, completion, state, bus=bus),
        markets=MarketListService(market, state, bus=bus),
    )
