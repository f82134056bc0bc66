from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from cryptodash.core.events import StateBus
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.state import DashboardState, series_key
from cryptodash.data.candles import candles
from cryptodash.data.models import CandleGeometry, ChartSeries, ChartSource, Granularity, OHLCPoint


class TickHistorySource(Protocol):
    async def fetch_histo_minute(self, symbol: str, aggregate: int = 1, limit: int = 200) -> list[OHLCPoint]: ...

    async def fetch_histo_hour(self, symbol: str, aggregate: int = 1, limit: int = 168) -> list[OHLCPoint]: ...


class DailyOHLCSource(Protocol):
    async def fetch_ohlc(self, coin_id: str, days: int = 7) -> list[OHLCPoint]: ...


@dataclass(frozen=True, slots=True)
class SourcePlan:
    source: ChartSource
    endpoint: str
    aggregate: int = 1
    limit: int = 0
    days: int = 0


_PLANS: dict[Granularity, SourcePlan] = {
    Granularity.M1: SourcePlan(ChartSource.TICK, "histominute", aggregate=1, limit=200),
    Granularity.M5: SourcePlan(ChartSource.TICK, "histominute", aggregate=5, limit=200),
    Granularity.M15: SourcePlan(ChartSource.TICK, "histominute", aggregate=15, limit=200),
    Granularity.M30: SourcePlan(ChartSource.TICK, "histominute", aggregate=30, limit=200),
    Granularity.H1: SourcePlan(ChartSource.TICK, "histohour", aggregate=1, limit=168),
    Granularity.D1: SourcePlan(ChartSource.MARKET, "ohlc", days=1),
    Granularity.D7: SourcePlan(ChartSource.MARKET, "ohlc", days=7),
    Granularity.D14: SourcePlan(ChartSource.MARKET, "ohlc", days=14),
    Granularity.D30: SourcePlan(ChartSource.MARKET, "ohlc", days=30),
}


def plan_for(granularity: Granularity) -> SourcePlan:
    return _PLANS[Granularity(granularity)]


def source_for(granularity: Granularity) -> ChartSource:
    return plan_for(granularity).source


class ChartResolver:
    def __init__(self, ticks: TickHistorySource, market: DailyOHLCSource, state: DashboardState, bus: StateBus | None = None) -> None:
        self.ticks = ticks
        self.market = market
        self.state = state
        self.bus = bus
        self._log = get_logger(__name__)

    async def resolve(self, coin_id: str | None, symbol: str, granularity: Granularity) -> ChartSeries:
        granularity = Granularity(granularity)
        if not coin_id:
            return ChartSeries.empty(granularity)
        key = series_key(coin_id, granularity)
        seq = self.state.begin_chart(key)
        try:
            points = await self._fetch(coin_id, symbol, granularity)
        except Exception as exc:
            message = str(exc) or "Failed to fetch chart data"
            self._log.warning("chart fetch failed %s", safe_json({"key": key, "error": message}))
            self.state.fail_chart(key, seq, message)
            return self.state.chart(key) or ChartSeries.empty(granularity)

        points.sort(key=lambda p: p.timestamp)
        inconsistent = sum(1 for p in points if not p.is_consistent)
        if inconsistent:
            self._log.warning("chart has inconsistent candles %s", safe_json({"key": key, "count": inconsistent}))
        series = ChartSeries(granularity=granularity, points=tuple(points))
        if not self.state.put_chart(key, series, seq):
            self._log.debug("dropping stale chart response %s", safe_json({"key": key, "seq": seq}))
            return self.state.chart(key) or series
        if self.bus is not None:
            await self.bus.publish(category="CHART", message="chart updated", key=key, payload={"points": len(points), "granularity": granularity.value})
        return series

    async def _fetch(self, coin_id: str, symbol: str, granularity: Granularity) -> list[OHLCPoint]:
        plan = plan_for(granularity)
        if plan.source is ChartSource.MARKET:
            return list(await self.market.fetch_ohlc(coin_id, plan.days))
        if plan.endpoint == "histohour":
            return list(await self.ticks.fetch_histo_hour(symbol, plan.aggregate, plan.limit))
        return list(await self.ticks.fetch_histo_minute(symbol, plan.aggregate, plan.limit))

    def candles(self, series: ChartSeries) -> list[CandleGeometry]:
        return candles(series.points)
