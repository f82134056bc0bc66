import asyncio

from cryptodash.core.events import StateBus
from cryptodash.core.state import DashboardState
from cryptodash.data.models import ChartSource, Granularity, OHLCPoint
from cryptodash.services.charts import ChartResolver, plan_for, source_for


class _FakeTicks:
    def __init__(self, points=None, error=None):
        self.points = points or []
        self.error = error
        self.calls = []

    async def fetch_histo_minute(self, symbol, aggregate=1, limit=200):
        self.calls.append(("histominute", symbol, aggregate, limit))
        if self.error:
            raise self.error
        return list(self.points)

    async def fetch_histo_hour(self, symbol, aggregate=1, limit=168):
        self.calls.append(("histohour", symbol, aggregate, limit))
        if self.error:
            raise self.error
        return list(self.points)


class _FakeMarket:
    def __init__(self, points=None):
        self.points = points or []
        self.calls = []

    async def fetch_ohlc(self, coin_id, days=7):
        self.calls.append((coin_id, days))
        return list(self.points)


def _point(ts, close=1.0):
    return OHLCPoint(timestamp=ts, open=1.0, high=2.0, low=0.5, close=close)


def test_source_selection_by_granularity():
    for gran in (Granularity.M1, Granularity.M5, Granularity.M15, Granularity.M30, Granularity.H1):
        assert source_for(gran) is ChartSource.TICK
    for gran in (Granularity.D1, Granularity.D7, Granularity.D14, Granularity.D30):
        assert source_for(gran) is ChartSource.MARKET
    assert plan_for(Granularity.M15).aggregate == 15
    assert plan_for(Granularity.H1).limit == 168
    assert plan_for(Granularity.D14).days == 14


def test_minute_granularity_uses_tick_provider_only():
    ticks = _FakeTicks([_point(2000), _point(1000)])
    market = _FakeMarket()
    state = DashboardState()
    bus = StateBus()
    resolver = ChartResolver(ticks, market, state, bus=bus)

    series = asyncio.run(resolver.resolve("bitcoin", "btc", Granularity.M5))

    assert ticks.calls == [("histominute", "btc", 5, 200)]
    assert market.calls == []
    assert [p.timestamp for p in series.points] == [1000, 2000]
    assert state.chart("bitcoin-5m") == series
    assert state.chart_requests.loading["bitcoin-5m"] is False
    assert bus.snapshot()[-1]["key"] == "bitcoin-5m"


def test_daily_granularity_uses_market_provider_only():
    ticks = _FakeTicks()
    market = _FakeMarket([_point(1700000000000)])
    resolver = ChartResolver(ticks, market, DashboardState())

    series = asyncio.run(resolver.resolve("ethereum", "eth", Granularity.D7))

    assert market.calls == [("ethereum", 7)]
    assert ticks.calls == []
    assert series.granularity is Granularity.D7
    assert len(series.points) == 1


def test_no_coin_returns_empty_series_without_request():
    ticks = _FakeTicks([_point(1)])
    market = _FakeMarket([_point(1)])
    state = DashboardState()
    resolver = ChartResolver(ticks, market, state)

    series = asyncio.run(resolver.resolve(None, "btc", Granularity.H1))

    assert series.points == ()
    assert ticks.calls == [] and market.calls == []
    assert dict(state.charts) == {}


def test_failed_fetch_keeps_previous_series_and_records_error():
    ticks = _FakeTicks([_point(1000)])
    state = DashboardState()
    resolver = ChartResolver(ticks, _FakeMarket(), state)
    first = asyncio.run(resolver.resolve("bitcoin", "btc", Granularity.H1))

    ticks.error = RuntimeError("timeout")
    again = asyncio.run(resolver.resolve("bitcoin", "btc", Granularity.H1))

    assert again == first
    assert state.chart_requests.errors["bitcoin-1h"] == "timeout"
    assert state.chart_requests.loading["bitcoin-1h"] is False


def test_inconsistent_candles_are_kept_as_is():
    bad = OHLCPoint(timestamp=1, open=5.0, high=4.0, low=1.0, close=2.0)
    resolver = ChartResolver(_FakeTicks([bad]), _FakeMarket(), DashboardState())

    series = asyncio.run(resolver.resolve("bitcoin", "btc", Granularity.M1))

    assert series.points == (bad,)
    assert not series.points[0].is_consistent
