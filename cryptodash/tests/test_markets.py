import asyncio

from cryptodash.core.state import DashboardState
from cryptodash.data.models import CoinMarket
from cryptodash.services.markets import MarketListService, filter_coins


def _coins():
    return [
        CoinMarket(id="bitcoin", symbol="btc", name="Bitcoin"),
        CoinMarket(id="ethereum", symbol="eth", name="Ethereum"),
        CoinMarket(id="bitcoin-cash", symbol="bch", name="Bitcoin Cash"),
    ]


class _FakeSource:
    def __init__(self, coins=None, error=None):
        self.coins = coins or []
        self.error = error

    async def fetch_markets(self, page=1):
        if self.error:
            raise self.error
        return list(self.coins)


def test_filter_matches_name_or_symbol_case_insensitively():
    coins = _coins()

    assert [c.id for c in filter_coins(coins, "BIT")] == ["bitcoin", "bitcoin-cash"]
    assert [c.id for c in filter_coins(coins, "eth")] == ["ethereum"]
    assert filter_coins(coins, "  ") == coins


def test_refresh_stores_listing():
    state = DashboardState()
    service = MarketListService(_FakeSource(_coins()), state, clock=lambda: 7)

    asyncio.run(service.refresh())

    assert len(state.coins) == 3
    assert state.coins_last_fetched == 7
    assert not state.coins_loading
    assert [c.id for c in service.search("cash")] == ["bitcoin-cash"]


def test_failed_refresh_keeps_previous_listing():
    state = DashboardState()
    source = _FakeSource(_coins())
    service = MarketListService(source, state)
    asyncio.run(service.refresh())

    source.error = RuntimeError("rate limited")
    result = asyncio.run(service.refresh())

    assert len(result) == 3
    assert state.coins_error == "rate limited"
    assert not state.coins_loading
