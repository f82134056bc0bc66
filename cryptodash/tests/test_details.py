import asyncio

from cryptodash.core.policies import TtlPolicy
from cryptodash.core.state import DashboardState
from cryptodash.data.models import CoinDetail
from cryptodash.providers.errors import RATE_LIMIT_MESSAGE, RateLimitError
from cryptodash.services.details import CoinDetailService


def _detail(coin_id="bitcoin"):
    return CoinDetail.model_validate(
        {
            "id": coin_id,
            "symbol": "btc",
            "name": "Bitcoin",
            "market_data": {"current_price": {"usd": 50000}, "market_cap": {"usd": 1e12}, "total_volume": {"usd": 3e10}},
        }
    )


class _FakeSource:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def fetch_coin_details(self, coin_id):
        self.calls.append(coin_id)
        if self.error:
            raise self.error
        return _detail(coin_id)


def test_detail_is_served_from_cache_inside_ttl():
    now = {"t": 0}
    source = _FakeSource()
    state = DashboardState()
    service = CoinDetailService(source, state, ttl=TtlPolicy(120_000, clock=lambda: now["t"]))

    first = asyncio.run(service.get("bitcoin"))
    now["t"] = 119_000
    second = asyncio.run(service.get("bitcoin"))

    assert first == second
    assert source.calls == ["bitcoin"]
    assert state.detail_requests.loading["bitcoin"] is False


def test_detail_is_refetched_after_ttl():
    now = {"t": 0}
    source = _FakeSource()
    state = DashboardState()
    service = CoinDetailService(source, state, ttl=TtlPolicy(120_000, clock=lambda: now["t"]))

    asyncio.run(service.get("bitcoin"))
    now["t"] = 121_000
    asyncio.run(service.get("bitcoin"))

    assert source.calls == ["bitcoin", "bitcoin"]
    assert state.detail("bitcoin").fetched_at == 121_000


def test_rate_limit_error_is_stored_for_the_coin():
    state = DashboardState()
    service = CoinDetailService(_FakeSource(error=RateLimitError()), state)

    assert asyncio.run(service.get("bitcoin")) is None

    assert state.detail_requests.errors["bitcoin"] == RATE_LIMIT_MESSAGE
    assert state.detail_requests.loading["bitcoin"] is False
    assert state.detail("bitcoin") is None


def test_unexpected_error_gets_generic_message():
    state = DashboardState()
    service = CoinDetailService(_FakeSource(error=KeyError("market_data")), state)

    assert asyncio.run(service.get("bitcoin")) is None
    assert state.detail_requests.errors["bitcoin"] == "Failed to fetch coin details"
