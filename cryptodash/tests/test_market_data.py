import asyncio
from types import SimpleNamespace

import pytest
from aiohttp import ClientResponseError

from cryptodash.core.policies import RetryPolicy
from cryptodash.providers.errors import RATE_LIMIT_MESSAGE, ProviderError, RateLimitError
from cryptodash.providers.market_data import MarketDataClient


def _http_error(status: int) -> ClientResponseError:
    return ClientResponseError(SimpleNamespace(real_url="https://example.test"), (), status=status, message="boom", headers={})


class _FakeRest:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def get(self, path, params=None):
        self.calls.append((path, params))
        result = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(result, Exception):
            raise result
        return result


def _client(rest, sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return MarketDataClient(rest, retry=RetryPolicy(max_attempts=3, base_delay_s=2.0), sleep=fake_sleep)


def test_coin_details_retries_rate_limit_then_raises_friendly_error():
    sleeps = []
    rest = _FakeRest([_http_error(429)])
    client = _client(rest, sleeps)

    with pytest.raises(RateLimitError) as info:
        asyncio.run(client.fetch_coin_details("bitcoin"))

    assert str(info.value) == RATE_LIMIT_MESSAGE
    assert len(rest.calls) == 3
    assert sleeps == [2.0, 4.0]


def test_coin_details_succeeds_after_one_rate_limit():
    sleeps = []
    payload = {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "market_data": {"current_price": {"usd": 50000}}}
    rest = _FakeRest([_http_error(429), payload])
    client = _client(rest, sleeps)

    detail = asyncio.run(client.fetch_coin_details("bitcoin"))

    assert detail.name == "Bitcoin"
    assert detail.market_data.current_price.usd == 50000
    assert sleeps == [2.0]
    path, params = rest.calls[0]
    assert path == "/coins/bitcoin"
    assert params["market_data"] == "true"
    assert params["tickers"] == "false"


def test_coin_details_other_http_errors_are_not_retried():
    sleeps = []
    rest = _FakeRest([_http_error(500)])
    client = _client(rest, sleeps)

    with pytest.raises(ProviderError) as info:
        asyncio.run(client.fetch_coin_details("bitcoin"))

    assert not isinstance(info.value, RateLimitError)
    assert str(info.value) == "Failed to load coin details"
    assert len(rest.calls) == 1
    assert sleeps == []


def test_fetch_ohlc_maps_rows():
    rest = _FakeRest([[[1700000000000, 1.0, 2.0, 0.5, 1.5], [1700000360000, 1.5, 2.5, 1.0, 2.0], ["bad"]]])
    client = _client(rest, [])

    points = asyncio.run(client.fetch_ohlc("bitcoin", 7))

    assert [p.timestamp for p in points] == [1700000000000, 1700000360000]
    assert points[0].high == 2.0
    assert rest.calls[0] == ("/coins/bitcoin/ohlc", {"vs_currency": "usd", "days": 7})


def test_fetch_ohlc_rejects_unsupported_days():
    client = _client(_FakeRest([[]]), [])

    with pytest.raises(ValueError):
        asyncio.run(client.fetch_ohlc("bitcoin", 3))


def test_fetch_markets_skips_malformed_rows():
    rows = [
        {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "current_price": 50000, "market_cap_rank": 1},
        {"id": "broken", "symbol": "brk"},
        {"id": "ethereum", "symbol": "eth", "name": "Ethereum", "current_price": 3000, "market_cap_rank": 2},
    ]
    rest = _FakeRest([rows])
    client = _client(rest, [])

    coins = asyncio.run(client.fetch_markets())

    assert [c.id for c in coins] == ["bitcoin", "ethereum"]
    assert rest.calls[0][1]["order"] == "market_cap_desc"
