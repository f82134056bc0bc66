import asyncio

import pytest

from cryptodash.providers.errors import ProviderError
from cryptodash.providers.tick_prices import TickPriceClient


class _FakeRest:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    async def get(self, path, params=None):
        self.calls.append((path, params))
        return self.payload


def test_empty_symbol_list_makes_no_request():
    rest = _FakeRest({})
    client = TickPriceClient(rest)

    assert asyncio.run(client.fetch_multiple_prices([])) == {}
    assert rest.calls == []


def test_multiple_prices_is_one_batched_request():
    rest = _FakeRest({"BTC": {"USD": 50000}, "ETH": {"USD": 3000.5}, "XYZ": {}})
    client = TickPriceClient(rest)

    prices = asyncio.run(client.fetch_multiple_prices(["btc", "eth", "BTC", "xyz"]))

    assert prices == {"BTC": 50000.0, "ETH": 3000.5}
    assert rest.calls == [("/pricemulti", {"fsyms": "BTC,ETH,XYZ", "tsyms": "USD"})]


def test_histo_minute_converts_seconds_to_milliseconds():
    rows = [
        {"time": 1700000000, "open": 1, "high": 2, "low": 0.5, "close": 1.5},
        {"time": 1700000300, "open": 1.5, "high": 2, "low": 1, "close": 1.2},
    ]
    rest = _FakeRest({"Response": "Success", "Data": {"Data": rows}})
    client = TickPriceClient(rest)

    points = asyncio.run(client.fetch_histo_minute("btc", aggregate=5))

    assert [p.timestamp for p in points] == [1700000000000, 1700000300000]
    assert rest.calls[0] == ("/v2/histominute", {"fsym": "BTC", "tsym": "USD", "limit": 200, "aggregate": 5})


def test_histo_hour_defaults_to_one_week():
    rest = _FakeRest({"Response": "Success", "Data": {"Data": []}})
    client = TickPriceClient(rest)

    assert asyncio.run(client.fetch_histo_hour("eth")) == []
    assert rest.calls[0] == ("/v2/histohour", {"fsym": "ETH", "tsym": "USD", "limit": 168, "aggregate": 1})


def test_error_envelope_raises_provider_error():
    rest = _FakeRest({"Response": "Error", "Message": "fsym is a required param."})
    client = TickPriceClient(rest)

    with pytest.raises(ProviderError) as info:
        asyncio.run(client.fetch_histo_hour("btc"))
    assert "fsym is a required param." in str(info.value)


def test_unsupported_minute_aggregate_is_rejected():
    client = TickPriceClient(_FakeRest({}))

    with pytest.raises(ValueError):
        asyncio.run(client.fetch_histo_minute("btc", aggregate=7))
