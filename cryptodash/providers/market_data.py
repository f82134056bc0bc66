from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import aiohttp
from aiohttp import ClientResponseError
from pydantic import ValidationError

from cryptodash.core.config import MarketDataConfig
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.policies import RetryPolicy, is_rate_limited
from cryptodash.data.models import CoinDetail, CoinMarket, OHLCPoint
from cryptodash.providers.errors import ProviderError, RateLimitError
from cryptodash.providers.rest_client import RestClient

OHLC_DAYS = (1, 7, 14, 30, 90, 180, 365)

_DETAIL_PARAMS = {
    "localization": "false",
    "tickers": "false",
    "market_data": "true",
    "community_data": "false",
    "developer_data": "false",
    "sparkline": "false",
}


class MarketDataClient:
    """Daily market data: coin listings, coin details and daily OHLC."""

    def __init__(
        self,
        rest: RestClient,
        retry: RetryPolicy | None = None,
        vs_currency: str = "usd",
        per_page: int = 100,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.rest = rest
        self.retry = retry or RetryPolicy()
        self.vs_currency = vs_currency
        self.per_page = per_page
        self._sleep = sleep
        self._log = get_logger(__name__)

    @classmethod
    def from_config(cls, config: MarketDataConfig, api_key: str = "", retry: RetryPolicy | None = None) -> MarketDataClient:
        headers = {"x-cg-demo-api-key": api_key} if api_key else {}
        rest = RestClient(config.base_url, headers=headers, timeout_s=config.timeout_s)
        return cls(rest, retry=retry, vs_currency=config.vs_currency, per_page=config.markets_per_page)

    async def fetch_markets(self, page: int = 1) -> list[CoinMarket]:
        data = await self.rest.get(
            "/coins/markets",
            params={
                "vs_currency": self.vs_currency,
                "order": "market_cap_desc",
                "per_page": self.per_page,
                "page": page,
                "sparkline": "false",
            },
        )
        if not isinstance(data, list):
            raise ProviderError("Unexpected markets payload")
        coins: list[CoinMarket] = []
        for row in data:
            try:
                coins.append(CoinMarket.model_validate(row))
            except ValidationError as exc:
                self._log.warning("skipping malformed market row %s", safe_json({"id": (row or {}).get("id"), "error": str(exc)}))
        return coins

    async def fetch_coin_details(self, coin_id: str) -> CoinDetail:
        async def _call() -> Any:
            return await self.rest.get(f"/coins/{coin_id}", params=_DETAIL_PARAMS)

        try:
            data = await self.retry.call(_call, sleep=self._sleep, label=f"coin detail {coin_id}")
        except ClientResponseError as exc:
            self._log.error("coin detail failed %s", safe_json({"coin_id": coin_id, "status": exc.status}))
            if is_rate_limited(exc):
                raise RateLimitError() from exc
            raise ProviderError("Failed to load coin details") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            self._log.error("coin detail failed %s", safe_json({"coin_id": coin_id, "error": str(exc)}))
            raise ProviderError("Failed to load coin details") from exc
        try:
            return CoinDetail.model_validate(data)
        except ValidationError as exc:
            raise ProviderError("Failed to load coin details") from exc

    async def fetch_ohlc(self, coin_id: str, days: int = 7) -> list[OHLCPoint]:
        if days not in OHLC_DAYS:
            raise ValueError(f"days must be one of {OHLC_DAYS}, got {days}")
        data = await self.rest.get(f"/coins/{coin_id}/ohlc", params={"vs_currency": self.vs_currency, "days": days})
        return [
            OHLCPoint(timestamp=int(row[0]), open=float(row[1]), high=float(row[2]), low=float(row[3]), close=float(row[4]))
            for row in (data or [])
            if isinstance(row, (list, tuple)) and len(row) >= 5
        ]
