from __future__ import annotations

from typing import Any, Iterable

from cryptodash.core.config import TickPriceConfig
from cryptodash.core.logging import get_logger
from cryptodash.core.utils import normalize_symbols
from cryptodash.data.models import OHLCPoint
from cryptodash.providers.errors import ProviderError
from cryptodash.providers.rest_client import RestClient

MINUTE_AGGREGATES = (1, 5, 15, 30)


class TickPriceClient:
    """High-frequency prices: batched spot quotes and minute/hour OHLC."""

    def __init__(self, rest: RestClient, quote: str = "USD") -> None:
        self.rest = rest
        self.quote = quote.upper()
        self._log = get_logger(__name__)

    @classmethod
    def from_config(cls, config: TickPriceConfig, api_key: str = "") -> TickPriceClient:
        headers = {"authorization": f"Apikey {api_key}"} if api_key else {}
        return cls(RestClient(config.base_url, headers=headers, timeout_s=config.timeout_s), quote=config.quote)

    async def fetch_multiple_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        fsyms = normalize_symbols(symbols)
        if not fsyms:
            return {}
        data = await self.rest.get("/pricemulti", params={"fsyms": ",".join(fsyms), "tsyms": self.quote})
        self._raise_for_envelope(data)
        prices: dict[str, float] = {}
        for symbol, quotes in (data or {}).items():
            if not isinstance(quotes, dict) or quotes.get(self.quote) is None:
                continue
            prices[symbol.upper()] = float(quotes[self.quote])
        return prices

    async def fetch_histo_minute(self, symbol: str, aggregate: int = 1, limit: int = 200) -> list[OHLCPoint]:
        if aggregate not in MINUTE_AGGREGATES:
            raise ValueError(f"aggregate must be one of {MINUTE_AGGREGATES}, got {aggregate}")
        return await self._histo("/v2/histominute", symbol, aggregate, limit)

    async def fetch_histo_hour(self, symbol: str, aggregate: int = 1, limit: int = 168) -> list[OHLCPoint]:
        return await self._histo("/v2/histohour", symbol, aggregate, limit)

    async def _histo(self, path: str, symbol: str, aggregate: int, limit: int) -> list[OHLCPoint]:
        data = await self.rest.get(path, params={"fsym": symbol.upper(), "tsym": self.quote, "limit": limit, "aggregate": aggregate})
        self._raise_for_envelope(data)
        rows = ((data or {}).get("Data") or {}).get("Data") or []
        return [
            OHLCPoint(
                timestamp=int(row["time"]) * 1000,
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
            )
            for row in rows
        ]

    def _raise_for_envelope(self, data: Any) -> None:
        # errors come back as HTTP 200 with Response=Error
        if isinstance(data, dict) and data.get("Response") == "Error":
            message = data.get("Message") or "unknown error"
            self._log.warning("tick price provider error: %s", message)
            raise ProviderError(f"tick price provider error: {message}")
