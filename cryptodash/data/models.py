from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Granularity(str, Enum):
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    D1 = "1d"
    D7 = "7d"
    D14 = "14d"
    D30 = "30d"


class ChartSource(str, Enum):
    TICK = "tick"
    MARKET = "market"


class Decision(str, Enum):
    BUY = "BUY"
    DO_NOT_BUY = "DO NOT BUY"


@dataclass(slots=True, frozen=True)
class PricePoint:
    timestamp: int
    price: float


@dataclass(slots=True, frozen=True)
class OHLCPoint:
    timestamp: int
    open: float
    high: float
    low: float
    close: float

    @property
    def is_consistent(self) -> bool:
        return self.low <= min(self.open, self.close) and self.high >= max(self.open, self.close)


@dataclass(slots=True, frozen=True)
class CandleGeometry:
    timestamp: int
    is_up: bool
    lower_wick: tuple[float, float]
    body: tuple[float, float]
    upper_wick: tuple[float, float]


@dataclass(slots=True, frozen=True)
class ChartSeries:
    granularity: Granularity
    points: tuple[OHLCPoint, ...] = ()

    @classmethod
    def empty(cls, granularity: Granularity) -> ChartSeries:
        return cls(granularity=granularity)


@dataclass(slots=True, frozen=True)
class TrackedCoin:
    id: str
    symbol: str
    name: str = ""
    image: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "symbol": self.symbol, "name": self.name, "image": self.image}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackedCoin:
        return cls(id=str(data["id"]), symbol=str(data["symbol"]), name=str(data.get("name", "")), image=str(data.get("image", "")))


@dataclass(slots=True, frozen=True)
class AIRequestPayload:
    name: str
    current_price_usd: float
    market_cap_usd: float
    volume_24h_usd: float
    pct_30d: float | None = None
    pct_60d: float | None = None
    pct_200d: float | None = None


@dataclass(slots=True, frozen=True)
class ParsedRecommendation:
    decision: Decision
    confidence: int
    explanation: str


@dataclass(slots=True, frozen=True)
class Recommendation:
    coin_id: str
    decision: Decision
    confidence: int
    explanation: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "coin_id": self.coin_id,
            "decision": self.decision.value,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "timestamp": self.timestamp,
        }


class CoinMarket(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    symbol: str
    name: str
    image: str = ""
    current_price: float | None = None
    market_cap: float | None = None
    market_cap_rank: int | None = None
    total_volume: float | None = None
    high_24h: float | None = None
    low_24h: float | None = None
    price_change_percentage_24h: float | None = None
    last_updated: str | None = None


class _UsdValue(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    usd: float | None = None


class CurrencyPrices(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    usd: float | None = None
    eur: float | None = None
    ils: float | None = None


class MarketData(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    current_price: CurrencyPrices = Field(default_factory=CurrencyPrices)
    market_cap: _UsdValue = Field(default_factory=_UsdValue)
    total_volume: _UsdValue = Field(default_factory=_UsdValue)
    price_change_percentage_24h: float | None = None
    price_change_percentage_30d: float | None = None
    price_change_percentage_60d: float | None = None
    price_change_percentage_200d: float | None = None
    price_change_percentage_30d_in_currency: _UsdValue | None = None
    price_change_percentage_60d_in_currency: _UsdValue | None = None
    price_change_percentage_200d_in_currency: _UsdValue | None = None


class CoinImages(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    thumb: str = ""
    small: str = ""
    large: str = ""


class CoinDetail(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    symbol: str
    name: str
    image: CoinImages = Field(default_factory=CoinImages)
    market_data: MarketData = Field(default_factory=MarketData)
    description: dict[str, str] = Field(default_factory=dict)
    links: dict[str, Any] = Field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class CachedDetail:
    data: CoinDetail
    fetched_at: int


@dataclass(slots=True)
class SelectionChange:
    status: str
    coin: TrackedCoin | None = None
    removed: list[TrackedCoin] = field(default_factory=list)
