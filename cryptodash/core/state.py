from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from cryptodash.data.models import CachedDetail, ChartSeries, CoinMarket, Granularity, PricePoint, Recommendation

MAX_HISTORY_POINTS = 60

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def series_key(coin_id: str, granularity: Granularity) -> str:
    return f"{coin_id}-{granularity.value}"


def _frozen(mapping: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(mapping)


@dataclass(slots=True, frozen=True)
class PriceSnapshot:
    current: Mapping[str, float] = field(default_factory=lambda: _EMPTY)
    history: Mapping[str, tuple[PricePoint, ...]] = field(default_factory=lambda: _EMPTY)
    last_updated: int | None = None


@dataclass(slots=True)
class KeyedRequests:
    """Per-key loading flags, last errors and request sequence numbers."""

    loading: dict[str, bool] = field(default_factory=dict)
    errors: dict[str, str | None] = field(default_factory=dict)
    issued: dict[str, int] = field(default_factory=dict)
    applied: dict[str, int] = field(default_factory=dict)

    def begin(self, key: str, seq: int) -> None:
        self.loading[key] = True
        self.errors[key] = None
        self.issued[key] = seq

    def accept(self, key: str, seq: int) -> bool:
        if seq <= self.applied.get(key, 0):
            return False
        self.applied[key] = seq
        if self.issued.get(key, 0) <= seq:
            self.loading[key] = False
        return True

    def fail(self, key: str, seq: int, message: str) -> None:
        if self.issued.get(key, 0) <= seq:
            self.loading[key] = False
            self.errors[key] = message

    def settle(self, key: str) -> None:
        self.loading[key] = False

    def forget(self, key: str) -> None:
        for table in (self.loading, self.errors, self.issued, self.applied):
            table.pop(key, None)


class DashboardState:
    """Owned application state shared by the aggregator and the resolvers.

    Every write swaps in a new read-only mapping, so a reader holding a
    reference always sees a complete snapshot. Writes are sequenced per key:
    a response tagged with an older sequence number than the latest applied
    one for the same key is dropped.
    """

    def __init__(self, max_history_points: int = MAX_HISTORY_POINTS) -> None:
        self.max_history_points = max_history_points
        self._seq = itertools.count(1)

        self._prices = PriceSnapshot()
        self._price_applied = 0
        self.is_polling = False
        self.price_error: str | None = None

        self._charts: Mapping[str, ChartSeries] = _EMPTY
        self.chart_requests = KeyedRequests()

        self._details: Mapping[str, CachedDetail] = _EMPTY
        self.detail_requests = KeyedRequests()

        self._recommendations: Mapping[str, Recommendation] = _EMPTY
        self.recommendation_requests = KeyedRequests()

        self._coins: tuple[CoinMarket, ...] = ()
        self.coins_loading = False
        self.coins_error: str | None = None
        self.coins_last_fetched: int | None = None

    def next_seq(self) -> int:
        return next(self._seq)

    # prices

    @property
    def prices(self) -> PriceSnapshot:
        return self._prices

    def set_polling(self, polling: bool) -> None:
        self.is_polling = polling

    def apply_prices(self, prices: Mapping[str, float], timestamp: int, seq: int | None = None) -> bool:
        if seq is not None:
            if seq <= self._price_applied:
                return False
            self._price_applied = seq
        current = dict(self._prices.current)
        history = dict(self._prices.history)
        for symbol, price in prices.items():
            key = symbol.upper()
            current[key] = price
            buffer = deque(history.get(key, ()), maxlen=self.max_history_points)
            buffer.append(PricePoint(timestamp=timestamp, price=price))
            history[key] = tuple(buffer)
        self._prices = PriceSnapshot(current=_frozen(current), history=_frozen(history), last_updated=timestamp)
        self.price_error = None
        return True

    def record_price_error(self, message: str) -> None:
        self.price_error = message

    def clear_symbol(self, symbol: str) -> None:
        key = symbol.upper()
        if key not in self._prices.current and key not in self._prices.history:
            return
        current = {k: v for k, v in self._prices.current.items() if k != key}
        history = {k: v for k, v in self._prices.history.items() if k != key}
        self._prices = PriceSnapshot(current=_frozen(current), history=_frozen(history), last_updated=self._prices.last_updated)

    # charts

    @property
    def charts(self) -> Mapping[str, ChartSeries]:
        return self._charts

    def chart(self, key: str) -> ChartSeries | None:
        return self._charts.get(key)

    def begin_chart(self, key: str) -> int:
        seq = self.next_seq()
        self.chart_requests.begin(key, seq)
        return seq

    def put_chart(self, key: str, series: ChartSeries, seq: int) -> bool:
        if not self.chart_requests.accept(key, seq):
            return False
        charts = dict(self._charts)
        charts[key] = series
        self._charts = _frozen(charts)
        return True

    def fail_chart(self, key: str, seq: int, message: str) -> None:
        self.chart_requests.fail(key, seq, message)

    def clear_charts(self, coin_id: str) -> list[str]:
        removed = [key for key in set(self._charts) | set(self.chart_requests.loading) if _coin_of(key) == coin_id]
        if not removed:
            return []
        self._charts = _frozen({k: v for k, v in self._charts.items() if k not in removed})
        for key in removed:
            self.chart_requests.forget(key)
        return removed

    # coin details

    def detail(self, coin_id: str) -> CachedDetail | None:
        return self._details.get(coin_id)

    def begin_detail(self, coin_id: str) -> int:
        seq = self.next_seq()
        self.detail_requests.begin(coin_id, seq)
        return seq

    def put_detail(self, coin_id: str, entry: CachedDetail, seq: int) -> bool:
        if not self.detail_requests.accept(coin_id, seq):
            return False
        details = dict(self._details)
        details[coin_id] = entry
        self._details = _frozen(details)
        return True

    def fail_detail(self, coin_id: str, seq: int, message: str) -> None:
        self.detail_requests.fail(coin_id, seq, message)

    # recommendations

    def recommendation(self, coin_id: str) -> Recommendation | None:
        return self._recommendations.get(coin_id)

    def begin_recommendation(self, coin_id: str) -> int:
        seq = self.next_seq()
        self.recommendation_requests.begin(coin_id, seq)
        return seq

    def put_recommendation(self, recommendation: Recommendation, seq: int) -> bool:
        if not self.recommendation_requests.accept(recommendation.coin_id, seq):
            return False
        recommendations = dict(self._recommendations)
        recommendations[recommendation.coin_id] = recommendation
        self._recommendations = _frozen(recommendations)
        return True

    def fail_recommendation(self, coin_id: str, seq: int, message: str) -> None:
        self.recommendation_requests.fail(coin_id, seq, message)

    # market listing

    @property
    def coins(self) -> tuple[CoinMarket, ...]:
        return self._coins

    def set_coins(self, coins: Iterable[CoinMarket], fetched_at: int) -> None:
        self._coins = tuple(coins)
        self.coins_last_fetched = fetched_at
        self.coins_loading = False
        self.coins_error = None

    # serialization for API consumers

    def price_payload(self) -> dict[str, Any]:
        snap = self._prices
        return {
            "current": dict(snap.current),
            "history": {sym: [{"timestamp": p.timestamp, "price": p.price} for p in points] for sym, points in snap.history.items()},
            "last_updated": snap.last_updated,
            "is_polling": self.is_polling,
            "error": self.price_error,
        }


def _coin_of(key: str) -> str:
    coin_id, _, suffix = key.rpartition("-")
    return coin_id if suffix in {g.value for g in Granularity} else ""
