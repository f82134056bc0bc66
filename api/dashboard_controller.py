from __future__ import annotations

from pathlib import Path
from typing import Any

from cryptodash.core.config import AppConfig, load_config
from cryptodash.core.events import StateBus
from cryptodash.core.state import series_key
from cryptodash.dashboard import Dashboard, build_dashboard
from cryptodash.data.models import ChartSeries, Granularity, SelectionChange, TrackedCoin


def _series_payload(coin_id: str, series: ChartSeries, dashboard: Dashboard) -> dict[str, Any]:
    key = series_key(coin_id, series.granularity)
    requests = dashboard.state.chart_requests
    return {
        "key": key,
        "granularity": series.granularity.value,
        "loading": requests.loading.get(key, False),
        "error": requests.errors.get(key),
        "points": [{"timestamp": p.timestamp, "open": p.open, "high": p.high, "low": p.low, "close": p.close} for p in series.points],
        "candles": [
            {
                "timestamp": c.timestamp,
                "is_up": c.is_up,
                "lower_wick": list(c.lower_wick),
                "body": list(c.body),
                "upper_wick": list(c.upper_wick),
            }
            for c in dashboard.charts.candles(series)
        ],
    }


def _change_payload(change: SelectionChange, dashboard: Dashboard) -> dict[str, Any]:
    return {
        "ok": change.status not in {"missing"},
        "status": change.status,
        "coin": change.coin.to_dict() if change.coin else None,
        "removed": [c.to_dict() for c in change.removed],
        "tracked": [c.to_dict() for c in dashboard.selection.coins],
    }


class DashboardController:
    def __init__(self, config_path: Path | str = "config.toml", dashboard: Dashboard | None = None) -> None:
        self._config: AppConfig = load_config(config_path)
        self._dashboard = dashboard or build_dashboard(self._config)
        self._ws_connections = 0

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def bus(self) -> StateBus:
        return self._dashboard.bus

    @property
    def dashboard(self) -> Dashboard:
        return self._dashboard

    async def attach(self) -> dict[str, Any]:
        await self._dashboard.start()
        return {"ok": True, "message": "attached"}

    async def shutdown(self) -> None:
        await self._dashboard.shutdown()

    async def get_status(self) -> dict[str, Any]:
        state = self._dashboard.state
        return {
            "polling": state.is_polling,
            "symbols": list(self._dashboard.aggregator.symbols),
            "last_updated": state.prices.last_updated,
            "price_error": state.price_error,
            "ws_connected": self._ws_connections > 0,
            "last_selection_change": (self.bus.latest("SELECTION") or {}).get("ts"),
        }

    async def get_markets(self, query: str = "") -> dict[str, Any]:
        state = self._dashboard.state
        if not state.coins and not state.coins_loading:
            await self._dashboard.refresh_markets()
        return {
            "items": [c.model_dump() for c in self._dashboard.search_markets(query)],
            "loading": state.coins_loading,
            "error": state.coins_error,
            "last_fetched": state.coins_last_fetched,
        }

    async def refresh_markets(self) -> dict[str, Any]:
        coins = await self._dashboard.refresh_markets()
        return {"ok": self._dashboard.state.coins_error is None, "count": len(coins), "error": self._dashboard.state.coins_error}

    async def get_tracked(self) -> dict[str, Any]:
        pending = self._dashboard.selection.pending
        return {
            "items": [c.to_dict() for c in self._dashboard.selection.coins],
            "max": self._dashboard.selection.max_coins,
            "pending": pending.to_dict() if pending else None,
        }

    async def track(self, payload: dict[str, Any]) -> dict[str, Any]:
        change = await self._dashboard.track(TrackedCoin.from_dict(payload))
        return _change_payload(change, self._dashboard)

    async def toggle(self, payload: dict[str, Any]) -> dict[str, Any]:
        change = await self._dashboard.toggle(TrackedCoin.from_dict(payload))
        return _change_payload(change, self._dashboard)

    async def untrack(self, coin_id: str) -> dict[str, Any]:
        change = await self._dashboard.untrack(coin_id)
        return _change_payload(change, self._dashboard)

    async def replace(self, coin_id: str) -> dict[str, Any]:
        change = await self._dashboard.replace(coin_id)
        return _change_payload(change, self._dashboard)

    async def cancel_pending(self) -> dict[str, Any]:
        change = await self._dashboard.cancel_pending()
        return _change_payload(change, self._dashboard)

    async def get_prices(self) -> dict[str, Any]:
        return self._dashboard.state.price_payload()

    async def get_chart(self, coin_id: str, symbol: str, granularity: str, refresh: bool = True) -> dict[str, Any]:
        gran = Granularity(granularity)
        series = None if refresh else self._dashboard.cached_chart(coin_id, gran)
        if series is None:
            series = await self._dashboard.chart(coin_id, symbol, gran)
        return _series_payload(coin_id, series, self._dashboard)

    async def get_coin_detail(self, coin_id: str) -> dict[str, Any]:
        detail = await self._dashboard.coin_detail(coin_id)
        requests = self._dashboard.state.detail_requests
        return {
            "coin_id": coin_id,
            "data": detail.model_dump() if detail else None,
            "loading": requests.loading.get(coin_id, False),
            "error": requests.errors.get(coin_id),
        }

    async def request_recommendation(self, coin_id: str) -> dict[str, Any]:
        await self._dashboard.recommend(coin_id)
        return await self.get_recommendation(coin_id)

    async def get_recommendation(self, coin_id: str) -> dict[str, Any]:
        rec = self._dashboard.state.recommendation(coin_id)
        requests = self._dashboard.state.recommendation_requests
        return {
            "coin_id": coin_id,
            "recommendation": rec.to_dict() if rec else None,
            "loading": requests.loading.get(coin_id, False),
            "error": requests.errors.get(coin_id),
        }

    def snapshot(self) -> dict[str, Any]:
        return self._dashboard.snapshot()

    def register_ws(self) -> None:
        self._ws_connections += 1

    def unregister_ws(self) -> None:
        self._ws_connections = max(0, self._ws_connections - 1)
