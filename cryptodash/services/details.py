from __future__ import annotations

from typing import Protocol

from cryptodash.core.events import StateBus
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.policies import TtlPolicy
from cryptodash.core.state import DashboardState
from cryptodash.data.models import CachedDetail, CoinDetail
from cryptodash.providers.errors import ProviderError

DETAIL_TTL_MS = 2 * 60 * 1000


class DetailSource(Protocol):
    async def fetch_coin_details(self, coin_id: str) -> CoinDetail: ...


class CoinDetailService:
    """Coin detail lookups memoized per coin for ``ttl.ttl_ms``."""

    def __init__(self, source: DetailSource, state: DashboardState, ttl: TtlPolicy | None = None, bus: StateBus | None = None) -> None:
        self.source = source
        self.state = state
        self.ttl = ttl or TtlPolicy(DETAIL_TTL_MS)
        self.bus = bus
        self._log = get_logger(__name__)

    async def get(self, coin_id: str) -> CoinDetail | None:
        seq = self.state.begin_detail(coin_id)
        cached = self.state.detail(coin_id)
        if cached is not None and self.ttl.is_fresh(cached.fetched_at):
            self.state.detail_requests.settle(coin_id)
            return cached.data

        try:
            data = await self.source.fetch_coin_details(coin_id)
        except ProviderError as exc:
            self.state.fail_detail(coin_id, seq, str(exc))
            return None
        except Exception as exc:
            self._log.error("coin detail failed %s", safe_json({"coin_id": coin_id, "error": str(exc)}))
            self.state.fail_detail(coin_id, seq, "Failed to fetch coin details")
            return None

        if self.state.put_detail(coin_id, CachedDetail(data=data, fetched_at=self.ttl.now()), seq) and self.bus is not None:
            await self.bus.publish(category="DETAIL", message="coin detail updated", key=coin_id)
        return data
