from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Iterable, Protocol

from cryptodash.core.events import StateBus
from cryptodash.core.logging import get_logger, safe_json
from cryptodash.core.state import DashboardState
from cryptodash.core.utils import normalize_symbols, now_ms


class PriceSource(Protocol):
    async def fetch_multiple_prices(self, symbols: Iterable[str]) -> dict[str, float]: ...


class LivePriceAggregator:
    """Polls one batched price request per interval for every tracked symbol.

    The timer fires immediately on start and then every ``interval_ms``.
    Each tick spawns its request as a separate task, so a slow response
    never delays the next tick. Stopping cancels only the timer; a response
    that lands after the stop is dropped.
    """

    def __init__(
        self,
        source: PriceSource,
        state: DashboardState,
        interval_ms: int = 1000,
        bus: StateBus | None = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.source = source
        self.state = state
        self.interval_ms = interval_ms
        self.bus = bus
        self._clock = clock
        self._sleep = sleep
        self._symbols: tuple[str, ...] = ()
        self._timer: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[bool]] = set()
        self._generation = 0
        self._log = get_logger(__name__)

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def set_symbols(self, symbols: Iterable[str]) -> None:
        self._symbols = normalize_symbols(symbols)
        if not self._symbols:
            self.stop()
        elif not self.running:
            self.start()

    def start(self) -> None:
        if self.running or not self._symbols:
            return
        self._generation += 1
        self.state.set_polling(True)
        self._timer = asyncio.create_task(self._run(self._generation))
        self._log.info("price polling started %s", safe_json({"symbols": list(self._symbols), "interval_ms": self.interval_ms}))

    def stop(self) -> None:
        if self._timer is None:
            return
        self._generation += 1
        self._timer.cancel()
        self._timer = None
        self.state.set_polling(False)
        self._log.info("price polling stopped")

    async def aclose(self) -> None:
        timer = self._timer
        self.stop()
        if timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        await self.drain()

    async def drain(self) -> None:
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run(self, generation: int) -> None:
        while True:
            task = asyncio.create_task(self.poll_once(generation))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await self._sleep(self.interval_ms / 1000)

    def _is_stale(self, generation: int | None) -> bool:
        return generation is not None and generation != self._generation

    async def poll_once(self, generation: int | None = None) -> bool:
        symbols = self._symbols
        if not symbols:
            return False
        seq = self.state.next_seq()
        try:
            prices = await self.source.fetch_multiple_prices(symbols)
        except Exception as exc:
            if self._is_stale(generation):
                return False
            self._log.warning("price poll failed %s", safe_json({"symbols": list(symbols), "error": str(exc)}))
            self.state.record_price_error(str(exc) or "Failed to fetch prices")
            return False
        if self._is_stale(generation):
            self._log.debug("dropping price response from stopped poller")
            return False
        # symbols untracked while the request was in flight
        tracked = set(self._symbols)
        prices = {symbol: price for symbol, price in prices.items() if symbol.upper() in tracked}
        timestamp = self._clock()
        if not self.state.apply_prices(prices, timestamp, seq=seq):
            self._log.debug("dropping out-of-order price response %s", safe_json({"seq": seq}))
            return False
        if self.bus is not None:
            await self.bus.publish(
                category="PRICES",
                message="prices updated",
                payload={"prices": dict(prices), "last_updated": timestamp},
            )
        return True
