from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from aiohttp import ClientResponseError

from cryptodash.core.logging import get_logger
from cryptodash.core.utils import now_ms

_log = get_logger(__name__)


def is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, ClientResponseError) and exc.status == 429


@dataclass
class RetryPolicy:
    """Bounded retry with exponential backoff.

    ``backoff(attempt)`` is the delay slept after the zero-based ``attempt``
    failed, so the default schedule is 2s, 4s, 8s. Only errors accepted by
    ``retry_on`` are retried; everything else propagates on the first failure.
    """

    max_attempts: int = 3
    base_delay_s: float = 2.0
    retry_on: Callable[[BaseException], bool] = is_rate_limited

    def backoff(self, attempt: int) -> float:
        return self.base_delay_s * (2**attempt)

    def is_retryable(self, exc: BaseException) -> bool:
        return self.retry_on(exc)

    async def call(
        self,
        func: Callable[[], Awaitable[Any]],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        label: str = "",
    ) -> Any:
        for attempt in range(self.max_attempts):
            try:
                return await func()
            except Exception as exc:
                if attempt >= self.max_attempts - 1 or not self.is_retryable(exc):
                    raise
                delay = self.backoff(attempt)
                _log.warning("retrying %s in %.1fs (attempt %s/%s): %s", label or "request", delay, attempt + 1, self.max_attempts, exc)
                await sleep(delay)
        raise RuntimeError("retry policy exhausted without a result")


@dataclass
class TtlPolicy:
    ttl_ms: int
    clock: Callable[[], int] = field(default=now_ms)

    def now(self) -> int:
        return self.clock()

    def is_fresh(self, stored_at_ms: int) -> bool:
        return self.now() - stored_at_ms < self.ttl_ms
