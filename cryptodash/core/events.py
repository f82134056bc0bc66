from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any, Iterable


class StateBus:
    """Fan-out of state-change events to asyncio queue subscribers."""

    def __init__(self, history_limit: int = 2000) -> None:
        self._history: deque[dict[str, Any]] = deque(maxlen=history_limit)
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()
        self._lock = asyncio.Lock()

    async def publish(
        self,
        *,
        category: str,
        message: str,
        level: str = "INFO",
        key: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        event = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level.upper(),
            "category": category.upper(),
            "message": message,
            "key": key,
            "payload": payload or {},
        }
        async with self._lock:
            self._history.append(event)
            for queue in list(self._subscribers):
                # slow subscribers lose their oldest event
                if queue.full():
                    try:
                        queue.get_nowait()
                    except asyncio.QueueEmpty:
                        pass
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    continue
        return event

    async def subscribe(self, maxsize: int = 256) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        async with self._lock:
            self._subscribers.add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        async with self._lock:
            self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def snapshot(self, limit: int = 200, categories: Iterable[str] | None = None, key: str | None = None) -> list[dict[str, Any]]:
        """Most recent events, oldest first, optionally narrowed to some categories and one key."""
        wanted = {c.upper() for c in categories} if categories is not None else None
        events = [
            event
            for event in self._history
            if (wanted is None or event["category"] in wanted) and (key is None or event["key"] == key)
        ]
        return events[-limit:]

    def latest(self, category: str, key: str | None = None) -> dict[str, Any] | None:
        found = self.snapshot(limit=1, categories=[category], key=key)
        return found[0] if found else None
