from __future__ import annotations

import time


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_symbols(symbols) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for raw in symbols:
        symbol = str(raw).strip().upper()
        if symbol:
            seen.setdefault(symbol, None)
    return tuple(seen)
