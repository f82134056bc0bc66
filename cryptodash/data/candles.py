from __future__ import annotations

from typing import Iterable

from cryptodash.data.models import CandleGeometry, OHLCPoint

MIN_BODY_RATIO = 0.08


def candle_geometry(point: OHLCPoint, min_body_ratio: float = MIN_BODY_RATIO) -> CandleGeometry:
    """Split a candle into lower wick, body and upper wick ranges for drawing.

    Bodies thinner than ``min_body_ratio`` of the high-low range are widened
    around the open/close midpoint, clamped to [low, high], so doji candles
    stay visible. The OHLC values themselves are never changed.
    """
    body_low = min(point.open, point.close)
    body_high = max(point.open, point.close)
    span = point.high - point.low
    if span > 0 and body_high - body_low < span * min_body_ratio:
        half = span * min_body_ratio / 2
        mid = (point.open + point.close) / 2
        body_low = max(point.low, mid - half)
        body_high = min(point.high, mid + half)
    return CandleGeometry(
        timestamp=point.timestamp,
        is_up=point.close >= point.open,
        lower_wick=(point.low, body_low),
        body=(body_low, body_high),
        upper_wick=(body_high, point.high),
    )


def candles(points: Iterable[OHLCPoint]) -> list[CandleGeometry]:
    return [candle_geometry(p) for p in points]
