from __future__ import annotations

from cryptodash.data.models import AIRequestPayload, CoinDetail

SYSTEM_PROMPT = (
    "You are a cryptocurrency technical analyst. Provide objective, data-driven recommendations.\n"
    "Recommend BUY for positive momentum and favorable conditions, DO NOT BUY for negative trends, "
    "high risk, or uncertain signals.\n"
    "Always respond with valid JSON only. No markdown, no extra text."
)

LARGE_CAP_USD = 10e9
MID_CAP_USD = 1e9


def format_number(value: float) -> str:
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_pct(value: float | None) -> str:
    return "N/A" if value is None else f"{value:.2f}%"


def volume_to_cap_ratio(volume: float, market_cap: float) -> str:
    if market_cap <= 0:
        return "N/A"
    ratio = volume / market_cap * 100
    if ratio > 10:
        label = "Very High liquidity"
    elif ratio > 5:
        label = "High liquidity"
    elif ratio > 2:
        label = "Moderate liquidity"
    else:
        label = "Low liquidity"
    return f"{ratio:.1f}% ({label})"


def trend_analysis(p30: float | None, p60: float | None, p200: float | None) -> str:
    if p30 is None:
        return "Insufficient data for trend analysis"

    trends = ["Short-term uptrend (30d)" if p30 > 0 else "Short-term downtrend (30d)"]

    if p60 is not None:
        if p60 > 0 and p30 > p60:
            trends.append("accelerating momentum")
        elif p60 > 0 and p30 < p60:
            trends.append("slowing momentum")
        elif p60 < 0 and p30 > p60:
            trends.append("recovering from decline")

    if p200 is not None:
        if p200 > 50:
            trends.append("strong long-term performance")
        elif p200 < -50:
            trends.append("significant long-term decline")

    return ", ".join(trends)


def market_cap_tier(market_cap: float) -> str:
    if market_cap > LARGE_CAP_USD:
        return "Large Cap (>$10B)"
    if market_cap > MID_CAP_USD:
        return "Mid Cap ($1B-$10B)"
    return "Small Cap (<$1B)"


def build_prompt(payload: AIRequestPayload) -> str:
    lines = [
        "Analyze this cryptocurrency and provide an investment recommendation.",
        "",
        f"## Market Data for {payload.name}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Current Price | ${format_number(payload.current_price_usd)} |",
        f"| Market Cap | ${format_number(payload.market_cap_usd)} |",
        f"| 24h Volume | ${format_number(payload.volume_24h_usd)} |",
        f"| Volume/MCap Ratio | {volume_to_cap_ratio(payload.volume_24h_usd, payload.market_cap_usd)} |",
        f"| 30-day Change | {format_pct(payload.pct_30d)} |",
        f"| 60-day Change | {format_pct(payload.pct_60d)} |",
        f"| 200-day Change | {format_pct(payload.pct_200d)} |",
        "",
        "## Pre-Analysis",
        f"- Trend: {trend_analysis(payload.pct_30d, payload.pct_60d, payload.pct_200d)}",
        f"- Market Cap Tier: {market_cap_tier(payload.market_cap_usd)}",
        "",
        "## Your Task",
        "Evaluate using these criteria:",
        "1. **Momentum**: Are price trends positive across timeframes?",
        "2. **Liquidity**: Is volume healthy relative to market cap?",
        "3. **Risk Level**: Consider market cap size and volatility",
        "4. **Entry Timing**: Is current price favorable based on recent movements?",
        "",
        "Respond with JSON only:",
        "{",
        '  "decision": "BUY" | "DO NOT BUY",',
        '  "confidence": <number 1-100>,',
        '  "explanation": "<2-3 sentences with specific reasoning>"',
        "}",
    ]
    return "\n".join(lines)


def payload_from_detail(detail: CoinDetail) -> AIRequestPayload:
    market = detail.market_data

    def _pct(in_currency, plain: float | None) -> float | None:
        if in_currency is not None and in_currency.usd is not None:
            return in_currency.usd
        return plain

    return AIRequestPayload(
        name=detail.name,
        current_price_usd=market.current_price.usd or 0.0,
        market_cap_usd=market.market_cap.usd or 0.0,
        volume_24h_usd=market.total_volume.usd or 0.0,
        pct_30d=_pct(market.price_change_percentage_30d_in_currency, market.price_change_percentage_30d),
        pct_60d=_pct(market.price_change_percentage_60d_in_currency, market.price_change_percentage_60d),
        pct_200d=_pct(market.price_change_percentage_200d_in_currency, market.price_change_percentage_200d),
    )
