from cryptodash.analysis.prompt import build_prompt, format_number, format_pct, market_cap_tier, payload_from_detail, trend_analysis, volume_to_cap_ratio
from cryptodash.data.models import AIRequestPayload, CoinDetail


def test_number_formatting():
    assert format_number(50000) == "50,000"
    assert format_number(1234567.891234) == "1,234,567.891"
    assert format_number(0.5) == "0.5"
    assert format_pct(None) == "N/A"
    assert format_pct(12.3) == "12.30%"


def test_indicators():
    assert volume_to_cap_ratio(3e10, 1e12) == "3.0% (Moderate liquidity)"
    assert volume_to_cap_ratio(1.0, 0) == "N/A"
    assert trend_analysis(10.0, 5.0, 60.0) == "Short-term uptrend (30d), accelerating momentum, strong long-term performance"
    assert trend_analysis(None, 5.0, 1.0) == "Insufficient data for trend analysis"
    assert market_cap_tier(2e9) == "Mid Cap ($1B-$10B)"


def test_prompt_contains_market_table():
    payload = AIRequestPayload(
        name="Bitcoin",
        current_price_usd=50000,
        market_cap_usd=1e12,
        volume_24h_usd=3e10,
        pct_30d=10.0,
        pct_60d=None,
        pct_200d=-60.0,
    )

    prompt = build_prompt(payload)

    assert "## Market Data for Bitcoin" in prompt
    assert "| Current Price | $50,000 |" in prompt
    assert "| 60-day Change | N/A |" in prompt
    assert "Large Cap (>$10B)" in prompt
    assert "significant long-term decline" in prompt
    assert '"decision": "BUY" | "DO NOT BUY"' in prompt


def test_payload_prefers_usd_denominated_changes():
    detail = CoinDetail.model_validate(
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "market_data": {
                "current_price": {"usd": 50000},
                "market_cap": {"usd": 1e12},
                "total_volume": {"usd": 3e10},
                "price_change_percentage_30d": 1.0,
                "price_change_percentage_30d_in_currency": {"usd": 2.0},
                "price_change_percentage_60d": 3.0,
            },
        }
    )

    payload = payload_from_detail(detail)

    assert payload.pct_30d == 2.0
    assert payload.pct_60d == 3.0
    assert payload.pct_200d is None
    assert payload.current_price_usd == 50000
