import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from conftest import random_walk_series
from ta_engine.main import app, service_error_handler
from ta_engine.schemas.market import SymbolInfo
from ta_engine.services.base import ExternalAPIError, RateLimitError
from ta_engine.services.data_ingestion import get_market_data_service
from ta_engine.services.indicators import IndicatorRegistry, TechnicalAnalysisService, get_indicator_service


class FakeMarketService:
    """Market data stand-in: random-walk candles and canned exchange replies."""

    def __init__(self, bars=300):
        self.bars = bars
        self.requests = []

    async def get_price_series(self, symbol, interval, limit):
        self.requests.append((symbol, interval, limit))
        return random_walk_series(self.bars)

    async def get_price(self, symbol):
        raise RateLimitError("BinanceClient", "Binance rate limit exceeded", {"status": 429})

    async def get_24hr_stats(self, symbol):
        raise ExternalAPIError("BinanceClient", f"Invalid symbol or parameters: {symbol}")

    async def get_extended_history(self, symbol, interval, years_back):
        raise ExternalAPIError("MarketDataService", f"No historical data found for {symbol}")

    async def search_symbols(self, query):
        return [
            SymbolInfo(
                symbol="ETHUSDT",
                status="TRADING",
                baseAsset="ETH",
                baseAssetPrecision=8,
                quoteAsset="USDT",
                quotePrecision=8,
            )
        ]

    async def get_top_symbols(self, limit):
        return []


@pytest.fixture
def market():
    return FakeMarketService()


@pytest.fixture
def client(market):
    service = TechnicalAnalysisService(IndicatorRegistry())
    app.dependency_overrides[get_indicator_service] = lambda: service
    app.dependency_overrides[get_market_data_service] = lambda: market
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def bars_payload(n, seed=42):
    return [bar.model_dump(mode="json") for bar in random_walk_series(n, seed=seed)]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_indicators(client):
    body = client.get("/api/v1/indicators").json()

    assert "RSI" in body["indicators"]
    assert body["aliases"]["BB"] == "BOLLINGER_BANDS"


# =============================================================================
# CALLER-SUPPLIED BARS
# =============================================================================


def test_calculate_full_series(client):
    response = client.post(
        "/api/v1/indicators/calculate",
        json={"indicators": ["RSI", "MA"], "bars": bars_payload(60), "params": {"MA": {"period": 10}}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["RSI"]["offset"] == 14
    assert len(body["RSI"]["values"]) == 46
    assert body["MA"]["indicator"] == "MA10"


def test_calculate_latest_only(client):
    response = client.post(
        "/api/v1/indicators/calculate",
        json={"indicators": ["rsi"], "bars": bars_payload(60), "latest_only": True},
    )

    result = response.json()["rsi"]
    assert result["offset"] == 59
    assert len(result["values"]) == 1
    assert 0 <= result["values"][0]["rsi"] <= 100


def test_calculate_unknown_indicator(client):
    response = client.post(
        "/api/v1/indicators/calculate",
        json={"indicators": ["FOO"], "bars": bars_payload(30)},
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["type"] == "UnknownIndicatorError"
    assert "RSI" in detail["details"]["available"]


def test_calculate_insufficient_data(client):
    response = client.post(
        "/api/v1/indicators/calculate",
        json={"indicators": ["MACD"], "bars": bars_payload(20)},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["type"] == "InsufficientDataError"


def test_calculate_rejects_fractional_period(client):
    response = client.post(
        "/api/v1/indicators/calculate",
        json={"indicators": ["RSI"], "bars": bars_payload(30), "params": {"RSI": {"period": 14.5}}},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["type"] == "ValidationError"


def test_invalid_bar_is_rejected(client):
    bad_bar = {"open": 10, "high": 9, "low": 8, "close": 11, "volume": 1}
    response = client.post(
        "/api/v1/indicators/calculate",
        json={"indicators": ["RSI"], "bars": [bad_bar]},
    )

    assert response.status_code == 422


def test_analyze_bars(client):
    response = client.post(
        "/api/v1/indicators/analyze",
        json={"symbol": "WALKUSDT", "bars": bars_payload(250)},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["symbol"] == "WALKUSDT"
    assert body["max_score"] == 18
    assert body["overall_signal"] in {"STRONG_BUY", "BUY", "NEUTRAL", "SELL", "STRONG_SELL"}


def test_analyze_needs_200_bars(client):
    response = client.post(
        "/api/v1/indicators/analyze",
        json={"symbol": "WALKUSDT", "bars": bars_payload(150)},
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["type"] == "InsufficientDataError"


# =============================================================================
# EXCHANGE-BACKED
# =============================================================================


def test_symbol_analysis(client, market):
    response = client.get("/api/v1/indicators/btcusdt/analysis?interval=4h&limit=300")

    assert response.status_code == 200
    assert response.json()["symbol"] == "BTCUSDT"
    assert market.requests == [("BTCUSDT", "4h", 300)]


def test_symbol_analysis_full_data(client):
    response = client.get("/api/v1/indicators/BTCUSDT/analysis?output_mode=full_data")

    history = response.json()["history"]
    assert history["RSI"]["offset"] == 14


def test_symbol_indicator_latest(client, market):
    response = client.get("/api/v1/indicators/ETHUSDT/RSI?latest_only=true&period=7")

    assert response.status_code == 200
    body = response.json()
    assert body["indicator"] == "RSI"
    assert body["offset"] == market.bars - 1
    assert len(body["values"]) == 1


def test_symbol_indicator_unknown(client):
    response = client.get("/api/v1/indicators/ETHUSDT/NOPE")
    assert response.status_code == 400


def test_symbol_analysis_rejects_bad_interval(client):
    response = client.get("/api/v1/indicators/BTCUSDT/analysis?interval=2d")
    assert response.status_code == 422


def test_market_errors_map_to_status(client):
    rate_limited = client.get("/api/v1/market/BTCUSDT/price")
    upstream = client.get("/api/v1/market/NOPE/stats")

    assert rate_limited.status_code == 429
    assert rate_limited.json()["detail"]["type"] == "RateLimitError"
    assert upstream.status_code == 502
    assert upstream.json()["detail"]["message"] == "Invalid symbol or parameters: NOPE"


def test_market_history_error(client):
    response = client.get("/api/v1/market/BTCUSDT/history?years_back=2")
    assert response.status_code == 502


def test_market_search_and_top(client):
    search = client.get("/api/v1/market/search?query=eth")
    top = client.get("/api/v1/market/top?limit=5")

    assert search.status_code == 200
    assert search.json()[0]["symbol"] == "ETHUSDT"
    assert top.json() == []
    assert client.get("/api/v1/market/top?limit=0").status_code == 422


def test_unhandled_service_error_uses_error_payload():
    response = asyncio.run(
        service_error_handler(None, RateLimitError("BinanceClient", "Binance rate limit exceeded"))
    )

    assert response.status_code == 429
    detail = json.loads(response.body)["detail"]
    assert detail["error"] is True
    assert detail["type"] == "RateLimitError"
