import asyncio

import aiohttp
import pytest

from ta_engine.schemas.market import Interval
from ta_engine.services.base import ExternalAPIError, RateLimitError, ValidationError
from ta_engine.services.data_ingestion.binance_adapter import BinanceClient


def kline_row(open_time, close="100.0"):
    return [open_time, "99.0", "101.0", "98.0", close, "10.0", open_time + 59999, "1000.0", 5, "5.0", "500.0", "0"]


def ticker(symbol, quote_volume):
    return {
        "symbol": symbol,
        "priceChange": "1.0",
        "priceChangePercent": "1.0",
        "weightedAvgPrice": "100.0",
        "prevClosePrice": "99.0",
        "lastPrice": "100.0",
        "lastQty": "1.0",
        "bidPrice": "99.9",
        "askPrice": "100.1",
        "openPrice": "99.0",
        "highPrice": "101.0",
        "lowPrice": "98.0",
        "volume": "10.0",
        "quoteVolume": str(quote_volume),
        "openTime": 0,
        "closeTime": 1,
        "firstId": 0,
        "lastId": 1,
        "count": 2,
    }


def symbol_info(symbol, base, quote):
    return {
        "symbol": symbol,
        "status": "TRADING",
        "baseAsset": base,
        "baseAssetPrecision": 8,
        "quoteAsset": quote,
        "quotePrecision": 8,
    }


class StubClient(BinanceClient):
    """Serves canned payloads by path and records every request."""

    def __init__(self, payloads):
        super().__init__(base_url="https://example.test")
        self.payloads = payloads
        self.calls = []

    async def _request(self, path, params=None):
        self.calls.append((path, params))
        return self.payloads[path]


class FakeResponse:
    def __init__(self, status, payload=None, body=""):
        self.status = status
        self._payload = payload
        self._body = body

    async def json(self):
        return self._payload

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    closed = False

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    def get(self, url, params=None):
        if self.error:
            raise self.error
        return self.response


def client_with_session(session):
    client = BinanceClient(base_url="https://example.test")
    client._session = session
    return client


# =============================================================================
# HTTP STATUS MAPPING
# =============================================================================


def test_request_returns_json_on_success():
    client = client_with_session(FakeSession(FakeResponse(200, {"ok": True})))
    assert asyncio.run(client._request("/api/v3/ping")) == {"ok": True}


@pytest.mark.parametrize("status", [418, 429])
def test_request_maps_rate_limits(status):
    client = client_with_session(FakeSession(FakeResponse(status, body="slow down")))

    with pytest.raises(RateLimitError) as exc:
        asyncio.run(client._request("/api/v3/klines"))
    assert exc.value.details["status"] == status


def test_request_maps_bad_request_to_invalid_symbol():
    client = client_with_session(FakeSession(FakeResponse(400, body='{"code":-1121}')))

    with pytest.raises(ExternalAPIError) as exc:
        asyncio.run(client._request("/api/v3/ticker/price", {"symbol": "NOPE"}))
    assert exc.value.message == "Invalid symbol or parameters: NOPE"


def test_request_maps_server_errors():
    client = client_with_session(FakeSession(FakeResponse(503, body="maintenance")))

    with pytest.raises(ExternalAPIError) as exc:
        asyncio.run(client._request("/api/v3/ping"))
    assert not isinstance(exc.value, RateLimitError)
    assert exc.value.details["status"] == 503


def test_request_maps_transport_errors():
    client = client_with_session(FakeSession(error=aiohttp.ClientConnectionError("refused")))

    with pytest.raises(ExternalAPIError):
        asyncio.run(client._request("/api/v3/ping"))


# =============================================================================
# ENDPOINTS
# =============================================================================


def test_get_price():
    client = StubClient({"/api/v3/ticker/price": {"symbol": "BTCUSDT", "price": "65000.01"}})
    price = asyncio.run(client.get_price("btcusdt"))

    assert price.price == "65000.01"
    assert client.calls == [("/api/v3/ticker/price", {"symbol": "BTCUSDT"})]


def test_get_24hr_ticker_rejects_malformed_payload():
    client = StubClient({"/api/v3/ticker/24hr": {"symbol": "BTCUSDT"}})

    with pytest.raises(ExternalAPIError):
        asyncio.run(client.get_24hr_ticker("BTCUSDT"))


def test_get_klines_builds_params():
    client = StubClient({"/api/v3/klines": [kline_row(0), kline_row(60000)]})
    klines = asyncio.run(
        client.get_klines("ethusdt", Interval.H1, 5000, start_time=10, end_time=20)
    )

    assert [k.open_time for k in klines] == [0, 60000]
    _, params = client.calls[0]
    assert params == {
        "symbol": "ETHUSDT",
        "interval": "1h",
        "limit": 1000,
        "startTime": 10,
        "endTime": 20,
    }


def test_get_klines_accepts_interval_strings():
    client = StubClient({"/api/v3/klines": []})
    asyncio.run(client.get_klines("BTCUSDT", "4h", 10))

    assert client.calls[0][1]["interval"] == "4h"
    assert "startTime" not in client.calls[0][1]


@pytest.mark.parametrize(
    "payload",
    [
        {"code": -1},
        [[1, "2", "3"]],
        [kline_row(0)[:-1] + ["0", "extra"]],
    ],
)
def test_get_klines_rejects_malformed_payload(payload):
    client = StubClient({"/api/v3/klines": payload})

    with pytest.raises(ExternalAPIError):
        asyncio.run(client.get_klines("BTCUSDT"))


def test_get_klines_validates_arguments():
    client = StubClient({})

    with pytest.raises(ValidationError):
        asyncio.run(client.get_klines("BTCUSDT", limit=0))
    with pytest.raises(ValidationError):
        asyncio.run(client.get_klines("BTCUSDT", interval="2d"))
    assert client.calls == []


def test_search_symbols_matches_pair_and_assets():
    info = {
        "timezone": "UTC",
        "serverTime": 1,
        "symbols": [
            symbol_info("BTCUSDT", "BTC", "USDT"),
            symbol_info("ETHUSDT", "ETH", "USDT"),
            symbol_info("ETHBTC", "ETH", "BTC"),
        ],
    }
    client = StubClient({"/api/v3/exchangeInfo": info})

    assert [s.symbol for s in asyncio.run(client.search_symbols(" eth "))] == ["ETHUSDT", "ETHBTC"]
    assert [s.symbol for s in asyncio.run(client.search_symbols("btc"))] == ["BTCUSDT", "ETHBTC"]


def test_search_symbols_rejects_empty_query():
    with pytest.raises(ValidationError):
        asyncio.run(StubClient({}).search_symbols("   "))


def test_top_symbols_by_quote_volume():
    client = StubClient(
        {
            "/api/v3/ticker/24hr": [
                ticker("BTCUSDT", 500),
                ticker("ETHBTC", 10000),
                ticker("ETHUSDT", 900),
                ticker("SOLUSDT", 100),
            ]
        }
    )
    top = asyncio.run(client.get_top_symbols_by_volume(2))

    assert [t.symbol for t in top] == ["ETHUSDT", "BTCUSDT"]


def test_top_symbols_validates_limit():
    with pytest.raises(ValidationError):
        asyncio.run(StubClient({}).get_top_symbols_by_volume(0))


def test_close_without_session_is_noop():
    asyncio.run(BinanceClient(base_url="https://example.test").close())
