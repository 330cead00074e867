import asyncio
from datetime import datetime, timezone

import pytest

from ta_engine.core.config import settings
from ta_engine.schemas.market import Interval, Kline, KlineRequest
from ta_engine.services.base import ExternalAPIError, ValidationError
from ta_engine.services.data_ingestion.service import MarketDataService, summarize_history

DAY_MS = 24 * 60 * 60 * 1000
BASE_MS = 1_600_000_000_000


def make_kline(open_time, open_, close, volume=10.0):
    return Kline(
        open_time=open_time,
        open=open_,
        high=max(open_, close) + 1,
        low=min(open_, close) - 1,
        close=close,
        volume=volume,
        close_time=open_time + DAY_MS - 1,
        quote_volume=volume * close,
        trades=3,
        taker_buy_base_volume=volume / 2,
        taker_buy_quote_volume=volume * close / 2,
    )


class FakeKlineClient:
    """Serves a fixed daily history the way the klines endpoint pages it."""

    def __init__(self, count, start_ms=BASE_MS):
        self.history = [
            make_kline(start_ms + i * DAY_MS, 100.0 + i, 100.5 + i) for i in range(count)
        ]
        self.calls = []

    async def get_klines(self, symbol, interval=Interval.D1, limit=500, start_time=None, end_time=None):
        self.calls.append({"limit": limit, "start_time": start_time, "end_time": end_time})
        rows = [
            k
            for k in self.history
            if (start_time is None or k.open_time >= start_time)
            and (end_time is None or k.open_time <= end_time)
        ]
        # Without a start bound the most recent candles are returned
        return rows[:limit] if start_time is not None else rows[-limit:]

    async def ping(self):
        return True


class BrokenClient(FakeKlineClient):
    async def ping(self):
        raise ExternalAPIError("BinanceClient", "unreachable")


@pytest.fixture(autouse=True)
def no_pause(monkeypatch):
    monkeypatch.setattr(settings, "binance_request_pause", 0)


# =============================================================================
# PRICE SERIES
# =============================================================================


def test_price_series_pages_backwards():
    client = FakeKlineClient(2500)
    service = MarketDataService(client)

    series = asyncio.run(service.get_price_series("btcusdt", Interval.D1, 2200))

    assert len(series) == 2200
    assert series.symbol == "BTCUSDT"
    assert series.interval == Interval.D1
    assert [c["limit"] for c in client.calls] == [1000, 1000, 200]
    assert client.calls[0]["end_time"] is None

    stamps = [bar.timestamp for bar in series]
    assert stamps == sorted(set(stamps))
    assert series.last_close == client.history[-1].close
    assert series[0].close == client.history[300].close


def test_price_series_stops_at_start_of_history():
    client = FakeKlineClient(1500)
    series = asyncio.run(MarketDataService(client).get_price_series("BTCUSDT", Interval.D1, 2000))

    assert len(series) == 1500
    assert len(client.calls) == 2


def test_price_series_single_page():
    client = FakeKlineClient(50)
    series = asyncio.run(MarketDataService(client).execute(KlineRequest(symbol="ETHUSDT", limit=20)))

    assert len(series) == 20
    assert len(client.calls) == 1
    assert series[-1].close == client.history[-1].close


def test_price_series_validation():
    service = MarketDataService(FakeKlineClient(10))

    with pytest.raises(ValidationError):
        asyncio.run(service.get_price_series("BTCUSDT", Interval.D1, 0))
    with pytest.raises(ValidationError):
        asyncio.run(service.get_price_series("BTCUSDT", "2d", 10))


def test_price_series_empty_history():
    with pytest.raises(ExternalAPIError):
        asyncio.run(MarketDataService(FakeKlineClient(0)).get_price_series("NEWUSDT"))


# =============================================================================
# EXTENDED HISTORY
# =============================================================================


def recent_history_client(days=800):
    now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
    return FakeKlineClient(days + 1, start_ms=now_ms - days * DAY_MS)


def test_extended_history_covers_requested_years():
    summary = asyncio.run(
        MarketDataService(recent_history_client()).get_extended_history("btcusdt", Interval.D1, 1)
    )

    assert summary.symbol == "BTCUSDT"
    assert 364 <= summary.total_periods <= 366
    assert len(summary.data) == summary.total_periods
    assert summary.date_range.start < summary.date_range.end


def test_extended_history_pages_forward(monkeypatch):
    monkeypatch.setattr(settings, "binance_max_limit", 100)
    client = recent_history_client()

    summary = asyncio.run(MarketDataService(client).get_extended_history("BTCUSDT", Interval.D1, 1))

    assert len(client.calls) == 4
    starts = [c["start_time"] for c in client.calls]
    assert starts == sorted(starts)
    assert 364 <= summary.total_periods <= 366
    timestamps = [row.timestamp for row in summary.data]
    assert timestamps == sorted(set(timestamps))


@pytest.mark.parametrize(
    "interval, years_back",
    [(Interval.H1, 1), (Interval.D1, 0), (Interval.W1, settings.max_history_years + 1)],
)
def test_extended_history_validation(interval, years_back):
    service = MarketDataService(recent_history_client())
    with pytest.raises(ValidationError):
        asyncio.run(service.get_extended_history("BTCUSDT", interval, years_back))


def test_summarize_history_statistics():
    klines = [
        make_kline(BASE_MS + 2 * DAY_MS, 110.0, 99.0),
        make_kline(BASE_MS, 100.0, 100.0),
        make_kline(BASE_MS + DAY_MS, 100.0, 110.0),
    ]
    summary = summarize_history(klines, "btcusdt", Interval.D1)

    assert [row.close for row in summary.data] == [100.0, 110.0, 99.0]
    assert summary.data[1].change == 10.0
    assert summary.price_stats.all_time_high == 110.0
    assert summary.price_stats.all_time_low == 99.0
    assert summary.price_stats.current_price == 99.0
    assert summary.price_stats.total_return == pytest.approx(-1.0)
    assert summary.price_stats.total_return_percent == pytest.approx(-1.0)
    assert summary.volatility_stats.max_gain == pytest.approx(10.0)
    assert summary.volatility_stats.max_loss == pytest.approx(-10.0)
    assert summary.volatility_stats.average_change == pytest.approx(0.0)
    assert summary.date_range.start == "2020-09-13"

    series = summary.to_series()
    assert len(series) == 3
    assert series.last_close == 99.0


def test_summarize_history_requires_data():
    with pytest.raises(ExternalAPIError):
        summarize_history([], "BTCUSDT", Interval.D1)


# =============================================================================
# HEALTH
# =============================================================================


def test_health_check():
    assert asyncio.run(MarketDataService(FakeKlineClient(1)).health_check()) is True
    assert asyncio.run(MarketDataService(BrokenClient(1)).health_check()) is False
