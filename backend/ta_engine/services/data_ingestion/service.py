"""
Market Data Service Implementation

Fetches candles from Binance and normalizes them into PriceSeries.
Longer ranges than the per-request cap are assembled page by page.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import numpy as np
from pydantic import ValidationError as PydanticValidationError

from ta_engine.core.config import settings
from ta_engine.schemas.market import (
    EXTENDED_HISTORY_INTERVALS,
    DateRange,
    HistoricalDataSummary,
    Interval,
    Kline,
    KlineRequest,
    PriceSeries,
    PriceStats,
    ProcessedKline,
    SymbolInfo,
    SymbolPrice,
    Ticker24hr,
    VolatilityStats,
)
from ta_engine.services.base import ExternalAPIError, ServiceError, ValidationError
from ta_engine.services.data_ingestion.interface import MarketDataServiceInterface
from ta_engine.services.data_ingestion.binance_adapter import BinanceClient, get_binance_client

logger = logging.getLogger(__name__)

MS_PER_YEAR = 365 * 24 * 60 * 60 * 1000


def summarize_history(
    klines: list[Kline], symbol: str, interval: Interval
) -> HistoricalDataSummary:
    """Per-bar changes plus price and volatility statistics."""
    if not klines:
        raise ExternalAPIError("MarketDataService", f"No historical data found for {symbol}")

    klines = sorted(klines, key=lambda k: k.open_time)

    rows = []
    for k in klines:
        change = k.close - k.open
        rows.append(
            ProcessedKline(
                timestamp=k.open_time,
                date=k.opened_at.date().isoformat(),
                open=k.open,
                high=k.high,
                low=k.low,
                close=k.close,
                volume=k.volume,
                quote_volume=k.quote_volume,
                trades=k.trades,
                change=change,
                change_percent=(change / k.open * 100) if k.open else 0.0,
            )
        )

    closes = np.array([r.close for r in rows])
    changes = np.array([r.change_percent for r in rows])
    first_price = float(closes[0])
    current_price = float(closes[-1])
    total_return = current_price - first_price

    return HistoricalDataSummary(
        symbol=symbol.upper(),
        interval=interval,
        total_periods=len(rows),
        date_range=DateRange(start=rows[0].date, end=rows[-1].date),
        price_stats=PriceStats(
            all_time_high=float(np.max(closes)),
            all_time_low=float(np.min(closes)),
            current_price=current_price,
            total_return=total_return,
            total_return_percent=(total_return / first_price * 100) if first_price else 0.0,
        ),
        volatility_stats=VolatilityStats(
            average_change=float(np.mean(changes)),
            volatility=float(np.std(changes)),
            max_gain=float(np.max(changes)),
            max_loss=float(np.min(changes)),
        ),
        data=rows,
    )


class MarketDataService(MarketDataServiceInterface):
    """
    Market Data Service.

    Binance is the only source. The client is injectable for tests.
    """

    def __init__(self, client: Optional[BinanceClient] = None):
        self.client = client or get_binance_client()

    @property
    def name(self) -> str:
        return "MarketDataService"

    async def execute(self, input_data: KlineRequest) -> PriceSeries:
        return await self.get_price_series(
            input_data.symbol, input_data.interval, input_data.limit
        )

    def _interval(self, interval) -> Interval:
        try:
            return Interval(interval)
        except ValueError as e:
            raise ValidationError(self.name, f"Unsupported interval: {interval}") from e

    def _to_series(self, klines: list[Kline], symbol: str, interval: Interval) -> PriceSeries:
        try:
            bars = [k.to_bar() for k in klines]
        except PydanticValidationError as e:
            raise ExternalAPIError(
                self.name, f"Exchange returned an invalid candle for {symbol}: {e}"
            ) from e
        return PriceSeries.from_bars(bars, symbol=symbol.upper(), interval=interval)

    async def get_price_series(
        self,
        symbol: str,
        interval: Interval = Interval.D1,
        limit: int = 500,
    ) -> PriceSeries:
        """
        Fetch the most recent `limit` candles.

        Walks backwards in pages of at most `binance_max_limit`, each page
        ending just before the oldest candle already collected.
        """
        if limit < 1:
            raise ValidationError(self.name, f"limit must be at least 1, got {limit}")
        interval = self._interval(interval)

        collected: dict[int, Kline] = {}
        end_time: Optional[int] = None

        while len(collected) < limit:
            wanted = min(limit - len(collected), settings.binance_max_limit)
            page = await self.client.get_klines(symbol, interval, wanted, end_time=end_time)
            if not page:
                break

            for k in page:
                collected.setdefault(k.open_time, k)

            if len(page) < wanted:
                # Reached the start of the pair's history
                break

            end_time = min(k.open_time for k in page) - 1
            if len(collected) < limit:
                await asyncio.sleep(settings.binance_request_pause)

        if not collected:
            raise ExternalAPIError(self.name, f"No candles returned for {symbol}")

        klines = sorted(collected.values(), key=lambda k: k.open_time)[-limit:]
        logger.info(f"Fetched {len(klines)} {interval.value} candles for {symbol.upper()}")
        return self._to_series(klines, symbol, interval)

    async def get_extended_history(
        self,
        symbol: str,
        interval: Interval = Interval.D1,
        years_back: int = 4,
    ) -> HistoricalDataSummary:
        """Multi-year history, paging forward from `years_back` years ago."""
        interval = self._interval(interval)
        if interval not in EXTENDED_HISTORY_INTERVALS:
            allowed = [i.value for i in EXTENDED_HISTORY_INTERVALS]
            raise ValidationError(
                self.name, f"Extended history supports intervals {allowed}, got {interval.value}"
            )
        if not 1 <= years_back <= settings.max_history_years:
            raise ValidationError(
                self.name,
                f"years_back must be between 1 and {settings.max_history_years}, got {years_back}",
            )

        now = int(datetime.now(timezone.utc).timestamp() * 1000)
        cursor = now - years_back * MS_PER_YEAR

        collected: dict[int, Kline] = {}
        while cursor < now:
            page = await self.client.get_klines(
                symbol,
                interval,
                settings.binance_max_limit,
                start_time=cursor,
                end_time=now,
            )
            if not page:
                break

            for k in page:
                collected.setdefault(k.open_time, k)

            if len(page) < settings.binance_max_limit:
                break
            cursor = max(k.open_time for k in page) + 1
            await asyncio.sleep(settings.binance_request_pause)

        logger.info(
            f"Fetched {len(collected)} {interval.value} candles for {symbol.upper()} "
            f"over {years_back} years"
        )
        return summarize_history(list(collected.values()), symbol, interval)

    async def get_price(self, symbol: str) -> SymbolPrice:
        return await self.client.get_price(symbol)

    async def get_24hr_stats(self, symbol: str) -> Ticker24hr:
        return await self.client.get_24hr_ticker(symbol)

    async def search_symbols(self, query: str) -> list[SymbolInfo]:
        return await self.client.search_symbols(query)

    async def get_top_symbols(self, limit: int = 10) -> list[Ticker24hr]:
        return await self.client.get_top_symbols_by_volume(limit)

    async def health_check(self) -> bool:
        """Check connectivity to Binance."""
        try:
            return await self.client.ping()
        except ServiceError as e:
            logger.warning(f"Binance health check failed: {e}")
            return False


# Singleton instance
_service_instance: Optional[MarketDataService] = None


def get_market_data_service() -> MarketDataService:
    """Get or create market data service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = MarketDataService()
    return _service_instance
