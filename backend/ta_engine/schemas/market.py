"""
CONTRACT 1: Market Data Layer

Input: KlineRequest
Output: PriceSeries

The market data collaborator fetches raw klines from the exchange, validates
them against the response models below and normalizes them into a clean,
chronological PriceSeries for the indicator engine.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class Interval(str, Enum):
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"
    W1 = "1w"
    MN1 = "1M"


# Interval length in milliseconds (1M is approximated as 30 days)
INTERVAL_MS = {
    Interval.M30: 30 * 60 * 1000,
    Interval.H1: 60 * 60 * 1000,
    Interval.H4: 4 * 60 * 60 * 1000,
    Interval.D1: 24 * 60 * 60 * 1000,
    Interval.W1: 7 * 24 * 60 * 60 * 1000,
    Interval.MN1: 30 * 24 * 60 * 60 * 1000,
}

# Intervals allowed for multi-year history downloads
EXTENDED_HISTORY_INTERVALS = (Interval.D1, Interval.W1, Interval.MN1)


# =============================================================================
# INPUT: KlineRequest
# =============================================================================


class KlineRequest(BaseModel):
    """
    Request for historical candles.
    Sent by: API / Analysis layer
    Received by: Market Data Service
    """

    symbol: str = Field(..., min_length=1, description="Trading pair (e.g., 'BTCUSDT')")
    interval: Interval = Field(default=Interval.D1, description="Candle interval")
    limit: int = Field(
        default=500,
        ge=1,
        le=20000,
        description="Number of candles; pages of 1000 are assembled by the service",
    )


# =============================================================================
# PRICE SERIES
# =============================================================================


@dataclass
class OHLCVData:
    """OHLCV data arrays for calculations."""

    timestamps: np.ndarray
    opens: np.ndarray
    highs: np.ndarray
    lows: np.ndarray
    closes: np.ndarray
    volumes: np.ndarray


class PriceBar(BaseModel):
    """Single candlestick data point. Immutable once ingested."""

    model_config = ConfigDict(frozen=True)

    timestamp: Optional[datetime] = None
    open: float
    high: float
    low: float
    close: float
    volume: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "PriceBar":
        if self.low > self.high:
            raise ValueError(f"low {self.low} is above high {self.high}")
        if not self.low <= self.open <= self.high:
            raise ValueError(f"open {self.open} outside [{self.low}, {self.high}]")
        if not self.low <= self.close <= self.high:
            raise ValueError(f"close {self.close} outside [{self.low}, {self.high}]")
        return self


class PriceSeries(BaseModel):
    """
    Chronological (oldest first) sequence of bars.

    Ordering is guaranteed by the producer; no gap or duplicate-timestamp
    checks are performed here.
    """

    model_config = ConfigDict(frozen=True)

    symbol: Optional[str] = None
    interval: Optional[Interval] = None
    bars: list[PriceBar] = Field(default_factory=list)

    @classmethod
    def from_bars(
        cls,
        bars: list[PriceBar],
        symbol: Optional[str] = None,
        interval: Optional[Interval] = None,
    ) -> "PriceSeries":
        return cls(symbol=symbol, interval=interval, bars=list(bars))

    def __len__(self) -> int:
        return len(self.bars)

    def __getitem__(self, index: int) -> PriceBar:
        return self.bars[index]

    def __iter__(self) -> Iterator[PriceBar]:  # type: ignore[override]
        return iter(self.bars)

    @property
    def last_close(self) -> float:
        return self.bars[-1].close

    def to_arrays(self) -> OHLCVData:
        """Convert bars to numpy arrays."""
        return OHLCVData(
            timestamps=np.array([b.timestamp for b in self.bars], dtype=object),
            opens=np.array([b.open for b in self.bars], dtype=float),
            highs=np.array([b.high for b in self.bars], dtype=float),
            lows=np.array([b.low for b in self.bars], dtype=float),
            closes=np.array([b.close for b in self.bars], dtype=float),
            volumes=np.array([b.volume for b in self.bars], dtype=float),
        )


# =============================================================================
# EXCHANGE RESPONSE MODELS
# =============================================================================


class SymbolPrice(BaseModel):
    """Latest price for a symbol."""

    symbol: str
    price: str


class Ticker24hr(BaseModel):
    """24 hour rolling window statistics."""

    symbol: str
    priceChange: str
    priceChangePercent: str
    weightedAvgPrice: str
    prevClosePrice: str
    lastPrice: str
    lastQty: str
    bidPrice: str
    askPrice: str
    openPrice: str
    highPrice: str
    lowPrice: str
    volume: str
    quoteVolume: str
    openTime: int
    closeTime: int
    firstId: int
    lastId: int
    count: int


class SymbolInfo(BaseModel):
    """Tradable pair as listed in exchange info."""

    symbol: str
    status: str
    baseAsset: str
    baseAssetPrecision: int
    quoteAsset: str
    quotePrecision: int
    orderTypes: list[str] = Field(default_factory=list)
    icebergAllowed: bool = False
    ocoAllowed: bool = False
    isSpotTradingAllowed: bool = False
    isMarginTradingAllowed: bool = False


class ExchangeInfo(BaseModel):
    """Exchange metadata and listed symbols."""

    timezone: str
    serverTime: int
    symbols: list[SymbolInfo]


class Kline(BaseModel):
    """
    One raw kline row.

    The exchange returns a 12-element array:
    [open_time, open, high, low, close, volume, close_time,
     quote_volume, trades, taker_base_volume, taker_quote_volume, ignore]
    """

    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    close_time: int
    quote_volume: float
    trades: int
    taker_buy_base_volume: float
    taker_buy_quote_volume: float

    @classmethod
    def from_row(cls, row: list) -> "Kline":
        if not isinstance(row, (list, tuple)) or len(row) != 12:
            raise ValueError(f"Kline row must have 12 elements, got {row!r}")
        return cls(
            open_time=row[0],
            open=row[1],
            high=row[2],
            low=row[3],
            close=row[4],
            volume=row[5],
            close_time=row[6],
            quote_volume=row[7],
            trades=row[8],
            taker_buy_base_volume=row[9],
            taker_buy_quote_volume=row[10],
        )

    @property
    def opened_at(self) -> datetime:
        return datetime.fromtimestamp(self.open_time / 1000, tz=timezone.utc)

    def to_bar(self) -> PriceBar:
        return PriceBar(
            timestamp=self.opened_at,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


# =============================================================================
# OUTPUT: HistoricalDataSummary
# =============================================================================


class ProcessedKline(BaseModel):
    """Kline enriched with per-bar change."""

    timestamp: int
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    quote_volume: float
    trades: int
    change: float
    change_percent: float


class DateRange(BaseModel):
    start: str
    end: str


class PriceStats(BaseModel):
    all_time_high: float
    all_time_low: float
    current_price: float
    total_return: float
    total_return_percent: float


class VolatilityStats(BaseModel):
    average_change: float
    volatility: float
    max_gain: float
    max_loss: float


class HistoricalDataSummary(BaseModel):
    """
    Multi-year history with summary statistics.
    Returned by: Market Data Service
    """

    symbol: str
    interval: Interval
    total_periods: int = Field(..., ge=1)
    date_range: DateRange
    price_stats: PriceStats
    volatility_stats: VolatilityStats
    data: list[ProcessedKline]

    def to_series(self) -> PriceSeries:
        """Rebuild a PriceSeries from the processed rows."""
        bars = [
            PriceBar(
                timestamp=datetime.fromtimestamp(row.timestamp / 1000, tz=timezone.utc),
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=row.volume,
            )
            for row in self.data
        ]
        return PriceSeries.from_bars(bars, symbol=self.symbol, interval=self.interval)
