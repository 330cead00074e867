"""
Market Data Service Interface

Defines the contract for the market data layer.
"""

from abc import abstractmethod

from ta_engine.services.base import BaseService
from ta_engine.schemas.market import (
    HistoricalDataSummary,
    Interval,
    KlineRequest,
    PriceSeries,
    SymbolPrice,
    Ticker24hr,
)


class MarketDataServiceInterface(BaseService[KlineRequest, PriceSeries]):
    """
    Market Data Service Contract.

    INPUT: KlineRequest
        - symbol: Trading pair
        - interval: Candle interval
        - limit: Number of candles (may exceed the per-request cap)

    OUTPUT: PriceSeries
        - Validated bars, oldest first, no duplicate open times
    """

    @property
    def name(self) -> str:
        return "MarketDataService"

    @abstractmethod
    async def execute(self, input_data: KlineRequest) -> PriceSeries:
        """Fetch and normalize candles."""
        pass

    @abstractmethod
    async def get_price_series(
        self, symbol: str, interval: Interval, limit: int
    ) -> PriceSeries:
        """Assemble `limit` candles, paging backwards as needed."""
        pass

    @abstractmethod
    async def get_extended_history(
        self, symbol: str, interval: Interval, years_back: int
    ) -> HistoricalDataSummary:
        """Multi-year history with summary statistics."""
        pass

    @abstractmethod
    async def get_price(self, symbol: str) -> SymbolPrice:
        pass

    @abstractmethod
    async def get_24hr_stats(self, symbol: str) -> Ticker24hr:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check connectivity to the exchange."""
        pass
