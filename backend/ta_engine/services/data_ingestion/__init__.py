"""
Market Data Service

CONTRACT:
    Input:  KlineRequest
    Output: PriceSeries

RESPONSIBILITIES:
    - Fetch candles, prices and 24h stats from the Binance public API
    - Validate every exchange payload before use
    - Assemble ranges longer than the 1000-candle request cap
    - Summarize multi-year history

NO ANALYSIS - Pure data fetching and transformation.
"""

from ta_engine.services.data_ingestion.interface import MarketDataServiceInterface
from ta_engine.services.data_ingestion.binance_adapter import (
    BinanceClient,
    get_binance_client,
)
from ta_engine.services.data_ingestion.service import (
    MarketDataService,
    get_market_data_service,
    summarize_history,
)

__all__ = [
    "MarketDataServiceInterface",
    "BinanceClient",
    "get_binance_client",
    "MarketDataService",
    "get_market_data_service",
    "summarize_history",
]
