"""
TA Engine Schema Contracts

This module defines all JSON contracts between system components.
These are the authoritative interfaces - all modules must conform to these schemas.
"""

from ta_engine.schemas.market import (
    Interval,
    KlineRequest,
    PriceBar,
    PriceSeries,
    OHLCVData,
    SymbolPrice,
    Ticker24hr,
    SymbolInfo,
    ExchangeInfo,
    HistoricalDataSummary,
)
from ta_engine.schemas.indicators import (
    IndicatorResultSeries,
    CompositeAnalysis,
    MovingAverages,
    OutputMode,
    OverallSignal,
    CalculateRequest,
    AnalyzeRequest,
)

__all__ = [
    # Market
    "Interval",
    "KlineRequest",
    "PriceBar",
    "PriceSeries",
    "OHLCVData",
    "SymbolPrice",
    "Ticker24hr",
    "SymbolInfo",
    "ExchangeInfo",
    "HistoricalDataSummary",
    # Indicators
    "IndicatorResultSeries",
    "CompositeAnalysis",
    "MovingAverages",
    "OutputMode",
    "OverallSignal",
    "CalculateRequest",
    "AnalyzeRequest",
]
