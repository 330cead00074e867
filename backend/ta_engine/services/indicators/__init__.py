"""
Indicator Engine Service

CONTRACT:
    Input:  PriceSeries (chronological OHLCV bars)
    Output: IndicatorResultSeries / CompositeAnalysis

RESPONSIBILITIES:
    - Calculate technical indicators (RSI, MACD, moving averages, bands, volume flow, ...)
    - Align every result sequence to the input bars
    - Detect crossovers, divergences and squeezes
    - Merge the latest values into one weighted signal with a confidence score

PURE PYTHON - no I/O.
Uses NumPy for calculations.
All math is deterministic and reproducible.
"""

from ta_engine.services.indicators.interface import (
    IndicatorCalculator,
    TechnicalAnalysisServiceInterface,
)
from ta_engine.services.indicators.registry import IndicatorRegistry
from ta_engine.services.indicators.service import (
    TechnicalAnalysisService,
    get_indicator_service,
)

__all__ = [
    "IndicatorCalculator",
    "TechnicalAnalysisServiceInterface",
    "IndicatorRegistry",
    "TechnicalAnalysisService",
    "get_indicator_service",
]
