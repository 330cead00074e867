"""
Indicator API Endpoints

Endpoints for technical indicator calculations and composite analysis.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ta_engine.core.config import settings
from ta_engine.schemas.market import Interval, PriceSeries
from ta_engine.schemas.indicators import (
    AnalyzeRequest,
    CalculateRequest,
    CompositeAnalysis,
    IndicatorResultSeries,
    OutputMode,
)
from ta_engine.services.base import (
    ExternalAPIError,
    InsufficientDataError,
    RateLimitError,
    ServiceError,
    UnknownIndicatorError,
    ValidationError,
)
from ta_engine.services.data_ingestion import MarketDataService, get_market_data_service
from ta_engine.services.indicators import TechnicalAnalysisService, get_indicator_service

logger = logging.getLogger(__name__)

router = APIRouter()


def error_status(error: ServiceError) -> int:
    """HTTP status code for a service error."""
    if isinstance(error, RateLimitError):
        return 429
    if isinstance(error, ExternalAPIError):
        return 502
    if isinstance(error, (InsufficientDataError, UnknownIndicatorError, ValidationError)):
        return 400
    return 500


def to_http_exception(error: ServiceError) -> HTTPException:
    status_code = error_status(error)
    if status_code >= 500:
        logger.error(f"{error}")
    else:
        logger.info(f"Rejected request: {error}")
    return HTTPException(
        status_code=status_code,
        detail={
            "error": True,
            "type": type(error).__name__,
            "message": error.message,
            "details": error.details,
        },
    )


# =============================================================================
# CALLER-SUPPLIED BARS
# =============================================================================


@router.get("")
async def list_indicators(
    service: TechnicalAnalysisService = Depends(get_indicator_service),
):
    """Available indicator names and their aliases."""
    return {
        "indicators": service.registry.list_available(),
        "aliases": service.registry.list_aliases(),
    }


@router.post("/calculate", response_model=dict[str, IndicatorResultSeries])
async def calculate_indicators(
    request: CalculateRequest,
    service: TechnicalAnalysisService = Depends(get_indicator_service),
):
    """
    Calculate named indicators over the supplied bars.

    Each result is aligned to the input: values[i] belongs to bar offset + i.
    With latest_only, each sequence is cut down to its last entry.
    """
    series = PriceSeries.from_bars(request.bars)
    try:
        results = service.calculate(request.indicators, series, request.params)
    except ServiceError as e:
        raise to_http_exception(e)

    if request.latest_only:
        results = {name: r.only_latest() for name, r in results.items()}
    return results


@router.post("/analyze", response_model=CompositeAnalysis)
async def analyze_bars(
    request: AnalyzeRequest,
    service: TechnicalAnalysisService = Depends(get_indicator_service),
):
    """Composite analysis of the supplied bars (at least 200)."""
    try:
        return await service.execute(request)
    except ServiceError as e:
        raise to_http_exception(e)


# =============================================================================
# EXCHANGE-BACKED
# =============================================================================


@router.get("/{symbol}/analysis", response_model=CompositeAnalysis)
async def analyze_symbol(
    symbol: str,
    interval: Interval = Query(Interval(settings.default_interval)),
    limit: int = Query(settings.default_limit, ge=1, le=20000),
    output_mode: OutputMode = Query(OutputMode.SUMMARY),
    market: MarketDataService = Depends(get_market_data_service),
    service: TechnicalAnalysisService = Depends(get_indicator_service),
):
    """Fetch candles from Binance and run the composite analysis."""
    symbol = symbol.upper().strip()
    try:
        series = await market.get_price_series(symbol, interval, limit)
        return service.analyze(series, symbol, output_mode)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/{symbol}/{name}", response_model=IndicatorResultSeries)
async def get_symbol_indicator(
    symbol: str,
    name: str,
    interval: Interval = Query(Interval(settings.default_interval)),
    limit: int = Query(settings.default_limit, ge=1, le=20000),
    latest_only: bool = Query(False),
    period: Optional[int] = Query(None, ge=1, description="Override the main period"),
    market: MarketDataService = Depends(get_market_data_service),
    service: TechnicalAnalysisService = Depends(get_indicator_service),
):
    """Fetch candles from Binance and calculate one indicator."""
    symbol = symbol.upper().strip()
    params = {"period": period} if period is not None else None
    try:
        series = await market.get_price_series(symbol, interval, limit)
        result = service.calculate_one(name, series, params)
    except ServiceError as e:
        raise to_http_exception(e)

    return result.only_latest() if latest_only else result
