"""
Market Data API Endpoints

Prices, 24h statistics and history from Binance.
"""

from fastapi import APIRouter, Depends, Query

from ta_engine.core.config import settings
from ta_engine.schemas.market import (
    HistoricalDataSummary,
    Interval,
    SymbolInfo,
    SymbolPrice,
    Ticker24hr,
)
from ta_engine.services.base import ServiceError
from ta_engine.services.data_ingestion import MarketDataService, get_market_data_service
from ta_engine.api.v1.endpoints.indicators import to_http_exception

router = APIRouter()


@router.get("/search", response_model=list[SymbolInfo])
async def search_symbols(
    query: str = Query(..., min_length=1, description="Pair, base or quote asset fragment"),
    market: MarketDataService = Depends(get_market_data_service),
):
    """Search trading pairs by symbol, base asset or quote asset."""
    try:
        return await market.search_symbols(query)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/top", response_model=list[Ticker24hr])
async def top_symbols(
    limit: int = Query(10, ge=1, le=settings.binance_top_symbols_max),
    market: MarketDataService = Depends(get_market_data_service),
):
    """USDT pairs with the highest 24h quote volume."""
    try:
        return await market.get_top_symbols(limit)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/{symbol}/price", response_model=SymbolPrice)
async def get_price(
    symbol: str,
    market: MarketDataService = Depends(get_market_data_service),
):
    try:
        return await market.get_price(symbol.upper().strip())
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/{symbol}/stats", response_model=Ticker24hr)
async def get_24hr_stats(
    symbol: str,
    market: MarketDataService = Depends(get_market_data_service),
):
    """Rolling 24 hour statistics."""
    try:
        return await market.get_24hr_stats(symbol.upper().strip())
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/{symbol}/history", response_model=HistoricalDataSummary)
async def get_history(
    symbol: str,
    interval: Interval = Query(Interval.D1),
    years_back: int = Query(4, ge=1, le=settings.max_history_years),
    market: MarketDataService = Depends(get_market_data_service),
):
    """
    Multi-year history with summary statistics.

    Only daily, weekly and monthly intervals are supported.
    """
    try:
        return await market.get_extended_history(symbol.upper().strip(), interval, years_back)
    except ServiceError as e:
        raise to_http_exception(e)
