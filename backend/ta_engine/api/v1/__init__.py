"""
API v1 Router

All API endpoints of the analysis engine.
"""

from fastapi import APIRouter

from ta_engine.api.v1.endpoints import market, indicators

router = APIRouter()

# Include all endpoint routers
router.include_router(market.router, prefix="/market", tags=["Market Data"])
router.include_router(indicators.router, prefix="/indicators", tags=["Indicators"])
