"""
Crypto TA Engine - FastAPI Application

Main entry point for the backend API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ta_engine.core.config import settings
from ta_engine.api.v1 import router as api_v1_router
from ta_engine.api.v1.endpoints.indicators import to_http_exception
from ta_engine.services.base import ServiceError
from ta_engine.services.data_ingestion import get_binance_client

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Binance endpoint: {settings.binance_base_url}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await get_binance_client().close()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Crypto Technical Analysis Engine API

    ## Architecture
    - **Data Ingestion**: Fetches candles, prices and 24h stats from Binance
    - **Indicator Engine**: Calculates technical indicators (pure Python/NumPy)
    - **Composite Analysis**: Weighted BUY/SELL/HOLD signal with a confidence score

    ## Core Principles
    - Indicator math is deterministic and free of I/O
    - Every result sequence is aligned to its input bars
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware - allow local frontend ports
cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
# Add any additional origins from settings
if settings.allowed_origins:
    cors_origins.extend([o for o in settings.allowed_origins if o not in cors_origins])

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_v1_router, prefix="/api/v1")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Service errors that escape a route get the same payload as handled ones."""
    http_exc = to_http_exception(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Crypto TA Engine API",
        "docs": "/docs",
        "health": "/health",
    }
