"""
Binance API Data Adapter

Public (unauthenticated) REST endpoints of the Binance spot exchange.
Every payload is validated against the pydantic models in
ta_engine.schemas.market before it is handed to callers.

Binance Spot API Documentation: https://binance-docs.github.io/apidocs/spot/en/
"""

import logging
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from ta_engine.core.config import settings
from ta_engine.schemas.market import (
    ExchangeInfo,
    Interval,
    Kline,
    SymbolInfo,
    SymbolPrice,
    Ticker24hr,
)
from ta_engine.services.base import ExternalAPIError, RateLimitError, ValidationError

logger = logging.getLogger(__name__)

SERVICE_NAME = "BinanceClient"

# Status codes Binance uses for request-weight limits and IP bans
RATE_LIMIT_STATUSES = (418, 429)


class BinanceClient:
    """
    Binance public REST client.

    One aiohttp session is opened lazily and reused until close().
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.binance_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.binance_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Accept": "application/json"},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BinanceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET a JSON payload, mapping HTTP failures to service errors."""
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {path} params={params}")

        try:
            session = await self._ensure_session()
            async with session.get(url, params=params) as resp:
                if resp.status == 200:
                    return await resp.json()

                body = await resp.text()
                if resp.status in RATE_LIMIT_STATUSES:
                    logger.warning(f"Binance rate limit hit on {path}: {resp.status}")
                    raise RateLimitError(
                        SERVICE_NAME,
                        "Binance rate limit exceeded",
                        {"status": resp.status, "path": path},
                    )
                if resp.status == 400:
                    symbol = (params or {}).get("symbol", "")
                    raise ExternalAPIError(
                        SERVICE_NAME,
                        f"Invalid symbol or parameters: {symbol}",
                        {"status": resp.status, "path": path, "body": body},
                    )

                logger.error(f"Binance error {resp.status} on {path}: {body}")
                raise ExternalAPIError(
                    SERVICE_NAME,
                    f"Binance request failed with status {resp.status}",
                    {"status": resp.status, "path": path, "body": body},
                )

        except aiohttp.ClientError as e:
            logger.error(f"Binance transport error on {path}: {e}")
            raise ExternalAPIError(SERVICE_NAME, f"Request to {path} failed: {e}") from e

    def _invalid_payload(self, what: str, error: Exception) -> ExternalAPIError:
        logger.error(f"Unexpected Binance {what} payload: {error}")
        return ExternalAPIError(SERVICE_NAME, f"Unexpected {what} payload from Binance")

    # =========================================================================
    # MARKET DATA
    # =========================================================================

    async def ping(self) -> bool:
        await self._request("/api/v3/ping")
        return True

    async def get_price(self, symbol: str) -> SymbolPrice:
        """Latest price for a symbol."""
        data = await self._request("/api/v3/ticker/price", {"symbol": symbol.upper()})
        try:
            return SymbolPrice.model_validate(data)
        except PydanticValidationError as e:
            raise self._invalid_payload("price", e) from e

    async def get_24hr_ticker(self, symbol: str) -> Ticker24hr:
        """24 hour rolling statistics for a symbol."""
        data = await self._request("/api/v3/ticker/24hr", {"symbol": symbol.upper()})
        try:
            return Ticker24hr.model_validate(data)
        except PydanticValidationError as e:
            raise self._invalid_payload("24hr ticker", e) from e

    async def get_exchange_info(self) -> ExchangeInfo:
        data = await self._request("/api/v3/exchangeInfo")
        try:
            return ExchangeInfo.model_validate(data)
        except PydanticValidationError as e:
            raise self._invalid_payload("exchange info", e) from e

    async def search_symbols(self, query: str) -> list[SymbolInfo]:
        """Symbols whose pair, base or quote asset contains `query`."""
        needle = query.strip().upper()
        if not needle:
            raise ValidationError(SERVICE_NAME, "Search query must not be empty")

        info = await self.get_exchange_info()
        matches = [
            s
            for s in info.symbols
            if needle in s.symbol or needle in s.baseAsset or needle in s.quoteAsset
        ]
        return matches[: settings.binance_symbol_search_limit]

    async def get_top_symbols_by_volume(self, limit: int = 10) -> list[Ticker24hr]:
        """USDT pairs ranked by 24h quote volume."""
        if limit < 1:
            raise ValidationError(SERVICE_NAME, f"limit must be at least 1, got {limit}")
        limit = min(limit, settings.binance_top_symbols_max)

        data = await self._request("/api/v3/ticker/24hr")
        try:
            tickers = [Ticker24hr.model_validate(item) for item in data]
        except (PydanticValidationError, TypeError) as e:
            raise self._invalid_payload("24hr tickers", e) from e

        usdt = [t for t in tickers if t.symbol.endswith("USDT")]
        usdt.sort(key=lambda t: float(t.quoteVolume), reverse=True)
        return usdt[:limit]

    async def get_klines(
        self,
        symbol: str,
        interval: Interval = Interval.D1,
        limit: int = 500,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> list[Kline]:
        """
        Raw candles, oldest first.

        Args:
            symbol: Trading pair (e.g., 'BTCUSDT')
            interval: Candle interval
            limit: Candles to request, capped at the provider maximum
            start_time: Open time lower bound in ms
            end_time: Open time upper bound in ms
        """
        if limit < 1:
            raise ValidationError(SERVICE_NAME, f"limit must be at least 1, got {limit}")
        try:
            interval = Interval(interval)
        except ValueError as e:
            raise ValidationError(SERVICE_NAME, f"Unsupported interval: {interval}") from e

        params: dict[str, Any] = {
            "symbol": symbol.upper(),
            "interval": interval.value,
            "limit": min(limit, settings.binance_max_limit),
        }
        if start_time is not None:
            params["startTime"] = start_time
        if end_time is not None:
            params["endTime"] = end_time

        data = await self._request("/api/v3/klines", params)
        if not isinstance(data, list):
            raise self._invalid_payload("klines", TypeError(type(data).__name__))
        try:
            return [Kline.from_row(row) for row in data]
        except (PydanticValidationError, ValueError) as e:
            raise self._invalid_payload("klines", e) from e


# Singleton instance
_client: Optional[BinanceClient] = None


def get_binance_client() -> BinanceClient:
    """Get or create Binance client instance."""
    global _client
    if _client is None:
        _client = BinanceClient()
    return _client
