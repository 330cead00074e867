"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_name: str = "Crypto TA Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS (Frontend URL)
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Binance public REST API
    binance_base_url: str = "https://api.binance.com"
    binance_timeout_seconds: float = 10.0
    binance_max_limit: int = 1000  # Provider cap per klines request
    binance_request_pause: float = 0.1  # Seconds between paginated requests
    binance_symbol_search_limit: int = 20
    binance_top_symbols_max: int = 50

    # Market data defaults
    default_interval: str = "1d"
    default_limit: int = 500
    max_history_years: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
