"""
Configuration management for TradeDesk.
"""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    # App metadata
    app_name: str = "TradeDesk"
    app_version: str = "0.1.0"
    app_description: str = "Multi-provider market data gateway for the TradeDesk dashboard"

    # Environment
    environment: str = Field(default="production")
    debug: bool = Field(default=False)

    # API settings
    api_prefix: str = "/api/v1"
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"]
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Market Data Provider API Keys
    alpha_vantage_api_key: Optional[str] = Field(default=None)
    finnhub_api_key: Optional[str] = Field(default=None)
    news_api_key: Optional[str] = Field(default=None)

    # Fallback priority per data kind
    quote_providers: List[str] = Field(default=["finnhub", "yahoo", "alpha_vantage"])
    chart_providers: List[str] = Field(default=["yahoo", "alpha_vantage", "finnhub"])
    news_providers: List[str] = Field(default=["news_api", "finnhub"])
    search_providers: List[str] = Field(default=["alpha_vantage", "finnhub"])

    # Cache TTLs in seconds
    quote_cache_ttl: int = Field(default=300)
    chart_cache_ttl: int = Field(default=600)
    news_cache_ttl: int = Field(default=1800)
    search_cache_ttl: int = Field(default=300)

    # provider -> [max_calls, window_seconds]
    rate_limits: Dict[str, List[float]] = Field(
        default={
            "alpha_vantage": [5, 60],
            "yahoo": [100, 60],
            "finnhub": [60, 60],
            "news_api": [100, 86400],
        }
    )

    # Upstream requests
    market_data_timeout: float = Field(default=10.0, description="Request timeout in seconds")
    max_concurrent_requests: int = Field(default=5, description="Per-adapter fan-out limit")

    # Circuit breaker
    market_data_failure_threshold: int = Field(default=5)
    market_data_circuit_breaker_timeout: int = Field(default=900)

    # Cache persistence
    cache_backend: str = Field(default="file", description="file, redis or memory")
    cache_snapshot_dir: str = Field(default="~/.tradedesk/cache")
    cache_namespace: str = Field(default="market_data_cache")
    cache_persist_probability: float = Field(default=0.1)
    cache_sweep_interval: float = Field(default=300.0)
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Serve expired cache data instead of raising when every provider fails
    stale_fallback: bool = Field(default=False)

    # Exchange session
    exchange_timezone: str = Field(default="Asia/Kolkata")
    market_open_time: str = Field(default="09:15")
    market_close_time: str = Field(default="15:30")

    news_page_size: int = Field(default=5)


@lru_cache()
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
