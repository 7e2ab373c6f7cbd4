"""Tests for API configuration."""

import os
from unittest.mock import patch

from tradedesk.api.config import Settings, get_settings


class TestSettings:
    """Test Settings configuration."""

    def test_default_settings(self):
        """Test default settings values."""
        settings = Settings(_env_file=None)

        assert settings.app_name == "TradeDesk"
        assert settings.api_prefix == "/api/v1"
        assert settings.environment == "production"
        assert settings.debug is False
        assert settings.log_level == "INFO"

    def test_provider_defaults(self):
        """Test fallback order and rate limits."""
        settings = Settings(_env_file=None)

        assert settings.quote_providers == ["finnhub", "yahoo", "alpha_vantage"]
        assert settings.news_providers == ["news_api", "finnhub"]
        assert settings.rate_limits["alpha_vantage"] == [5, 60]
        assert settings.rate_limits["news_api"] == [100, 86400]
        assert settings.alpha_vantage_api_key is None

    def test_cache_defaults(self):
        """Test cache TTLs and persistence."""
        settings = Settings(_env_file=None)

        assert settings.quote_cache_ttl == 300
        assert settings.chart_cache_ttl == 600
        assert settings.news_cache_ttl == 1800
        assert settings.cache_persist_probability == 0.1
        assert settings.stale_fallback is False

    def test_exchange_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.exchange_timezone == "Asia/Kolkata"
        assert (settings.market_open_time, settings.market_close_time) == ("09:15", "15:30")

    @patch.dict(
        os.environ,
        {
            "ENVIRONMENT": "development",
            "DEBUG": "true",
            "FINNHUB_API_KEY": "fh_key",
            "QUOTE_PROVIDERS": '["yahoo", "simulated"]',
            "STALE_FALLBACK": "true",
            "REDIS_URL": "redis://prod-redis:6379/0",
        },
    )
    def test_settings_from_environment(self):
        """Test loading settings from environment variables."""
        settings = Settings(_env_file=None)

        assert settings.environment == "development"
        assert settings.debug is True
        assert settings.finnhub_api_key == "fh_key"
        assert settings.quote_providers == ["yahoo", "simulated"]
        assert settings.stale_fallback is True
        assert settings.redis_url == "redis://prod-redis:6379/0"

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
