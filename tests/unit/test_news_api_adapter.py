"""Tests for NewsAPI adapter."""

from unittest.mock import AsyncMock, patch

import pytest

from tradedesk.data.models import (
    ProviderAuthError,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderUnavailable,
    Sentiment,
)
from tradedesk.providers.news_api import NewsApiAdapter


@pytest.fixture
def adapter():
    return NewsApiAdapter(api_key="news_key", page_size=10)


@pytest.fixture
def articles_payload():
    return {
        "status": "ok",
        "totalResults": 3,
        "articles": [
            {
                "source": {"id": None, "name": "Economic Times"},
                "title": "TCS shares surge after strong Q3 results",
                "description": "Tata Consultancy Services posted growth in profit.",
                "url": "https://example.com/tcs-q3",
                "urlToImage": "https://example.com/tcs.jpg",
                "publishedAt": "2024-01-11T12:30:00Z",
            },
            {
                "source": {"name": "Mint"},
                "title": "TCS stock falls on weak guidance",
                "description": None,
                "url": "https://example.com/tcs-weak",
                "publishedAt": "2024-01-10T08:00:00Z",
            },
            {
                "source": {"name": "Reuters"},
                "title": "Analysts sell TCS as margins decline",
                "description": "Brokerages turn bearish.",
                "url": "https://example.com/tcs-sell",
                "publishedAt": "2024-01-09T08:00:00Z",
            },
        ],
    }


class TestNewsApiAdapter:
    @pytest.mark.asyncio
    async def test_fetch_news(self, adapter, articles_payload):
        with patch.object(adapter, "_get_json", AsyncMock(return_value=articles_payload)) as mock_get:
            items = await adapter.fetch_news('TCS OR "Tata Consultancy Services"', symbol="TCS")

        assert [item.source for item in items] == ["Economic Times", "Reuters"]
        assert items[0].sentiment is Sentiment.POSITIVE
        assert items[1].sentiment is Sentiment.NEGATIVE
        assert items[0].image_url == "https://example.com/tcs.jpg"

        params = mock_get.call_args.kwargs["params"]
        assert params["q"].startswith('TCS OR "Tata Consultancy Services"')
        assert params["language"] == "en"
        assert params["sortBy"] == "publishedAt"
        assert params["pageSize"] == 10
        assert params["apiKey"] == "news_key"

    @pytest.mark.asyncio
    async def test_removed_articles_are_dropped(self, adapter, articles_payload):
        articles_payload["articles"].insert(
            0,
            {
                "source": {"id": None, "name": "[Removed]"},
                "title": "[Removed]",
                "description": "[Removed]",
                "url": "https://removed.com",
                "publishedAt": "2024-01-11T13:00:00Z",
            },
        )
        with patch.object(adapter, "_get_json", AsyncMock(return_value=articles_payload)):
            items = await adapter.fetch_news("TCS", symbol="TCS")

        assert "https://removed.com" not in [item.url for item in items]
        assert [item.source for item in items] == ["Economic Times", "Reuters"]

    @pytest.mark.asyncio
    async def test_empty_articles(self, adapter):
        payload = {"status": "ok", "totalResults": 0, "articles": []}
        with patch.object(adapter, "_get_json", AsyncMock(return_value=payload)):
            assert await adapter.fetch_news("TCS") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,error",
        [
            ("apiKeyInvalid", ProviderAuthError),
            ("apiKeyMissing", ProviderAuthError),
            ("rateLimited", ProviderRateLimited),
            ("unexpectedError", ProviderUnavailable),
        ],
    )
    async def test_error_status(self, adapter, code, error):
        payload = {"status": "error", "code": code, "message": "Something went wrong"}
        with patch.object(adapter, "_get_json", AsyncMock(return_value=payload)):
            with pytest.raises(error):
                await adapter.fetch_news("TCS")

    @pytest.mark.asyncio
    async def test_missing_articles_is_malformed(self, adapter):
        with patch.object(adapter, "_get_json", AsyncMock(return_value={"status": "ok"})):
            with pytest.raises(ProviderMalformedResponse):
                await adapter.fetch_news("TCS")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(ProviderAuthError):
            await NewsApiAdapter(api_key=None).fetch_news("TCS")
