"""
NewsAPI adapter implementation.
"""

import logging
from typing import Any, Dict, List, Optional

from ..data.models import (
    NewsItem,
    ProviderAuthError,
    ProviderId,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderUnavailable,
)
from .base import HttpProviderAdapter, build_news_item

logger = logging.getLogger(__name__)


class NewsApiAdapter(HttpProviderAdapter):
    """Headline search via newsapi.org ``/v2/everything``."""

    provider_id = ProviderId.NEWS_API

    BASE_URL = "https://newsapi.org/v2/everything"

    AUTH_ERROR_CODES = {"apiKeyDisabled", "apiKeyExhausted", "apiKeyInvalid", "apiKeyMissing"}
    RATE_LIMIT_CODES = {"rateLimited"}

    def __init__(self, api_key: Optional[str] = None, page_size: int = 10, **kwargs):
        super().__init__(api_key=api_key, **kwargs)
        self.page_size = page_size

    def _check_status(self, data: Dict[str, Any]) -> None:
        if data.get("status") == "ok":
            return
        code = data.get("code", "")
        message = data.get("message") or f"News API error: {code or 'unknown'}"
        if code in self.AUTH_ERROR_CODES:
            raise ProviderAuthError(self.provider_id, message)
        if code in self.RATE_LIMIT_CODES:
            raise ProviderRateLimited(self.provider_id, message)
        raise ProviderUnavailable(self.provider_id, message)

    async def fetch_news(self, query: str, symbol: Optional[str] = None) -> List[NewsItem]:
        """
        Search recent English articles for a query.

        Args:
            query: Free-text search such as ``TCS OR "Tata Consultancy Services"``
            symbol: Unused; NewsAPI searches text only

        Returns:
            Articles that carry both a title and a description
        """
        api_key = self._require_key()
        data = await self._get_json(
            self.BASE_URL,
            params={
                "q": f"{query} AND (stock OR shares OR trading OR market)",
                "language": "en",
                "sortBy": "publishedAt",
                "pageSize": self.page_size,
                "apiKey": api_key,
            },
        )
        if not isinstance(data, dict):
            raise ProviderMalformedResponse(self.provider_id, "Response is not a JSON object")
        self._check_status(data)

        articles = data.get("articles")
        if not isinstance(articles, list):
            raise ProviderMalformedResponse(self.provider_id, "Response missing articles")

        items = []
        for article in articles:
            if not isinstance(article, dict):
                continue
            item = build_news_item(
                title=article.get("title"),
                description=article.get("description"),
                url=article.get("url"),
                source=(article.get("source") or {}).get("name"),
                published_at=article.get("publishedAt"),
                image_url=article.get("urlToImage"),
            )
            if item is not None:
                items.append(item)
        return items
