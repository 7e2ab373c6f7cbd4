"""
Finnhub adapter implementation.
"""

import logging
import time
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from ..data.models import (
    ChartPoint,
    NewsItem,
    ProviderId,
    ProviderMalformedResponse,
    ProviderUnsupported,
    Quote,
    SymbolMatch,
)
from ..data.symbols import add_exchange_suffix, strip_exchange_suffix
from .base import HttpProviderAdapter, build_news_item, build_quote, build_series

logger = logging.getLogger(__name__)


class FinnhubAdapter(HttpProviderAdapter):
    """Quotes, candles, company news and symbol search from Finnhub."""

    provider_id = ProviderId.FINNHUB
    max_batch_size = 10

    BASE_URL = "https://finnhub.io/api/v1"

    EXCHANGE_SUFFIX = ".NS"

    RESOLUTIONS = {
        "1m": "1",
        "5m": "5",
        "15m": "15",
        "30m": "30",
        "60m": "60",
        "1h": "60",
        "1d": "D",
        "1wk": "W",
        "1mo": "M",
    }

    RANGE_DAYS = {
        "1d": 1,
        "5d": 5,
        "1mo": 30,
        "3mo": 90,
        "6mo": 182,
        "1y": 365,
        "2y": 730,
        "5y": 1826,
    }

    NEWS_LOOKBACK_DAYS = 7

    def to_provider_symbol(self, symbol: str) -> str:
        return add_exchange_suffix(symbol, self.EXCHANGE_SUFFIX)

    async def _call(self, path: str, params: Dict[str, Any], symbols: Optional[List[str]] = None) -> Any:
        token = self._require_key(symbols)
        return await self._get_json(f"{self.BASE_URL}{path}", params={**params, "token": token})

    async def _fetch_quote(self, symbol: str) -> Quote:
        """Fetch /quote; Finnhub answers unknown symbols with all-zero fields."""
        data = await self._call("/quote", {"symbol": self.to_provider_symbol(symbol)}, [symbol])
        if not isinstance(data, dict) or not data.get("c"):
            raise ProviderMalformedResponse(self.provider_id, f"No current price for {symbol}", [symbol])

        # The quote endpoint carries no volume.
        return build_quote(
            self.provider_id,
            symbol,
            price=data.get("c"),
            previous_close=data.get("pc"),
            open_=data.get("o"),
            high=data.get("h"),
            low=data.get("l"),
            volume=0,
        )

    async def fetch_chart(self, symbol: str, interval: str, range_: str) -> List[ChartPoint]:
        """Fetch /stock/candle for the trailing range."""
        resolution = self.RESOLUTIONS.get(interval)
        if resolution is None:
            raise ProviderUnsupported(self.provider_id, f"Unsupported interval: {interval}", [symbol])
        days = self.RANGE_DAYS.get(range_)
        if days is None:
            raise ProviderUnsupported(self.provider_id, f"Unsupported range: {range_}", [symbol])

        now = int(time.time())
        data = await self._call(
            "/stock/candle",
            {
                "symbol": self.to_provider_symbol(symbol),
                "resolution": resolution,
                "from": now - days * 86400,
                "to": now,
            },
            [symbol],
        )

        if not isinstance(data, dict) or data.get("s") != "ok":
            raise ProviderMalformedResponse(self.provider_id, f"No candle data for {symbol}", [symbol])

        timestamps = data.get("t") or []
        columns = [data.get(k) or [] for k in ("o", "h", "l", "c", "v")]
        if any(len(column) != len(timestamps) for column in columns[:4]):
            raise ProviderMalformedResponse(self.provider_id, f"Ragged candle arrays for {symbol}", [symbol])

        volumes = columns[4] if len(columns[4]) == len(timestamps) else [0] * len(timestamps)
        bars = (
            (ts * 1000, o, h, l, c, v)
            for ts, o, h, l, c, v in zip(timestamps, columns[0], columns[1], columns[2], columns[3], volumes)
        )
        return build_series(self.provider_id, symbol, bars)

    async def fetch_news(self, query: str, symbol: Optional[str] = None) -> List[NewsItem]:
        """Fetch /company-news for the last week; needs a symbol, not free text."""
        if not symbol:
            raise ProviderUnsupported(self.provider_id, "Company news requires a symbol")

        today = date.today()
        data = await self._call(
            "/company-news",
            {
                "symbol": self.to_provider_symbol(symbol),
                "from": (today - timedelta(days=self.NEWS_LOOKBACK_DAYS)).isoformat(),
                "to": today.isoformat(),
            },
            [symbol],
        )
        if not isinstance(data, list):
            raise ProviderMalformedResponse(self.provider_id, f"Unexpected news payload for {symbol}", [symbol])

        items = []
        for article in data:
            if not isinstance(article, dict):
                continue
            item = build_news_item(
                title=article.get("headline"),
                description=article.get("summary"),
                url=article.get("url"),
                source=article.get("source"),
                published_at=article.get("datetime"),
                image_url=article.get("image"),
            )
            if item is not None:
                items.append(item)
        return items

    async def search(self, query: str) -> List[SymbolMatch]:
        data = await self._call("/search", {"q": query})
        if not isinstance(data, dict) or not isinstance(data.get("result"), list):
            raise ProviderMalformedResponse(self.provider_id, "Search response missing result")

        matches: Dict[str, SymbolMatch] = {}
        for hit in data["result"]:
            if not isinstance(hit, dict) or not hit.get("symbol"):
                continue
            symbol = strip_exchange_suffix(hit["symbol"])
            matches.setdefault(
                symbol,
                SymbolMatch(symbol=symbol, name=hit.get("description") or symbol, type=hit.get("type")),
            )
        return list(matches.values())
