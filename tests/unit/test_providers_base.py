"""Tests for adapter base classes and normalization helpers."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from conftest import FakeAdapter
from tradedesk.data.models import (
    FailureKind,
    ProviderAuthError,
    ProviderId,
    ProviderMalformedResponse,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
    Sentiment,
)
from tradedesk.providers.base import build_news_item, build_quote, build_series, parse_timestamp
from tradedesk.providers.finnhub import FinnhubAdapter


class TestBuildQuote:
    """Test quote normalization."""

    def test_change_derived_from_previous_close(self):
        quote = build_quote(ProviderId.YAHOO, "TCS.NS", price="3550.456", previous_close=3500, volume="12345.0")

        assert quote.symbol == "TCS"
        assert quote.name == "Tata Consultancy Services"
        assert quote.price == 3550.46
        assert quote.change == 50.46
        assert quote.change_percent == 1.44
        assert quote.volume == 12345
        assert quote.source is ProviderId.YAHOO

    def test_missing_day_range_falls_back_to_price(self):
        quote = build_quote(ProviderId.FINNHUB, "AAPL", price=190, previous_close=188)

        assert quote.open == quote.high == quote.low == 190

    @pytest.mark.parametrize("price", [None, "", 0, -1, "abc", float("nan")])
    def test_missing_price_is_malformed(self, price):
        with pytest.raises(ProviderMalformedResponse):
            build_quote(ProviderId.YAHOO, "TCS", price=price, previous_close=100)

    def test_missing_previous_close_is_malformed(self):
        with pytest.raises(ProviderMalformedResponse):
            build_quote(ProviderId.YAHOO, "TCS", price=100, previous_close=None)


class TestBuildSeries:
    """Test chart series normalization."""

    def test_sorted_and_deduplicated(self):
        bars = [
            (3000, 10, 12, 9, 11, 100),
            (1000, 10, 12, 9, 11, 100),
            (2000, 10, 12, 9, 11, 100),
            (1000, 10, 13, 9, 12, 200),
        ]

        points = build_series(ProviderId.YAHOO, "TCS", bars)

        assert [p.timestamp for p in points] == [1000, 2000, 3000]
        assert points[0].close == 12

    def test_invalid_bars_skipped(self):
        bars = [
            (1000, None, 12, 9, 11, 100),
            (2000, 10, 9, 8, 11, 100),  # high below close
            (3000, 10, 12, 9, 11, None),
        ]

        points = build_series(ProviderId.YAHOO, "TCS", bars)

        assert [p.timestamp for p in points] == [3000]
        assert points[0].volume == 0

    def test_no_valid_bar_is_malformed(self):
        with pytest.raises(ProviderMalformedResponse):
            build_series(ProviderId.YAHOO, "TCS", [(1000, None, None, None, None, None)])


class TestBuildNewsItem:
    def test_requires_title_and_description(self):
        assert build_news_item("", "desc", "u", "s", "2024-01-09T10:00:00Z") is None
        assert build_news_item("title", None, "u", "s", "2024-01-09T10:00:00Z") is None

    def test_sentiment_and_timestamp(self):
        item = build_news_item("TCS profit rise", "Strong quarter", "u", None, "2024-01-09T10:00:00Z")

        assert item.sentiment is Sentiment.POSITIVE
        assert item.source == "Unknown"
        assert item.published_at.isoformat() == "2024-01-09T10:00:00+00:00"

    def test_parse_timestamp_epoch(self):
        assert parse_timestamp(0).year == 1970
        assert parse_timestamp("not a date") is None


class TestFetchQuotes:
    """Test per-symbol isolation in batch fetches."""

    @pytest.mark.asyncio
    async def test_partial_batch(self):
        adapter = FakeAdapter(quotes={"TCS": 101.0, "INFY": ProviderTimeout("yahoo", "slow", ["INFY"])})

        result = await adapter.fetch_quotes(["TCS", "INFY", "WIPRO"])

        assert [q.symbol for q in result.items] == ["TCS"]
        kinds = {f.symbols[0]: f.kind for f in result.failures}
        assert kinds == {"INFY": FailureKind.TIMEOUT, "WIPRO": FailureKind.MALFORMED}

    @pytest.mark.asyncio
    async def test_all_failed_same_way_raises_that_kind(self):
        adapter = FakeAdapter(quotes={})

        with pytest.raises(ProviderMalformedResponse) as exc_info:
            await adapter.fetch_quotes(["TCS", "INFY"])
        assert exc_info.value.symbols == ["TCS", "INFY"]

    @pytest.mark.asyncio
    async def test_all_failed_mixed_raises_unavailable(self):
        adapter = FakeAdapter(quotes={"TCS": ProviderTimeout("yahoo", "slow")})

        with pytest.raises(ProviderUnavailable):
            await adapter.fetch_quotes(["TCS", "INFY"])

    @pytest.mark.asyncio
    async def test_unexpected_exception_isolated(self):
        adapter = FakeAdapter(quotes={"TCS": 101.0, "INFY": KeyError("boom")})

        result = await adapter.fetch_quotes(["TCS", "INFY"])

        assert result.failures[0].kind is FailureKind.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        result = await FakeAdapter().fetch_quotes([])
        assert result.items == [] and result.failures == []


def _session_returning(status=200, payload=None, json_error=None):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload, side_effect=json_error)
    session = MagicMock()
    session.get.return_value.__aenter__ = AsyncMock(return_value=response)
    session.get.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


class TestHttpProviderAdapter:
    """Test transport outcome mapping in _get_json."""

    @pytest.mark.asyncio
    async def test_success(self):
        adapter = FinnhubAdapter(api_key="key", session=_session_returning(payload={"c": 1}))
        assert await adapter._get_json("https://example.com") == {"c": 1}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [(401, ProviderAuthError), (403, ProviderAuthError), (429, ProviderRateLimited), (500, ProviderUnavailable)],
    )
    async def test_status_mapping(self, status, error):
        adapter = FinnhubAdapter(api_key="key", session=_session_returning(status=status))

        with pytest.raises(error):
            await adapter._get_json("https://example.com")

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self):
        session = _session_returning(json_error=ValueError("Expecting value"))
        adapter = FinnhubAdapter(api_key="key", session=session)

        with pytest.raises(ProviderMalformedResponse):
            await adapter._get_json("https://example.com")

    @pytest.mark.asyncio
    async def test_timeout(self):
        session = MagicMock()
        session.get.side_effect = asyncio.TimeoutError()
        adapter = FinnhubAdapter(api_key="key", session=session)

        with pytest.raises(ProviderTimeout):
            await adapter._get_json("https://example.com")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = MagicMock()
        session.get.side_effect = aiohttp.ClientConnectionError("refused")
        adapter = FinnhubAdapter(api_key="key", session=session)

        with pytest.raises(ProviderUnavailable):
            await adapter._get_json("https://example.com")

    def test_is_configured(self):
        assert FinnhubAdapter(api_key="key").is_configured()
        assert not FinnhubAdapter(api_key=None).is_configured()
        assert not FinnhubAdapter(api_key="demo").is_configured()

    @pytest.mark.asyncio
    async def test_stop_closes_owned_session_only(self):
        shared = MagicMock()
        shared.close = AsyncMock()
        adapter = FinnhubAdapter(api_key="key", session=shared)

        await adapter.start()
        await adapter.stop()

        shared.close.assert_not_called()
