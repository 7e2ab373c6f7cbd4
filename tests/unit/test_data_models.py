"""Tests for data models."""

from datetime import datetime, timezone

import pytest

from tradedesk.data.models import (
    ChartPoint,
    FailureKind,
    NewsItem,
    ProviderAuthError,
    ProviderFailure,
    ProviderId,
    ProviderTimeout,
    Quote,
    RequestSuperseded,
    Sentiment,
    TotalFailure,
)


def _quote(**overrides):
    fields = dict(
        symbol="tcs",
        name="Tata Consultancy Services",
        price=3550.0,
        change=50.0,
        change_percent=1.43,
        open=3500.0,
        high=3560.0,
        low=3490.0,
        previous_close=3500.0,
        volume=1_000_000,
        source=ProviderId.YAHOO,
    )
    fields.update(overrides)
    return Quote(**fields)


class TestQuote:
    """Test Quote class."""

    def test_symbol_is_upper_cased(self):
        assert _quote().symbol == "TCS"

    def test_source_coerced_from_string(self):
        assert _quote(source="finnhub").source is ProviderId.FINNHUB

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="Price cannot be negative"):
            _quote(price=-1.0)

    def test_negative_volume_rejected(self):
        with pytest.raises(ValueError, match="Volume cannot be negative"):
            _quote(volume=-5)

    def test_inconsistent_change_percent_rejected(self):
        with pytest.raises(ValueError, match="inconsistent"):
            _quote(change_percent=2.5)

    def test_change_percent_within_tolerance(self):
        quote = _quote(change_percent=1.435)
        assert abs(quote.change_percent - quote.change / quote.previous_close * 100) < 0.01

    def test_empty_symbol_rejected(self):
        with pytest.raises(ValueError):
            _quote(symbol="  ")

    def test_dict_round_trip(self):
        quote = _quote(last_updated=datetime(2024, 1, 9, 10, 0, tzinfo=timezone.utc))

        data = quote.to_dict()
        assert data["source"] == "yahoo"
        assert data["last_updated"] == "2024-01-09T10:00:00+00:00"
        assert Quote.from_dict(data) == quote


class TestChartPoint:
    """Test ChartPoint class."""

    def test_valid_point(self):
        point = ChartPoint(timestamp=1704787200000, open=100, high=105, low=99, close=104, volume=10)
        assert point.to_dict()["timestamp"] == 1704787200000

    def test_high_below_close_rejected(self):
        with pytest.raises(ValueError, match="High price"):
            ChartPoint(timestamp=1, open=100, high=101, low=99, close=102)

    def test_low_above_open_rejected(self):
        with pytest.raises(ValueError, match="Low price"):
            ChartPoint(timestamp=1, open=100, high=105, low=101, close=102)


class TestNewsItem:
    def test_round_trip_keeps_sentiment(self):
        item = NewsItem(
            title="TCS shares surge",
            description="Strong results",
            url="https://example.com/a",
            source="Example",
            published_at=datetime(2024, 1, 9, tzinfo=timezone.utc),
            sentiment=Sentiment.POSITIVE,
        )

        data = item.to_dict()
        assert data["sentiment"] == "positive"
        assert NewsItem.from_dict(data) == item


class TestErrors:
    """Test provider error types."""

    def test_provider_error_to_failure(self):
        error = ProviderAuthError(ProviderId.ALPHA_VANTAGE, "API key not configured", ["TCS"])

        failure = error.to_failure()

        assert failure == ProviderFailure("alpha_vantage", FailureKind.AUTH, "API key not configured", ["TCS"])

    def test_to_failure_overrides_symbols(self):
        error = ProviderTimeout("yahoo", "timed out", ["TCS"])

        assert error.to_failure(["TCS", "INFY"]).symbols == ["TCS", "INFY"]
        assert error.to_failure().kind is FailureKind.TIMEOUT

    def test_total_failure_lists_providers(self):
        errors = [
            ProviderFailure("yahoo", FailureKind.TIMEOUT, "timed out", ["TCS"]),
            ProviderFailure("alpha_vantage", FailureKind.AUTH, "bad key", ["TCS"]),
        ]

        exc = TotalFailure("quotes TCS", errors)

        assert "alpha_vantage, yahoo" in str(exc)
        assert exc.to_dict()["errors"][1]["kind"] == "auth"

    def test_request_superseded(self):
        exc = RequestSuperseded("search", 3, 4)
        assert exc.sequence == 3
        assert exc.latest == 4
