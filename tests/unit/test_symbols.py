"""Tests for symbol handling and keyword sentiment."""

import pytest

from tradedesk.data.models import Sentiment
from tradedesk.data.sentiment import analyze_sentiment
from tradedesk.data.symbols import (
    add_exchange_suffix,
    company_name,
    normalize_symbols,
    sanitize_query,
    search_catalog,
    strip_exchange_suffix,
    validate_symbol,
)


class TestSymbols:
    def test_validate_symbol_normalizes(self):
        assert validate_symbol(" tcs ") == "TCS"
        assert validate_symbol("m&m") == "M&M"
        assert validate_symbol("bajaj-auto") == "BAJAJ-AUTO"

    @pytest.mark.parametrize("bad", ["", "TCS;DROP", "<script>", "A" * 16, "TCS.NS"])
    def test_validate_symbol_rejects(self, bad):
        with pytest.raises(ValueError):
            validate_symbol(bad)

    def test_normalize_symbols_dedupes_in_order(self):
        assert normalize_symbols(["tcs", "INFY", "TCS", "infy", "wipro"]) == ["TCS", "INFY", "WIPRO"]

    def test_sanitize_query(self):
        assert sanitize_query("  <b>Reliance</b>; ") == "bReliance/b"
        assert sanitize_query(None) == ""

    def test_exchange_suffix_only_for_indian_symbols(self):
        assert add_exchange_suffix("TCS", ".NS") == "TCS.NS"
        assert add_exchange_suffix("TCS", ".BSE") == "TCS.BSE"
        assert add_exchange_suffix("AAPL", ".NS") == "AAPL"

    def test_strip_exchange_suffix(self):
        assert strip_exchange_suffix("TCS.NS") == "TCS"
        assert strip_exchange_suffix("reliance.bse") == "RELIANCE"
        assert strip_exchange_suffix("AAPL") == "AAPL"

    def test_company_name(self):
        assert company_name("tcs") == "Tata Consultancy Services"
        assert company_name("XYZ") == "XYZ"

    def test_search_catalog_by_symbol_and_name(self):
        assert search_catalog("TCS") == ["TCS"]
        assert "HDFCBANK" in search_catalog("bank")
        assert search_catalog("apple") == ["AAPL"]

    def test_search_catalog_limit(self):
        assert len(search_catalog("l", limit=3)) == 3
        assert search_catalog("") == []


class TestSentiment:
    def test_positive(self):
        assert analyze_sentiment("Shares surge on strong growth") is Sentiment.POSITIVE

    def test_negative(self):
        assert analyze_sentiment("Stock crash deepens losses") is Sentiment.NEGATIVE

    def test_tie_is_neutral(self):
        assert analyze_sentiment("Gains offset by a drop") is Sentiment.NEUTRAL
        assert analyze_sentiment("Board meeting scheduled") is Sentiment.NEUTRAL

    def test_substring_matching(self):
        # "update" contains "up"
        assert analyze_sentiment("Quarterly update") is Sentiment.POSITIVE
