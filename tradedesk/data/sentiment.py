"""
Keyword-count sentiment for news headlines.
"""

from typing import Tuple

from .models import Sentiment

POSITIVE_WORDS: Tuple[str, ...] = (
    "gain", "rise", "growth", "strong", "buy",
    "positive", "bullish", "up", "surge", "boost",
)
NEGATIVE_WORDS: Tuple[str, ...] = (
    "fall", "drop", "loss", "weak", "sell",
    "negative", "bearish", "down", "crash", "decline",
)


def analyze_sentiment(text: str) -> Sentiment:
    """
    Classify text by counting keyword hits.

    Each keyword counts once if it appears anywhere in the lower-cased text
    (substring match). Ties, including no hits, are neutral.
    """
    lowered = (text or "").lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)

    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL
