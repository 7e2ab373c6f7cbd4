"""
Exchange session classification.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from ..data.models import MarketStatus, MarketStatusReport

MESSAGES = {
    "weekend": "Market closed (Weekend)",
    MarketStatus.OPEN: "Market is open",
    MarketStatus.PRE_MARKET: "Pre-market hours",
    MarketStatus.CLOSED: "Market closed",
}


def parse_session_time(value: str) -> time:
    """Parse ``HH:MM`` into a time."""
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid session time {value!r}, expected HH:MM") from e


def _next_weekday_open(day: datetime, open_at: time) -> datetime:
    candidate = day + timedelta(days=1)
    while candidate.weekday() >= 5:
        candidate += timedelta(days=1)
    return candidate.replace(hour=open_at.hour, minute=open_at.minute, second=0, microsecond=0)


def classify(local: datetime, open_at: time, close_at: time) -> Tuple[MarketStatus, str, datetime]:
    """
    Classify an exchange-local moment.

    Weekends are closed. The session is inclusive at both ends at minute
    resolution, so 15:30 is still open and 15:31 is closed.

    Returns:
        (status, message, next transition in exchange time)
    """
    today_open = local.replace(hour=open_at.hour, minute=open_at.minute, second=0, microsecond=0)
    today_close = local.replace(hour=close_at.hour, minute=close_at.minute, second=0, microsecond=0)

    if local.weekday() >= 5:
        return MarketStatus.CLOSED, MESSAGES["weekend"], _next_weekday_open(local, open_at)

    minute_of_day = local.hour * 60 + local.minute
    open_minute = open_at.hour * 60 + open_at.minute
    close_minute = close_at.hour * 60 + close_at.minute

    if open_minute <= minute_of_day <= close_minute:
        return MarketStatus.OPEN, MESSAGES[MarketStatus.OPEN], today_close
    if minute_of_day < open_minute:
        return MarketStatus.PRE_MARKET, MESSAGES[MarketStatus.PRE_MARKET], today_open
    return MarketStatus.CLOSED, MESSAGES[MarketStatus.CLOSED], _next_weekday_open(local, open_at)


def get_market_status(
    now: Optional[datetime] = None,
    tz_name: str = "Asia/Kolkata",
    market_open: str = "09:15",
    market_close: str = "15:30",
) -> MarketStatusReport:
    """
    Build a market status report.

    Args:
        now: Moment to classify; naive values are taken as UTC. Defaults to now.
        tz_name: IANA exchange timezone
        market_open: Session open, ``HH:MM`` exchange time
        market_close: Session close, ``HH:MM`` exchange time

    Returns:
        MarketStatusReport in exchange-local time
    """
    tz = ZoneInfo(tz_name)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local = now.astimezone(tz)
    status, message, next_action = classify(
        local, parse_session_time(market_open), parse_session_time(market_close)
    )
    return MarketStatusReport(
        status=status,
        message=message,
        current_time=local,
        market_open=market_open,
        market_close=market_close,
        timezone=tz_name,
        next_action=next_action,
    )
