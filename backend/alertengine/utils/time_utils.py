"""
PURPOSE: Time helpers for alert timestamps and sliding evaluation windows.
The engine works in timezone-aware UTC; the database stores naive UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def get_utc_now() -> datetime:
    """
    PURPOSE: Return the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone info.
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    PURPOSE: Coerce a datetime to aware UTC. Naive values are taken as UTC.

    Args:
        value: Naive or aware datetime.

    Returns:
        datetime: Aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """Convert to the naive UTC form stored in the database."""
    return as_utc(value).replace(tzinfo=None)


def parse_timestamp(raw: str) -> datetime:
    """
    PURPOSE: Parse an explicit alert time from a webhook payload.

    Accepted forms:
        - 13-digit epoch milliseconds ("1718035200000")
        - 10-digit epoch seconds ("1718035200")
        - ISO-8601, with or without offset, "Z" suffix allowed

    Args:
        raw: Time string from the payload.

    Returns:
        datetime: Aware UTC datetime.

    Raises:
        ValueError: If the string is none of the accepted forms.
    """
    text = raw.strip()
    if not text:
        raise ValueError("empty timestamp")

    if text.isdigit():
        if len(text) == 13:
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        if len(text) == 10:
            return datetime.fromtimestamp(int(text), tz=timezone.utc)
        raise ValueError(f"unsupported epoch timestamp: {text}")

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def window_start(now: datetime, timeframe_minutes: int) -> Optional[datetime]:
    """
    PURPOSE: Lower bound of a strategy's sliding window.

    Args:
        now: Evaluation instant.
        timeframe_minutes: Window length; 0 means unbounded.

    Returns:
        datetime | None: now - timeframe, or None for an unbounded window.
    """
    if timeframe_minutes <= 0:
        return None
    return now - timedelta(minutes=timeframe_minutes)
