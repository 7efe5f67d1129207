"""
PURPOSE: Input validation helpers for webhook fields and strategy configuration.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from alertengine.config.constants import GroupOperator


def validate_ticker(ticker: Any, max_length: int = 20) -> bool:
    """
    PURPOSE: Check that a ticker is a non-empty string within the length bound.

    Args:
        ticker: Raw ticker value from a payload.
        max_length: Maximum accepted length.

    Returns:
        bool: True if the ticker is usable.
    """
    if not isinstance(ticker, str):
        return False
    stripped = ticker.strip()
    return 0 < len(stripped) <= max_length


def validate_operator(operator: Any) -> bool:
    """Return True if operator is AND or OR (case-insensitive)."""
    if not isinstance(operator, str):
        return False
    return operator.strip().upper() in {op.value for op in GroupOperator}


def validate_threshold(threshold: Any) -> bool:
    """
    PURPOSE: A threshold must be a finite, non-zero number; its sign picks BUY or SELL.

    Returns:
        bool: True if the threshold is usable.
    """
    try:
        value = Decimal(str(threshold))
    except (InvalidOperation, ValueError, TypeError):
        return False
    return value.is_finite() and value != 0


def validate_timeframe(timeframe_minutes: Any) -> bool:
    """Return True for a non-negative integer minute count (0 = unbounded)."""
    return isinstance(timeframe_minutes, int) and not isinstance(timeframe_minutes, bool) and timeframe_minutes >= 0
