"""
PURPOSE: Export configuration settings and constants for the alert engine.

This module centralizes access to all configuration settings and constants
used throughout the alert engine.
"""

from .constants import (
    DEFAULT_ALERT_WEIGHTS,
    DEFAULT_INDICATOR_ALIASES,
    EXTREME_FAMILY,
    ActionType,
    EvaluationState,
    EventType,
    GroupOperator,
)
from .settings import settings

__all__ = [
    "settings",
    "ActionType",
    "EvaluationState",
    "EventType",
    "GroupOperator",
    "DEFAULT_ALERT_WEIGHTS",
    "DEFAULT_INDICATOR_ALIASES",
    "EXTREME_FAMILY",
]
