"""Database models for the alert engine.

Import all models here so Alembic can detect them during migration generation.
"""

from alertengine.models.action import Action
from alertengine.models.alert import Alert
from alertengine.models.available_alert import AvailableAlert
from alertengine.models.strategy import Strategy
from alertengine.models.ticker_indicator import TickerIndicator

__all__ = [
    "Action",
    "Alert",
    "AvailableAlert",
    "Strategy",
    "TickerIndicator",
]
