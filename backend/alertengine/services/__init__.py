"""
Service layer for the alert engine.

Exports all service classes that handle business logic and database access.
"""

from alertengine.services.action_service import ActionService
from alertengine.services.alert_service import AlertService
from alertengine.services.score_service import ScoreService
from alertengine.services.strategy_service import StrategyService
from alertengine.services.ticker_indicator_service import TickerIndicatorService
from alertengine.services.weight_service import WeightService

__all__ = [
    "ActionService",
    "AlertService",
    "ScoreService",
    "StrategyService",
    "TickerIndicatorService",
    "WeightService",
]
