"""
Pydantic v2 schemas for the alert engine API.
"""

from .action import ActionList, ActionResponse, LatestAction
from .alert import AlertCount, AlertList, AlertResponse, WebhookAccepted
from .available_alert import AvailableAlertCreate, AvailableAlertResponse, AvailableAlertUpdate
from .score import ScoreSnapshot, StrategyScore
from .strategy import LeafSchema, RuleGroupSchema, StrategyCreate, StrategyResponse, StrategyUpdate
from .system import ConfigReloadResult, HealthCheck, NotificationTestRequest, NotificationTestResult
from .ticker_indicator import TickerIndicatorList, TickerIndicatorResponse

__all__ = [
    "ActionList",
    "ActionResponse",
    "AlertCount",
    "AlertList",
    "AlertResponse",
    "AvailableAlertCreate",
    "AvailableAlertResponse",
    "AvailableAlertUpdate",
    "ConfigReloadResult",
    "HealthCheck",
    "LatestAction",
    "LeafSchema",
    "NotificationTestRequest",
    "NotificationTestResult",
    "RuleGroupSchema",
    "ScoreSnapshot",
    "StrategyCreate",
    "StrategyResponse",
    "StrategyScore",
    "StrategyUpdate",
    "TickerIndicatorList",
    "TickerIndicatorResponse",
    "WebhookAccepted",
]
