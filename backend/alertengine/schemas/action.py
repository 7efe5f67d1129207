"""
Action-related Pydantic schemas for the alert engine API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActionResponse(BaseModel):
    """
    Recorded action.

    Attributes:
        id: Action identifier
        strategy_id: Strategy that fired
        strategy_name: Strategy name at the time it fired
        ticker: Ticker
        action: BUY or SELL
        score: Score rounded to one decimal
        matched_alerts: Matched leaf names
        missing_alerts: Leaves that were not matched (OR groups)
        is_test: Whether the triggering webhook was a test
        timestamp: When the action was recorded (UTC)
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    strategy_id: str
    strategy_name: str
    ticker: str
    action: str
    score: float
    matched_alerts: list[str]
    missing_alerts: list[str] = []
    is_test: bool = False
    timestamp: datetime


class ActionList(BaseModel):
    actions: list[ActionResponse]
    count: int


class LatestAction(BaseModel):
    action: Optional[ActionResponse] = None
