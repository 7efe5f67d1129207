"""
Alert-related Pydantic schemas for the alert engine API.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AlertResponse(BaseModel):
    """
    Stored alert as returned by the API.

    Attributes:
        id: Alert identifier
        ticker: Upper-cased ticker
        timeframe: Chart timeframe string, if sent
        indicator: Canonical indicator name
        trigger: Trigger name
        weight: Weight attached at ingestion (None when unconfigured)
        price: Price, if sent
        htf: Higher-timeframe text, if sent
        is_test: Whether the webhook carried the TEST flag
        sub_indicators: Extracted RSI/ADX/VWAP/HTF/volume annotations
        timestamp: Alert time (UTC)
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    ticker: str
    timeframe: Optional[str] = None
    indicator: str
    trigger: str
    weight: Optional[float] = None
    price: Optional[float] = None
    htf: Optional[str] = None
    is_test: bool = False
    sub_indicators: dict[str, Any] = {}
    timestamp: datetime


class AlertList(BaseModel):
    alerts: list[AlertResponse]
    count: int


class AlertCount(BaseModel):
    count: int


class WebhookAccepted(BaseModel):
    """
    Response to an accepted webhook.

    Attributes:
        success: Always True
        alert: The stored alert
        evaluation: "scheduled" once strategy evaluation has been queued
    """

    success: bool = True
    alert: AlertResponse
    evaluation: str = "scheduled"
