"""
Per-ticker indicator schemas for the alert engine API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TickerIndicatorResponse(BaseModel):
    """
    Latest sub-indicator readings for one ticker.

    Attributes:
        ticker: Upper-cased ticker
        rsi_value, rsi_status: Last RSI reading and its status (OB/OS/...)
        adx_value, adx_strength, adx_direction: Last ADX reading
        vwap_value: Last VWAP distance in percent
        htf_status: Last higher-timeframe status text
        volume_amount, volume_change, volume_level: Last volume annotation
        last_alert_at: Time of the alert that last changed the readings
        updated_at: Time the row was last written
    """

    model_config = ConfigDict(from_attributes=True)

    ticker: str
    rsi_value: Optional[float] = None
    rsi_status: Optional[str] = None
    adx_value: Optional[float] = None
    adx_strength: Optional[str] = None
    adx_direction: Optional[str] = None
    vwap_value: Optional[float] = None
    htf_status: Optional[str] = None
    volume_amount: Optional[str] = None
    volume_change: Optional[float] = None
    volume_level: Optional[str] = None
    last_alert_at: datetime
    updated_at: datetime


class TickerIndicatorList(BaseModel):
    tickers: list[TickerIndicatorResponse]
    count: int
