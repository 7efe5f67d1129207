"""
Schemas for the available-alert weight catalogue.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AvailableAlertCreate(BaseModel):
    """
    Attributes:
        indicator: Indicator name (stored canonical)
        trigger: Trigger name
        weight: Signed contribution to strategy scores
        enabled: Whether the pair is offered to strategy authors
        tooltip: Optional help text
    """

    indicator: str = Field(..., min_length=1, max_length=100)
    trigger: str = Field(..., min_length=1, max_length=255)
    weight: float = 0.0
    enabled: bool = True
    tooltip: Optional[str] = None


class AvailableAlertUpdate(BaseModel):
    weight: Optional[float] = None
    enabled: Optional[bool] = None
    tooltip: Optional[str] = None


class AvailableAlertResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    indicator: str
    trigger: str
    weight: float
    enabled: bool
    tooltip: Optional[str] = None
    created_at: datetime
    updated_at: datetime
