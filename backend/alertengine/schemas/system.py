"""
System-level Pydantic schemas for the alert engine API.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator


class HealthCheck(BaseModel):
    """
    System health check response.

    Attributes:
        status: healthy or degraded
        services: Service name to status
        version: Current version
        uptime_seconds: Process uptime in seconds
    """

    model_config = ConfigDict(from_attributes=True)

    status: str
    services: dict[str, str]
    version: str
    uptime_seconds: float

    @field_validator('uptime_seconds')
    @classmethod
    def validate_uptime(cls, v: float) -> float:
        """Validate uptime is non-negative."""
        if v < 0:
            raise ValueError('uptime_seconds must be non-negative')
        return v


class ConfigReloadResult(BaseModel):
    version: int
    weights: int
    aliases: int


class NotificationTestRequest(BaseModel):
    action: Literal["BUY", "SELL"] = "BUY"


class NotificationTestResult(BaseModel):
    """
    Per-channel outcome of a test notification.

    Attributes:
        success: True when every configured channel accepted the message
        results: Channel name to "sent" or the error text
    """

    success: bool
    results: dict[str, str]
