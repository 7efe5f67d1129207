"""
Event payload types for the alert engine event bus.

Defines EventPayload, the envelope for ingestion and action events.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class EventPayload(BaseModel):
    """
    Standardized payload for every event published on the bus.

    PURPOSE: Give dashboards and downstream consumers one envelope shape.
    USED BY: EventBus.publish and local handlers.

    Attributes:
        event_type: ALERT_INGESTED, ACTION_RECORDED or ACTION_SUPPRESSED.
        source: Component that originated the event.
        data: Event-specific payload.
        timestamp: When the event was created (UTC).
        correlation_id: Unique ID for tracing.
        severity: INFO, WARNING, ERROR or CRITICAL.
    """

    event_type: str = Field(..., description="Type identifier for the event")
    source: str = Field(..., description="Component that generated this event")
    data: dict = Field(default_factory=dict, description="Event-specific payload data")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when event was created",
    )
    correlation_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique correlation ID for tracing",
    )
    severity: str = Field(default="INFO", description="Severity level")
