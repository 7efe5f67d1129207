"""
Event bus module for the alert engine.

Exports EventBus, EventPayload and the singleton accessors.
"""

from alertengine.events.bus import EventBus, get_event_bus, set_event_bus
from alertengine.events.types import EventPayload

__all__ = [
    "EventBus",
    "EventPayload",
    "get_event_bus",
    "set_event_bus",
]
