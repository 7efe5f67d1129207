"""
Redis-backed event bus for the alert engine.

Publishes ingestion and action events to a Redis channel when REDIS_URL is
configured, and always invokes locally registered handlers.
"""

from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from alertengine.events.types import EventPayload
from alertengine.utils.logger import get_logger

EventHandler = Callable[[EventPayload], Awaitable[None]]


class EventBus:
    """
    Redis pub/sub event bus with local handler registration.

    PURPOSE: Let dashboards and other processes follow alerts and actions
    without coupling them to the evaluation path. Publishing never raises.

    CALLED BY: Webhook routes (ALERT_INGESTED), ActionDispatcher
    (ACTION_SUPPRESSED), NotificationHub (ACTION_RECORDED).

    Attributes:
        CHANNEL: Redis channel name for all events.
        _redis: Async Redis client, None when Redis is not configured or down.
        _redis_url: Redis connection URL, empty to disable Redis.
        _handlers: Local handlers by event type.
    """

    CHANNEL: str = "alertengine:events"

    def __init__(self, redis_url: str = "") -> None:
        self._redis_url: str = redis_url
        self._redis: Optional[redis.Redis] = None
        self._logger = get_logger("events.bus")
        self._handlers: dict[str, list[EventHandler]] = {}

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """
        Establish the Redis connection if a URL is configured.

        A failed connection is logged and the bus keeps working with local
        handlers only.
        """
        if not self._redis_url:
            self._logger.info("redis_disabled")
            return
        try:
            client = redis.from_url(self._redis_url, decode_responses=True)
            await client.ping()
            self._redis = client
            self._logger.info("redis_connected", redis_url=self._redis_url)
        except Exception as e:
            self._logger.error("redis_connection_failed", error=str(e))
            self._redis = None

    async def disconnect(self) -> None:
        if self._redis:
            try:
                await self._redis.aclose()
                self._logger.info("redis_disconnected")
            except Exception as e:
                self._logger.error("redis_disconnection_failed", error=str(e))
            self._redis = None

    async def publish(
        self,
        event_type: str,
        data: dict,
        source: str = "unknown",
        severity: str = "INFO",
    ) -> None:
        """
        Publish an event to Redis and invoke local handlers.

        Args:
            event_type: Type of event being published.
            data: Event payload dictionary (JSON-serializable).
            source: Component originating the event.
            severity: INFO, WARNING, ERROR or CRITICAL.
        """
        payload = EventPayload(event_type=event_type, source=source, data=data, severity=severity)

        if self._redis:
            try:
                await self._redis.publish(self.CHANNEL, payload.model_dump_json())
                self._logger.debug(
                    "event_published",
                    event_type=event_type,
                    source=source,
                    correlation_id=payload.correlation_id,
                )
            except Exception as e:
                self._logger.error("redis_publish_failed", event_type=event_type, error=str(e))

        for handler in self._handlers.get(event_type, []):
            try:
                await handler(payload)
            except Exception as e:
                self._logger.error(
                    "handler_error",
                    event_type=event_type,
                    error=str(e),
                    correlation_id=payload.correlation_id,
                )

    def on(self, event_type: str, handler: EventHandler) -> None:
        """Register an async handler for an event type."""
        self._handlers.setdefault(event_type, []).append(handler)
        self._logger.info("handler_registered", event_type=event_type)


# Global event bus singleton
_bus: Optional[EventBus] = None


def set_event_bus(bus: Optional[EventBus]) -> None:
    """
    Store a connected EventBus as the global singleton.

    CALLED BY: main.py lifespan after connecting, tests.
    """
    global _bus
    _bus = bus


def get_event_bus() -> EventBus:
    """
    Get or create the global EventBus singleton.

    Returns the instance installed by set_event_bus(); otherwise creates an
    unconnected one from settings.
    """
    global _bus
    if _bus is None:
        from alertengine.config.settings import settings
        _bus = EventBus(settings.REDIS_URL)
    return _bus
