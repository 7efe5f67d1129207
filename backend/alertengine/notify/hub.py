"""
PURPOSE: Fan a recorded action out to every configured channel and the event bus.

Delivery is best effort: a failing channel is logged and the others still
receive the action. Nothing here can undo or alter a recorded action.

CALLED BY:
    - alertengine/engine/dispatcher.py (background task per recorded action)
    - alertengine/api/routes_notifications.py (test send)
"""

import asyncio
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from alertengine.config.constants import ActionType, EventType
from alertengine.config.settings import Settings
from alertengine.engine.records import Action
from alertengine.engine.scoring import display_score
from alertengine.events.bus import EventBus
from alertengine.notify.discord import DiscordChannel
from alertengine.notify.telegram import TelegramChannel
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import get_utc_now

logger = get_logger(__name__)


class Channel(Protocol):
    name: str

    async def send(self, action: Action) -> None: ...


def action_event_data(action: Action) -> dict:
    """JSON-ready summary of an action for event consumers."""
    return {
        "action_id": action.id,
        "strategy_id": action.strategy_id,
        "strategy": action.strategy_name,
        "ticker": action.ticker,
        "action": action.action.value,
        "score": display_score(action.score),
        "matched_alerts": list(action.matched_alerts),
        "timestamp": action.timestamp.isoformat(),
        "is_test": action.is_test,
    }


def sample_action(kind: ActionType = ActionType.BUY) -> Action:
    """A synthetic test action for checking channel configuration. Never persisted."""
    buy = kind is ActionType.BUY
    now = get_utc_now()
    return Action(
        strategy_id="test",
        strategy_name="Buy on discount zone" if buy else "Sell on premium zone",
        ticker="BTC" if buy else "ETH",
        action=kind,
        score=Decimal("4.2") if buy else Decimal("-4.3"),
        timestamp=now,
        anchor_at=now,
        matched_alerts=(
            ("Discount Zone", "Normal Bullish Divergence", "Bullish OB Break")
            if buy
            else ("Premium Zone", "Normal Bearish Divergence", "Bearish OB Break")
        ),
        is_test=True,
    )


class NotificationHub:
    """
    PURPOSE: Implements the engine's Notifier port.

    Attributes:
        _channels: Configured chat channels.
        _events: Event bus receiving ACTION_RECORDED, if any.
    """

    def __init__(
        self,
        channels: Sequence[Channel] = (),
        events: Optional[EventBus] = None,
    ) -> None:
        self._channels = list(channels)
        self._events = events

    @classmethod
    def from_settings(cls, settings: Settings, events: Optional[EventBus] = None) -> "NotificationHub":
        """
        PURPOSE: Build the hub with whichever channels have credentials.

        CALLED BY: main.py lifespan
        """
        channels: list[Channel] = []
        telegram = TelegramChannel(
            settings.TELEGRAM_BOT_TOKEN,
            settings.TELEGRAM_CHAT_ID,
            message_format=settings.TELEGRAM_MESSAGE_FORMAT,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
        if telegram.configured:
            channels.append(telegram)
        discord = DiscordChannel(
            settings.DISCORD_WEBHOOK_URL,
            message_format=settings.TELEGRAM_MESSAGE_FORMAT,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
        if discord.configured:
            channels.append(discord)

        logger.info("notification_hub_configured", channels=[c.name for c in channels])
        return cls(channels, events)

    @property
    def channel_names(self) -> list[str]:
        return [c.name for c in self._channels]

    async def send(self, action: Action) -> None:
        if self._events is not None:
            await self._events.publish(
                event_type=EventType.ACTION_RECORDED.value,
                data=action_event_data(action),
                source="notification_hub",
            )
        if not self._channels:
            return
        await asyncio.gather(*(self._deliver(channel, action) for channel in self._channels))

    async def _deliver(self, channel: Channel, action: Action) -> None:
        try:
            await channel.send(action)
        except Exception as e:
            logger.warning(
                "notification_channel_failed",
                channel=channel.name,
                action_id=action.id,
                ticker=action.ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )

    async def test_channels(self, action: Action) -> dict[str, str]:
        """
        PURPOSE: Send one action to every channel and report each result.

        Unlike send(), nothing is published on the event bus and failures are
        returned to the caller instead of only being logged.

        CALLED BY: POST /api/notifications/test

        Returns:
            dict: channel name -> "sent" or the error text.
        """
        results: dict[str, str] = {}
        for channel in self._channels:
            try:
                await channel.send(action)
                results[channel.name] = "sent"
            except Exception as e:
                logger.warning(
                    "notification_test_failed",
                    channel=channel.name,
                    error=str(e),
                    exception_type=type(e).__name__,
                )
                results[channel.name] = f"{type(e).__name__}: {e}"
        return results
