"""
PURPOSE: Discord webhook channel for action notifications.
"""

import re
from typing import Optional

import httpx

from alertengine.engine.records import Action
from alertengine.notify.formatting import format_action_message
from alertengine.utils.logger import get_logger

logger = get_logger(__name__)

DISCORD_WEBHOOK_PATTERN = re.compile(r"^https://(?:discord|discordapp)\.com/api/webhooks/\d+/[\w-]+$")
DISCORD_USERNAME = "Alert Engine"


class DiscordChannel:
    """PURPOSE: Post Markdown-formatted action messages to a Discord webhook."""

    name = "discord"

    def __init__(
        self,
        webhook_url: str,
        message_format: str = "detailed",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._message_format = message_format
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._webhook_url)

    async def send(self, action: Action) -> None:
        """
        PURPOSE: Send one action to the webhook.

        Raises:
            ValueError: Webhook URL is not a Discord webhook URL.
            httpx.HTTPError: Transport failure or non-2xx response.
        """
        if not DISCORD_WEBHOOK_PATTERN.match(self._webhook_url):
            raise ValueError("invalid Discord webhook URL")

        body = {
            "content": format_action_message(action, self._message_format, markup="markdown"),
            "username": DISCORD_USERNAME,
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._webhook_url, json=body)
            response.raise_for_status()

        logger.info("discord_notification_sent", action_id=action.id, ticker=action.ticker)
