"""
PURPOSE: Telegram Bot API channel for action notifications.
"""

from typing import Optional

import httpx

from alertengine.engine.records import Action
from alertengine.notify.formatting import format_action_message
from alertengine.utils.logger import get_logger

logger = get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramChannel:
    """
    PURPOSE: Post HTML-formatted action messages to one Telegram chat.

    Attributes:
        _bot_token: Bot token from BotFather.
        _chat_id: Target chat or channel id.
        _message_format: detailed, compact or minimal.
        _timeout: HTTP timeout in seconds.
    """

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        message_format: str = "detailed",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._message_format = message_format
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    async def send(self, action: Action) -> None:
        """
        PURPOSE: Send one action to the configured chat.

        Raises:
            httpx.HTTPError: Transport failure or non-2xx response.
        """
        url = f"{TELEGRAM_API_BASE}/bot{self._bot_token}/sendMessage"
        body = {
            "chat_id": self._chat_id,
            "text": format_action_message(action, self._message_format, markup="html"),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(url, json=body)
            response.raise_for_status()

        logger.info("telegram_notification_sent", action_id=action.id, ticker=action.ticker)
