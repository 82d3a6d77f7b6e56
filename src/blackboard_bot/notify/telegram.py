"""
Telegram Bot API client.

Delivers alert summaries and session expiry notices via Telegram Bot API.
https://core.telegram.org/bots/api
"""

import logging
from typing import TYPE_CHECKING, Optional

import httpx
from dateutil.tz import gettz

from blackboard_bot.config import Settings, get_settings
from blackboard_bot.models import Summary
from blackboard_bot.notify.formatters import MessageFormatter

if TYPE_CHECKING:
    from blackboard_bot.registry import ClientRegistry

logger = logging.getLogger(__name__)

# Telegram Bot API endpoint
TELEGRAM_API_URL = "https://api.telegram.org/bot{token}"

# Telegram has a 4096 character limit per message
MAX_LENGTH = 4000


class TelegramNotifier:
    """
    Telegram Bot API client for sending notifications.

    Alerts carry their destination chat as the alert channel; expiry
    notices go to the user part of the caller identity.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        settings: Optional[Settings] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Telegram notifier.

        Args:
            token: Telegram Bot API token (from @BotFather)
            settings: Optional settings instance, will use default if not provided
            http: Optional HTTP client
        """
        self.settings = settings or get_settings()
        self.token = token or self.settings.telegram_bot_token
        if not self.token:
            raise ValueError("TELEGRAM_BOT_TOKEN must be set")

        self.api_url = TELEGRAM_API_URL.format(token=self.token)
        self.http = http or httpx.AsyncClient(timeout=30)
        self.tz = gettz(self.settings.alert_timezone)
        self.registry: Optional["ClientRegistry"] = None

    async def send_message(self, chat_id: str, message: str, parse_mode: str = "Markdown") -> bool:
        """
        Send a text message via Telegram.

        Args:
            chat_id: Telegram chat ID (user, group, or channel)
            message: The message text to send
            parse_mode: Message formatting mode (Markdown or HTML)

        Returns:
            bool: True if message was sent successfully
        """
        payload = {
            "chat_id": chat_id,
            "text": message,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }

        try:
            response = await self.http.post(f"{self.api_url}/sendMessage", json=payload)
        except httpx.TimeoutException:
            logger.error("Telegram API request timed out")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Telegram API request failed: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"Telegram API error: {response.status_code} - {response.text}")
            return False

        data = response.json()
        if not data.get("ok"):
            logger.error(f"Telegram API error: {data.get('description')}")
            return False

        message_id = data.get("result", {}).get("message_id", "unknown")
        logger.info(f"Telegram message sent successfully: {message_id}")
        return True

    async def send_long_message(self, chat_id: str, message: str, parse_mode: str = "Markdown") -> bool:
        """
        Send a long message, splitting by paragraph if necessary.

        Returns:
            bool: True if all parts were sent successfully
        """
        if len(message) <= MAX_LENGTH:
            return await self.send_message(chat_id, message, parse_mode)

        parts = []
        current_part = ""

        for paragraph in message.split("\n\n"):
            if len(current_part) + len(paragraph) + 2 > MAX_LENGTH:
                if current_part:
                    parts.append(current_part.strip())
                current_part = paragraph
            else:
                current_part += "\n\n" + paragraph if current_part else paragraph

        if current_part:
            parts.append(current_part.strip())

        success = True
        for i, part in enumerate(parts):
            if i > 0:
                part = f"(...continued)\n\n{part}"
            if not await self.send_message(chat_id, part, parse_mode):
                success = False

        return success

    def attach(self, registry: "ClientRegistry") -> None:
        """Subscribe to the registry's delivery signals."""
        self.registry = registry
        registry.dispatch.connect(self.on_dispatch)
        registry.expired.connect(self.on_expired)

    async def on_dispatch(
        self,
        identity: str,
        guild: str,
        channel: str,
        text: str,
        summary: Optional[Summary] = None,
    ) -> bool:
        if summary is None:
            return await self.send_long_message(channel, text)

        client = self.registry.get(identity) if self.registry else None
        base_url = client.base_url if client else ""
        message = MessageFormatter.format_summary(summary, base_url, tz=self.tz)
        return await self.send_long_message(channel, message)

    async def on_expired(self, identity: str) -> bool:
        from blackboard_bot.registry import split_identity

        _, user_id = split_identity(identity)
        client = self.registry.get(identity) if self.registry else None
        message = MessageFormatter.format_expired(client.name if client else None)
        return await self.send_message(user_id, message)

    async def test_connection(self) -> bool:
        """
        Test if the bot token is valid.

        Returns:
            bool: True if connection is valid
        """
        try:
            response = await self.http.get(f"{self.api_url}/getMe", timeout=10)
        except httpx.HTTPError as e:
            logger.error(f"Failed to connect to Telegram: {e}")
            return False

        if response.status_code == 200 and response.json().get("ok"):
            bot_info = response.json().get("result", {})
            logger.info(f"Connected to Telegram bot: @{bot_info.get('username')}")
            return True
        return False

    async def aclose(self) -> None:
        await self.http.aclose()
