"""Telegram Bot API client used for reminder delivery."""
import logging

import httpx

from subnudge.config import get_settings
from subnudge.services.crypto import ConfigurationError

logger = logging.getLogger(__name__)


class TelegramNotConfigured(ConfigurationError):
    """Raised when the bot token is missing."""


async def send_telegram_message(chat_id: str, text: str) -> bool:
    """Send a Markdown message to a chat. Returns True if Telegram accepted it.

    Delivery problems (HTTP errors, timeouts, ``ok: false``) return False.
    A missing bot token raises ``TelegramNotConfigured``.
    """
    settings = get_settings()
    if not settings.telegram_bot_token:
        raise TelegramNotConfigured("TELEGRAM_BOT_TOKEN not configured")

    url = f"{settings.telegram_api_base}/bot{settings.telegram_bot_token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "Markdown",
        "disable_web_page_preview": True,
    }

    try:
        async with httpx.AsyncClient(timeout=settings.telegram_timeout_seconds) as client:
            response = await client.post(url, json=payload)
    except httpx.HTTPError as exc:
        logger.error("Telegram API error for chat %s: %s", chat_id, exc)
        return False

    try:
        data = response.json()
    except ValueError:
        data = {}

    if response.is_success and isinstance(data, dict) and data.get("ok"):
        return True

    logger.error("Telegram rejected message for chat %s: %s", chat_id, response.text)
    return False
