"""
Notification channel adapters.

Trading code calls `notify(text)` and never waits on or fails because of
the outcome: send errors are logged and dropped.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class Notifier(ABC):
    """Fire-and-forget text notifications"""

    async def notify(self, text: str) -> None:
        try:
            await self.send(text)
        except Exception as e:
            logger.error(f"Notification failed: {type(e).__name__}: {e}")

    @abstractmethod
    async def send(self, text: str) -> None:
        pass


class LogNotifier(Notifier):
    """Used when no external channel is configured"""

    async def send(self, text: str) -> None:
        logger.info(f"NOTIFY: {text}")


class TelegramNotifier(Notifier):
    """Sends messages to one chat through the Telegram Bot API"""

    def __init__(self, bot_token: str, chat_id: str, timeout_sec: float = 10.0):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout_sec = timeout_sec

    async def send(self, text: str) -> None:
        logger.info(f"NOTIFY: {text}")
        url = f"{TELEGRAM_API}/bot{self.bot_token}/sendMessage"
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json={
                "chat_id": self.chat_id,
                "text": text,
                "disable_web_page_preview": True,
            }, timeout=self.timeout_sec)
            if response.status_code != 200:
                logger.warning(f"Telegram API returned {response.status_code}: {response.text}")


def create_notifier(bot_token: Optional[str], chat_id: Optional[str]) -> Notifier:
    if bot_token and chat_id:
        return TelegramNotifier(bot_token, chat_id)
    return LogNotifier()
