"""
Crypto Hunter — Telegram Notifier
Async delivery through the Bot API with rate limiting and retry logic.
"""
import asyncio
import time
from typing import Any, Dict, Optional

from telegram import Bot

from crypto_hunter.config.settings import TelegramSettings, get_settings
from crypto_hunter.errors import NotificationChannelError
from crypto_hunter.notifications.base import NotificationChannel
from crypto_hunter.utils.logger import get_logger

logger = get_logger("telegram_notifier")

HEADER = "🐂 *Crypto Hunter Alert*\n\n"


class TelegramChannel(NotificationChannel):
    """
    Telegram notification channel.
    Features: Markdown messages, rate limiting (max N msg/sec) and
    retries with linear backoff.
    """

    name = "telegram"

    def __init__(self, settings: Optional[TelegramSettings] = None, bot: Optional[Bot] = None):
        self.settings = settings or get_settings().telegram
        self._bot = bot
        self._last_send_time = 0.0
        self._message_count = 0

    async def start(self) -> None:
        """Initialize the Telegram bot."""
        if self._bot is not None:
            return
        if not self.settings.bot_token:
            logger.warning("telegram_no_token", msg="Bot token not configured")
            return
        self._bot = Bot(token=self.settings.bot_token)
        logger.info("telegram_initialized")

    async def close(self) -> None:
        if self._bot is not None:
            try:
                await self._bot.shutdown()
            except Exception as e:
                logger.warning("telegram_shutdown_error", error=str(e))
        self._bot = None

    async def _rate_limit(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_send_time
        min_interval = 1.0 / self.settings.rate_limit_per_second
        if elapsed < min_interval:
            await asyncio.sleep(min_interval - elapsed)
        self._last_send_time = time.monotonic()

    async def send(self, text: str) -> bool:
        if not self.settings.chat_id:
            raise NotificationChannelError(self.name, "chat id not configured")

        if self._bot is None:
            await self.start()
        if self._bot is None:
            raise NotificationChannelError(self.name, "bot not available")

        last_error: Optional[Exception] = None
        for attempt in range(self.settings.max_retries):
            try:
                await self._rate_limit()
                await self._bot.send_message(
                    chat_id=self.settings.chat_id,
                    text=HEADER + text,
                    parse_mode="Markdown",
                )
                self._message_count += 1
                logger.info("telegram_sent", attempt=attempt + 1, total_sent=self._message_count)
                return True
            except Exception as e:
                last_error = e
                logger.warning("telegram_send_error", attempt=attempt + 1, error=str(e))
                if attempt < self.settings.max_retries - 1:
                    await asyncio.sleep(self.settings.retry_delay * (attempt + 1))

        logger.error("telegram_send_failed", max_retries=self.settings.max_retries)
        raise NotificationChannelError(self.name, f"failed after {self.settings.max_retries} attempts: {last_error}")

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "initialized": self._bot is not None,
            "messages_sent": self._message_count,
        }
