"""
Crypto Hunter — Notification Hub
Concurrent fan-out of one message to every enabled channel.
"""
import asyncio
from typing import Dict, List, Optional

from crypto_hunter.config.settings import AppSettings, get_settings
from crypto_hunter.errors import NotificationChannelError
from crypto_hunter.notifications.base import NotificationChannel
from crypto_hunter.notifications.telegram import TelegramChannel
from crypto_hunter.notifications.webhooks import DingTalkChannel, FeishuChannel
from crypto_hunter.utils.logger import get_logger

logger = get_logger("notification_hub")


def build_channels(settings: Optional[AppSettings] = None) -> List[NotificationChannel]:
    """Instantiate the channels enabled in configuration."""
    settings = settings or get_settings()
    timeout = settings.monitor.http_timeout_seconds
    channels: List[NotificationChannel] = []
    if settings.telegram.enabled:
        channels.append(TelegramChannel(settings.telegram))
    if settings.feishu.enabled:
        channels.append(FeishuChannel(settings.feishu, timeout_seconds=timeout))
    if settings.dingtalk.enabled:
        channels.append(DingTalkChannel(settings.dingtalk, timeout_seconds=timeout))
    return channels


class NotificationHub:
    """
    Sends to all channels at once and waits for every one to settle.
    A failing channel is logged and reported as False; it never raises.
    """

    def __init__(self, channels: Optional[List[NotificationChannel]] = None):
        self.channels: List[NotificationChannel] = list(channels) if channels is not None else build_channels()

    async def start(self) -> None:
        for channel in self.channels:
            await channel.start()

    async def close(self) -> None:
        for channel in self.channels:
            try:
                await channel.close()
            except Exception as e:
                logger.warning("channel_close_error", channel=channel.name, error=str(e))

    async def dispatch(self, text: str) -> Dict[str, bool]:
        if not text or not self.channels:
            return {}

        outcomes = await asyncio.gather(
            *(channel.send(text) for channel in self.channels),
            return_exceptions=True,
        )

        results: Dict[str, bool] = {}
        for channel, outcome in zip(self.channels, outcomes):
            if isinstance(outcome, NotificationChannelError):
                logger.error("notification_channel_failed", channel=channel.name, error=str(outcome))
                results[channel.name] = False
            elif isinstance(outcome, BaseException):
                logger.error("notification_channel_error", channel=channel.name,
                             error=str(outcome), error_type=type(outcome).__name__)
                results[channel.name] = False
            else:
                results[channel.name] = bool(outcome)

        logger.info("notifications_dispatched", delivered=sum(results.values()), channels=len(results))
        return results

    @property
    def channel_names(self) -> List[str]:
        return [channel.name for channel in self.channels]
