"""
Crypto Hunter — Chat Webhook Channels
Feishu (Lark) custom bots and DingTalk robots over aiohttp.
"""
import asyncio
import base64
import hashlib
import hmac
import time
from typing import Any, Dict, Optional

import aiohttp

from crypto_hunter.config.settings import DingTalkSettings, FeishuSettings, get_settings
from crypto_hunter.errors import NotificationChannelError
from crypto_hunter.notifications.base import NotificationChannel
from crypto_hunter.utils.logger import get_logger

logger = get_logger("webhooks")

HEADER = "🐂 Crypto Hunter\n\n"


class WebhookChannel(NotificationChannel):
    """Shared aiohttp session handling and JSON POST for webhook bots."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds or get_settings().monitor.http_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def _post(self, url: str, payload: Dict[str, Any],
                    params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        if self._session is None:
            await self.start()
        try:
            async with self._session.post(url, json=payload, params=params) as resp:
                if resp.status != 200:
                    raise NotificationChannelError(self.name, f"HTTP {resp.status}")
                return await resp.json(content_type=None) or {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NotificationChannelError(self.name, f"request failed: {e}") from e


class FeishuChannel(WebhookChannel):
    name = "feishu"

    def __init__(self, settings: Optional[FeishuSettings] = None, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self.settings = settings or get_settings().feishu

    @staticmethod
    def build_payload(text: str) -> Dict[str, Any]:
        return {"msg_type": "text", "content": {"text": HEADER + text}}

    async def send(self, text: str) -> bool:
        if not self.settings.webhook_url:
            raise NotificationChannelError(self.name, "webhook url not configured")

        body = await self._post(self.settings.webhook_url, self.build_payload(text))
        code = body.get("code", body.get("StatusCode", 0))
        if code != 0:
            raise NotificationChannelError(self.name, f"rejected: {body.get('msg', code)}")

        logger.info("feishu_sent")
        return True


class DingTalkChannel(WebhookChannel):
    """DingTalk robot; signs requests when a secret is configured."""

    name = "dingtalk"

    def __init__(self, settings: Optional[DingTalkSettings] = None, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds)
        self.settings = settings or get_settings().dingtalk

    @staticmethod
    def sign(secret: str, timestamp_ms: int) -> str:
        """Base64 HMAC-SHA256 of "<timestamp>\\n<secret>" keyed by the secret."""
        string_to_sign = f"{timestamp_ms}\n{secret}".encode("utf-8")
        digest = hmac.new(secret.encode("utf-8"), string_to_sign, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("utf-8")

    def build_params(self, timestamp_ms: Optional[int] = None) -> Dict[str, str]:
        params = {"access_token": self.settings.access_token}
        if self.settings.secret:
            ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
            params["timestamp"] = str(ts)
            params["sign"] = self.sign(self.settings.secret, ts)
        return params

    @staticmethod
    def build_payload(text: str) -> Dict[str, Any]:
        return {"msgtype": "text", "text": {"content": HEADER + text}}

    async def send(self, text: str) -> bool:
        if not self.settings.access_token:
            raise NotificationChannelError(self.name, "access token not configured")

        body = await self._post(self.settings.base_url, self.build_payload(text), params=self.build_params())
        if body.get("errcode", 0) != 0:
            raise NotificationChannelError(self.name, f"rejected: {body.get('errmsg', body.get('errcode'))}")

        logger.info("dingtalk_sent")
        return True
