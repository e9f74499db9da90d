"""
Crypto Hunter — Notification Deduplication
Suppresses alerts whose (type, symbol) key was already notified recently.
"""
from datetime import datetime
from typing import Callable, List, Optional

from cachetools import TTLCache

from crypto_hunter.alerts.models import Alert
from crypto_hunter.utils.helpers import utc_now
from crypto_hunter.utils.logger import get_logger

logger = get_logger("notification_dedup")


class NotificationDeduplicator:
    """
    Coarse second dedup layer on top of the evaluator's per-check cooldowns.
    Keys expire from a TTL cache driven by the injected clock.
    """

    def __init__(self, window_seconds: float = 300.0,
                 clock: Optional[Callable[[], datetime]] = None,
                 maxsize: int = 4096):
        self.window_seconds = window_seconds
        self._clock = clock or utc_now
        self._enabled = window_seconds > 0
        self._seen: TTLCache = TTLCache(
            maxsize=maxsize,
            ttl=window_seconds if self._enabled else 1,
            timer=lambda: self._clock().timestamp(),
        )

    def filter(self, alerts: List[Alert]) -> List[Alert]:
        """Return the alerts that should be notified, in input order, and mark them seen."""
        if not self._enabled:
            return list(alerts)

        passed: List[Alert] = []
        for alert in alerts:
            key = alert.dedup_key
            if key in self._seen:
                logger.debug("notification_suppressed", key=key)
                continue
            self._seen[key] = alert.timestamp
            passed.append(alert)
        return passed

    def reset(self) -> None:
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)
