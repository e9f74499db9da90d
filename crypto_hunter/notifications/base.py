"""
Crypto Hunter — Notification Channel Interface
"""
from abc import ABC, abstractmethod


class NotificationChannel(ABC):
    """
    One outbound chat destination.
    send() raises NotificationChannelError on delivery failure; the hub
    turns that into a False entry in its result map.
    """

    name: str = "channel"

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def send(self, text: str) -> bool:
        ...
