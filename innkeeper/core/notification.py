"""
Notification channel interface - transport-agnostic

Services never talk to a gateway directly; they hand an event to the
NotificationEmitter, which routes it through registered channels.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class NotificationChannel(ABC):
    """Outbound notification channel"""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """Send one notification

        Args:
            recipient: channel-specific address (phone number, chat id, ...)
            subject: short title
            content: message body
            extra: channel-specific options

        Returns:
            True if the channel accepted the message
        """

    @abstractmethod
    def get_channel_type(self) -> str:
        """Channel identifier, e.g. 'whatsapp', 'log'"""


class NotificationChannelRegistry:
    """Channels by type"""

    def __init__(self) -> None:
        self._channels: Dict[str, NotificationChannel] = {}

    def register(self, channel: NotificationChannel) -> None:
        self._channels[channel.get_channel_type()] = channel

    def get_channel(self, channel_type: str) -> Optional[NotificationChannel]:
        return self._channels.get(channel_type)

    def get_all_channels(self) -> List[NotificationChannel]:
        return list(self._channels.values())

    def clear(self) -> None:
        self._channels.clear()
