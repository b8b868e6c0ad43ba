"""
User-facing notifications.

Notifications carry an optional key. A notification published under a key
replaces the previous one with the same key, so a "loading" message for an
operation is superseded by its "success" or "error" outcome.
"""

import logging
import uuid
from enum import Enum
from typing import Dict, List, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, field
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    """Notification kinds"""
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class Notification:
    """Notification data model"""
    level: NotificationLevel
    message: str
    key: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationChannel(ABC):
    """Base class for notification channels"""

    @abstractmethod
    def deliver(self, notification: Notification) -> None:
        """Deliver a notification through this channel"""
        pass


class LoggingChannel(NotificationChannel):
    """Writes notifications to the log"""

    _levels = {
        NotificationLevel.LOADING: logging.INFO,
        NotificationLevel.SUCCESS: logging.INFO,
        NotificationLevel.INFO: logging.INFO,
        NotificationLevel.ERROR: logging.ERROR,
    }

    def deliver(self, notification: Notification) -> None:
        logger.log(self._levels[notification.level],
                   f"[{notification.level.value}] {notification.message} ({notification.key})")


class MemoryChannel(NotificationChannel):
    """Keeps every delivered notification in memory"""

    def __init__(self):
        self.delivered: List[Notification] = []

    def deliver(self, notification: Notification) -> None:
        self.delivered.append(notification)

    def messages(self, level: Optional[NotificationLevel] = None) -> List[str]:
        return [n.message for n in self.delivered if level is None or n.level == level]


class Notifier:
    """Keyed notification manager with pluggable channels"""

    def __init__(self, channels: Optional[List[NotificationChannel]] = None):
        self.channels: List[NotificationChannel] = channels if channels is not None else [LoggingChannel()]
        self._active: Dict[str, Notification] = {}

    def add_channel(self, channel: NotificationChannel) -> None:
        self.channels.append(channel)

    @property
    def active(self) -> Dict[str, Notification]:
        """Latest notification per key"""
        return dict(self._active)

    def notify(self, level: NotificationLevel, message: str, key: Optional[str] = None) -> Notification:
        notification = Notification(level=level, message=message)
        if key is not None:
            notification.key = key
        self._active[notification.key] = notification
        for channel in self.channels:
            try:
                channel.deliver(notification)
            except Exception as e:
                logger.error(f"Notification channel {type(channel).__name__} failed: {e}")
        return notification

    def loading(self, message: str, key: Optional[str] = None) -> Notification:
        return self.notify(NotificationLevel.LOADING, message, key)

    def success(self, message: str, key: Optional[str] = None) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message, key)

    def error(self, message: str, key: Optional[str] = None) -> Notification:
        return self.notify(NotificationLevel.ERROR, message, key)

    def info(self, message: str, key: Optional[str] = None) -> Notification:
        return self.notify(NotificationLevel.INFO, message, key)

    def dismiss(self, key: str) -> None:
        self._active.pop(key, None)
