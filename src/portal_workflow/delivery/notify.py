"""In-app notification collaborators."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    channel: str
    message: str
    event_type: str
    entity_id: int | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class Notifier(ABC):
    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Deliver ``notification``; raise on failure."""


class LoggingNotifier(Notifier):
    """Writes notifications to the process log and keeps a bounded in-memory feed."""

    def __init__(self, max_items: int = 500) -> None:
        self._lock = threading.Lock()
        self._max_items = max_items
        self._items: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        with self._lock:
            self._items.append(notification)
            if len(self._items) > self._max_items:
                del self._items[: len(self._items) - self._max_items]
        logger.info(
            "Notification",
            extra={
                "channel": notification.channel,
                "notification": notification.message,
                "event_type": notification.event_type,
            },
        )

    def recent(self, channel: str | None = None) -> list[Notification]:
        with self._lock:
            items = list(self._items)
        if channel is None:
            return items
        return [n for n in items if n.channel == channel]
