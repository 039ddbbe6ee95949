"""
User-facing notifications raised by the tracking components.

Failures that the user should see (permission denied, a dropped sample, a
failed fetch) end up here instead of propagating to the caller.
"""

import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, List, Optional

from ujenzipro.core.config import settings

logger = logging.getLogger(__name__)


class NotificationVariant(str, enum.Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notification:
    """One dismissable notification."""
    title: str
    description: str
    variant: NotificationVariant = NotificationVariant.DEFAULT
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationCenter:
    """Bounded, most-recent-last history of notifications."""

    def __init__(self, history_size: Optional[int] = None):
        self._items: Deque[Notification] = deque(
            maxlen=history_size or settings.NOTIFICATION_HISTORY_SIZE
        )

    def notify(
        self,
        title: str,
        description: str,
        variant: NotificationVariant = NotificationVariant.DEFAULT,
    ) -> Notification:
        notification = Notification(title=title, description=description, variant=NotificationVariant(variant))
        self._items.append(notification)
        level = logging.WARNING if notification.variant is NotificationVariant.DESTRUCTIVE else logging.INFO
        logger.log(level, f"{title}: {description}", extra={"variant": notification.variant.value})
        return notification

    def error(self, title: str, description: str) -> Notification:
        return self.notify(title, description, NotificationVariant.DESTRUCTIVE)

    @property
    def items(self) -> List[Notification]:
        return list(self._items)

    @property
    def errors(self) -> List[Notification]:
        return [item for item in self._items if item.variant is NotificationVariant.DESTRUCTIVE]

    def dismiss(self, notification: Notification) -> None:
        try:
            self._items.remove(notification)
        except ValueError:
            pass

    def clear(self) -> None:
        self._items.clear()
