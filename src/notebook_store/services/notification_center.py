"""In-memory notification feed for user-facing messages."""

import logging
from collections import deque
from threading import Lock
from typing import Deque, List, Union

from notebook_store.exceptions import ErrorCode, ValidationError
from notebook_store.models.schema import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationCenter:
    """Keeps the most recent notifications, newest first.

    Notifications are never persisted. Once ``limit`` is reached the oldest
    entry is dropped for each new one.
    """

    def __init__(self, limit: int = 20):
        if limit < 1:
            raise ValueError("Notification limit must be at least 1")
        self.limit = limit
        self._items: Deque[Notification] = deque(maxlen=limit)
        self._lock = Lock()

    def add(
        self,
        message: str,
        type: Union[NotificationType, str] = NotificationType.INFO,
    ) -> Notification:
        """Post a notification.

        Raises:
            ValidationError: If the message is empty or the type is unknown.
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError(
                "Notification message cannot be empty",
                field="message",
                code=ErrorCode.NOTIFICATION_MESSAGE_REQUIRED,
            )
        try:
            kind = NotificationType(type)
        except ValueError as e:
            raise ValidationError(
                f"Unknown notification type: {type}", field="type", value=type
            ) from e

        notification = Notification(message=message, type=kind)
        with self._lock:
            self._items.appendleft(notification)
        logger.debug(f"Notification ({kind.value}): {message}")
        return notification

    def list(self, unread_only: bool = False) -> List[Notification]:
        """Current notifications, newest first."""
        with self._lock:
            items = list(self._items)
        if unread_only:
            return [n for n in items if not n.read]
        return items

    def mark_read(self, notification_id: str) -> bool:
        """Mark one notification read. Returns False if it is no longer kept."""
        with self._lock:
            for notification in self._items:
                if notification.id == notification_id:
                    notification.read = True
                    return True
        return False

    def clear(self) -> int:
        """Drop every notification. Returns how many were removed."""
        with self._lock:
            removed = len(self._items)
            self._items.clear()
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
