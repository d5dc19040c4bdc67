"""
Notification store for the CRM notification service.

This is the persistence collaborator behind the notification service: plain
create/read/update/delete plus the filtered, paged and counted queries the
service and API need. Records live in memory and, when a data file is
configured, are written through to a JSON document after every mutation.

Design decisions:
- Lazy load from the JSON file on first access
- Every public method takes the store lock; consumers on different queues
  write concurrently
- Ids are assigned by the store, never by callers
- Paged queries return newest first
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from shared.models import (
    STATUS_ORDER,
    CreateNotificationRequest,
    Notification,
    NotificationStatus,
    NotificationType,
    Page,
    utcnow,
)

logger = logging.getLogger("notification_store")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class NotificationNotFound(LookupError):
    """Raised when a notification id does not exist."""

    def __init__(self, notification_id: int):
        super().__init__(f"Notification not found with ID: {notification_id}")
        self.notification_id = notification_id


class NotificationStore:
    """
    Thread-safe notification repository.

    Example:
        store = NotificationStore()
        n = store.create(CreateNotificationRequest(
            type=NotificationType.INFO, message="hi", recipient="a@x.com"
        ))
        store.find_by_recipient("a@x.com", page=0, size=20)
    """

    def __init__(self, data_file: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            data_file: Optional JSON file used to persist notifications.
                       None keeps everything in memory.
        """
        self.data_file = Path(data_file) if data_file else None
        self._lock = threading.RLock()
        self._notifications: Optional[dict[int, Notification]] = None
        self._next_id = 1

    # =========================================================================
    # Loading and persistence
    # =========================================================================

    def _ensure_loaded(self) -> None:
        """
        Load the data file on first access.

        The store only counts as loaded once the whole file has parsed. A
        corrupt file raises on every access and is never flushed over.
        """
        if self._notifications is not None:
            return
        if self.data_file is None or not self.data_file.exists():
            self._notifications = {}
            return
        try:
            with open(self.data_file, "r") as f:
                data = json.load(f)
            loaded = {}
            for raw in data:
                notification = Notification.model_validate(raw)
                loaded[notification.id] = notification
        except (OSError, ValueError) as e:
            logger.error(f"Could not load notifications from {self.data_file}: {e}")
            raise
        self._notifications = loaded
        if loaded:
            self._next_id = max(loaded) + 1
        logger.info(f"Loaded {len(loaded)} notifications from {self.data_file}")

    def _flush(self) -> None:
        if self.data_file is None:
            return
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        payload = [n.model_dump(mode="json") for n in self._notifications.values()]
        tmp = self.data_file.with_suffix(self.data_file.suffix + ".tmp")
        with open(tmp, "w") as f:
            json.dump(payload, f, indent=2)
        tmp.replace(self.data_file)

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, request: CreateNotificationRequest) -> Notification:
        """Persist a new UNREAD notification and return it with its id."""
        with self._lock:
            self._ensure_loaded()
            now = utcnow()
            notification = Notification(
                id=self._next_id,
                type=request.type,
                message=request.message,
                recipient=request.recipient,
                status=NotificationStatus.UNREAD,
                related_type=request.related_type,
                related_id=request.related_id,
                created_at=now,
                updated_at=now,
            )
            self._notifications[notification.id] = notification
            self._next_id += 1
            self._flush()
            return notification

    def get(self, notification_id: int) -> Optional[Notification]:
        with self._lock:
            self._ensure_loaded()
            return self._notifications.get(notification_id)

    def save(self, notification: Notification) -> Notification:
        """
        Replace an existing notification, refreshing updated_at.

        Raises:
            NotificationNotFound: if the id is unknown
        """
        with self._lock:
            self._ensure_loaded()
            if notification.id not in self._notifications:
                raise NotificationNotFound(notification.id)
            updated = notification.model_copy(update={"updated_at": utcnow()})
            self._notifications[updated.id] = updated
            self._flush()
            return updated

    def advance_status(
        self, notification_id: int, status: NotificationStatus
    ) -> tuple[Notification, bool]:
        """
        Move a notification forward to status, never backwards.

        The check and the write happen under one lock hold, so concurrent
        read and archive requests cannot undo each other.

        Returns:
            (notification, changed)

        Raises:
            NotificationNotFound: if the id is unknown
        """
        with self._lock:
            self._ensure_loaded()
            current = self._notifications.get(notification_id)
            if current is None:
                raise NotificationNotFound(notification_id)
            if STATUS_ORDER[status] <= STATUS_ORDER[current.status]:
                return current, False
            updated = current.model_copy(update={"status": status, "updated_at": utcnow()})
            self._notifications[notification_id] = updated
            self._flush()
            return updated, True

    def delete(self, notification_id: int) -> bool:
        """Delete a notification. Returns False if it did not exist."""
        with self._lock:
            self._ensure_loaded()
            if self._notifications.pop(notification_id, None) is None:
                return False
            self._flush()
            return True

    def all(self) -> list[Notification]:
        with self._lock:
            self._ensure_loaded()
            return list(self._notifications.values())

    def clear(self) -> None:
        """Remove every notification (useful between tests)."""
        with self._lock:
            self._notifications = {}
            self._next_id = 1
            self._flush()

    # =========================================================================
    # Queries
    # =========================================================================

    def _filter(self, predicate: Callable[[Notification], bool]) -> list[Notification]:
        with self._lock:
            self._ensure_loaded()
            matches = [n for n in self._notifications.values() if predicate(n)]
        matches.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return matches

    def _page(self, matches: list[Notification], page: int, size: int) -> Page[Notification]:
        if page < 0 or size < 1:
            raise ValueError(f"Invalid paging: page={page}, size={size}")
        start = page * size
        return Page[Notification](
            items=matches[start:start + size],
            page=page,
            size=size,
            total=len(matches),
        )

    def find_by_recipient(self, recipient: str, page: int = 0, size: int = 20) -> Page[Notification]:
        return self._page(self._filter(lambda n: n.recipient == recipient), page, size)

    def find_by_status(
        self, status: NotificationStatus, page: int = 0, size: int = 20
    ) -> Page[Notification]:
        return self._page(self._filter(lambda n: n.status == status), page, size)

    def find_by_type(
        self, notification_type: NotificationType, page: int = 0, size: int = 20
    ) -> Page[Notification]:
        return self._page(self._filter(lambda n: n.type == notification_type), page, size)

    def find_by_related(self, related_type: str, related_id: int) -> list[Notification]:
        return self._filter(
            lambda n: n.related_type == related_type and n.related_id == related_id
        )

    def find_by_created_between(self, start: datetime, end: datetime) -> list[Notification]:
        """Notifications created in [start, end], newest first. Naive bounds are read as UTC."""
        start, end = _as_utc(start), _as_utc(end)
        return self._filter(lambda n: start <= n.created_at <= end)

    # =========================================================================
    # Counts
    # =========================================================================

    def count(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._notifications)

    def count_by_recipient(self, recipient: str) -> int:
        return len(self._filter(lambda n: n.recipient == recipient))

    def count_by_status(self, status: NotificationStatus) -> int:
        return len(self._filter(lambda n: n.status == status))

    def count_by_type(self, notification_type: NotificationType) -> int:
        return len(self._filter(lambda n: n.type == notification_type))
