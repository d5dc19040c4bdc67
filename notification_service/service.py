"""
Notification service: the operations exposed over stored notifications.

Consumers call create_notification(); the HTTP API calls everything else.
The store does plain persistence, while this layer owns the lifecycle rules.

Design decisions:
- New notifications always start UNREAD, whatever the caller asks for
- Status only moves forward (UNREAD -> READ -> ARCHIVED); mark_as_read on an
  archived notification leaves it archived
- Not-found is raised to the caller of that operation and never reaches
  the messaging pipeline
"""

import logging
from datetime import datetime
from typing import Optional

from shared.models import (
    CreateNotificationRequest,
    Notification,
    NotificationStatistics,
    NotificationStatus,
    NotificationType,
    Page,
)
from shared.notification_store import NotificationNotFound, NotificationStore

logger = logging.getLogger("notification_service")


class NotificationService:
    """
    Lifecycle and query operations over notifications.

    Example:
        service = NotificationService(NotificationStore())
        n = service.create_notification(CreateNotificationRequest(
            type=NotificationType.INFO, message="hi", recipient="a@x.com"
        ))
        service.mark_as_read(n.id)
    """

    def __init__(self, store: Optional[NotificationStore] = None):
        self.store = store or NotificationStore()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_notification(self, request: CreateNotificationRequest) -> Notification:
        notification = self.store.create(request)
        logger.info(
            f"Created {notification.type.value} notification {notification.id} "
            f"for {notification.recipient}"
        )
        return notification

    def get_notification(self, notification_id: int) -> Optional[Notification]:
        return self.store.get(notification_id)

    def _advance(self, notification_id: int, status: NotificationStatus) -> Notification:
        notification, changed = self.store.advance_status(notification_id, status)
        if changed:
            logger.info(f"Notification {notification_id} marked {status.value}")
        else:
            logger.debug(
                f"Notification {notification_id} already {notification.status.value}, "
                f"not moving to {status.value}"
            )
        return notification

    def mark_as_read(self, notification_id: int) -> Notification:
        """
        Mark a notification as read.

        Raises:
            NotificationNotFound: If the id does not exist
        """
        return self._advance(notification_id, NotificationStatus.READ)

    def archive(self, notification_id: int) -> Notification:
        """
        Archive a notification.

        Raises:
            NotificationNotFound: If the id does not exist
        """
        return self._advance(notification_id, NotificationStatus.ARCHIVED)

    def delete_notification(self, notification_id: int) -> None:
        """
        Delete a notification.

        Raises:
            NotificationNotFound: If the id does not exist
        """
        if not self.store.delete(notification_id):
            raise NotificationNotFound(notification_id)
        logger.info(f"Deleted notification {notification_id}")

    # =========================================================================
    # Queries
    # =========================================================================

    def get_notifications_by_recipient(self, recipient: str, page: int = 0, size: int = 20) -> Page[Notification]:
        return self.store.find_by_recipient(recipient, page=page, size=size)

    def get_notifications_by_status(
        self, status: NotificationStatus, page: int = 0, size: int = 20
    ) -> Page[Notification]:
        return self.store.find_by_status(status, page=page, size=size)

    def get_notifications_by_type(
        self, notification_type: NotificationType, page: int = 0, size: int = 20
    ) -> Page[Notification]:
        return self.store.find_by_type(notification_type, page=page, size=size)

    def get_notifications_by_related_entity(self, related_type: str, related_id: int) -> list[Notification]:
        return self.store.find_by_related(related_type, related_id)

    def get_notifications_by_created_at_range(self, start: datetime, end: datetime) -> list[Notification]:
        return self.store.find_by_created_between(start, end)

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_statistics(self) -> NotificationStatistics:
        """Counts of all notifications by status and by type."""
        notifications = self.store.all()

        def by_status(status: NotificationStatus) -> int:
            return sum(1 for n in notifications if n.status == status)

        def by_type(notification_type: NotificationType) -> int:
            return sum(1 for n in notifications if n.type == notification_type)

        return NotificationStatistics(
            total_notifications=len(notifications),
            unread_notifications=by_status(NotificationStatus.UNREAD),
            read_notifications=by_status(NotificationStatus.READ),
            archived_notifications=by_status(NotificationStatus.ARCHIVED),
            info_notifications=by_type(NotificationType.INFO),
            warning_notifications=by_type(NotificationType.WARNING),
            alert_notifications=by_type(NotificationType.ALERT),
            task_notifications=by_type(NotificationType.TASK),
            lead_notifications=by_type(NotificationType.LEAD),
            opportunity_notifications=by_type(NotificationType.OPPORTUNITY),
            customer_notifications=by_type(NotificationType.CUSTOMER),
        )

    def count_by_recipient(self, recipient: str) -> int:
        return self.store.count_by_recipient(recipient)

    def count_by_status(self, status: NotificationStatus) -> int:
        return self.store.count_by_status(status)

    def count_by_type(self, notification_type: NotificationType) -> int:
        return self.store.count_by_type(notification_type)
