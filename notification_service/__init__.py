"""
Notification service for the CRM.

Consumes customer, lead, task and user events from the bus and derives
stored notifications and welcome emails from them.
"""

from notification_service.consumers import (
    NotificationEventConsumer,
    UserEventConsumer,
    build_event_message,
    classify_event_type,
)
from notification_service.service import NotificationService
from notification_service.subscriptions import (
    Subscription,
    build_subscriptions,
    register_subscriptions,
)
from notification_service.worker import NotificationWorker

__all__ = [
    "NotificationEventConsumer",
    "UserEventConsumer",
    "build_event_message",
    "classify_event_type",
    "NotificationService",
    "Subscription",
    "build_subscriptions",
    "register_subscriptions",
    "NotificationWorker",
]
