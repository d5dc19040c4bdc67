"""
Shared infrastructure for the CRM event services.

This package contains code used by producers, consumers and the API:
- Runtime settings and logging setup
- Notification models and the notification store
- Email gateway (mock and SMTP) and email templates
"""

from shared.channels import (
    EmailDeliveryError,
    EmailGateway,
    MockEmailGateway,
    SentEmail,
    SmtpEmailGateway,
    create_email_gateway,
)
from shared.config import Settings, get_settings
from shared.models import (
    CreateNotificationRequest,
    Notification,
    NotificationStatistics,
    NotificationStatus,
    NotificationType,
    Page,
)
from shared.notification_store import NotificationNotFound, NotificationStore

__all__ = [
    "EmailDeliveryError",
    "EmailGateway",
    "MockEmailGateway",
    "SentEmail",
    "SmtpEmailGateway",
    "create_email_gateway",
    "Settings",
    "get_settings",
    "CreateNotificationRequest",
    "Notification",
    "NotificationStatistics",
    "NotificationStatus",
    "NotificationType",
    "Page",
    "NotificationNotFound",
    "NotificationStore",
]
