"""
Consumers that derive notifications and emails from domain events.

Two consumers exist:
- NotificationEventConsumer turns any customer, lead or task event into a
  notification for the administrator
- UserEventConsumer welcomes newly registered users by email and records
  that it did so

Design decisions:
- Consumers only read envelope fields (plus the UserRegistered payload);
  they never look up producer entities
- Every exception in a handler is logged and the message is dropped; the
  bus acks it anyway, so nothing is retried
- Sending the welcome email and recording the notification share one try
  block: if the email fails, no notification is stored

Key insight:
- Producers don't know these consumers exist
- Adding a new derived effect = adding a consumer and a subscription entry
"""

import logging

from messaging.envelope import (
    EventEnvelope,
    EventTypes,
    UserRegistered,
    parse_envelope,
)
from messaging.event_bus import Message
from notification_service.service import NotificationService
from shared.channels import EmailGateway
from shared.models import CreateNotificationRequest, NotificationType

logger = logging.getLogger("notification_consumer")

DEFAULT_ADMIN_RECIPIENT = "admin@crm.com"

# Checked in order; the first substring found wins
_CLASSIFICATION_ORDER = (
    ("CUSTOMER", NotificationType.CUSTOMER),
    ("LEAD", NotificationType.LEAD),
    ("TASK", NotificationType.TASK),
    ("OPPORTUNITY", NotificationType.OPPORTUNITY),
)


def classify_event_type(event_type: str) -> NotificationType:
    """
    Pick a notification type from an event type string.

    Substring match on the upper-cased event type, checked in the order
    CUSTOMER, LEAD, TASK, OPPORTUNITY; anything else is INFO.

    Examples:
        classify_event_type("task.completed")       # TASK
        classify_event_type("lead.stage.changed")   # LEAD
        classify_event_type("USER_REGISTERED")      # INFO
    """
    upper = (event_type or "").upper()
    for marker, notification_type in _CLASSIFICATION_ORDER:
        if marker in upper:
            return notification_type
    return NotificationType.INFO


def build_event_message(event: EventEnvelope) -> str:
    return f"Event {event.event_type} occurred at {event.timestamp.isoformat()}"


class NotificationEventConsumer:
    """
    Generic consumer for the customer, lead and task queues.

    Stores one notification per received event, addressed to the
    administrative recipient.
    """

    def __init__(self, service: NotificationService, admin_recipient: str = DEFAULT_ADMIN_RECIPIENT):
        self.service = service
        self.admin_recipient = admin_recipient

    def handle_message(self, message: Message) -> None:
        try:
            event = parse_envelope(message.body)
            logger.info(f"Received event: {event.event_type} from {event.source}")

            notification = self.service.create_notification(CreateNotificationRequest(
                type=classify_event_type(event.event_type),
                message=build_event_message(event),
                recipient=self.admin_recipient,
                related_type=event.event_type,
                related_id=None,
            ))
            logger.info(f"Created notification {notification.id} for event: {event.event_id}")
        except Exception as e:
            logger.error(f"Error processing event from '{message.routing_key}': {e}")


class UserEventConsumer:
    """
    Consumer for the user registration queue.

    Sends the welcome email, then records an INFO notification addressed to
    the new user.
    """

    def __init__(self, service: NotificationService, email_gateway: EmailGateway):
        self.service = service
        self.email_gateway = email_gateway

    def handle_message(self, message: Message) -> None:
        try:
            envelope = parse_envelope(message.body)
            if envelope.event_type != EventTypes.USER_REGISTERED:
                logger.debug(f"Ignoring user event {envelope.event_type}")
                return

            event = UserRegistered.model_validate_json(message.body)
            logger.info(f"Received user registration event for: {event.email}")

            self.email_gateway.send_welcome_email(event.email, event.username, event.full_name)
            logger.info(f"Welcome email sent successfully to: {event.email}")

            self.service.create_notification(CreateNotificationRequest(
                type=NotificationType.INFO,
                message=f"Welcome email sent to {event.email}",
                recipient=event.email,
                related_type="USER",
                related_id=None,
            ))
            logger.info(f"Notification saved for: {event.email}")
        except Exception as e:
            logger.error(f"Failed to process user registration from '{message.routing_key}': {e}")
