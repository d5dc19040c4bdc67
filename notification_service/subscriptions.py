"""
Subscription table for the notification service.

Which handler listens on which queue is spelled out here, built once at
startup and registered into the bus client. Tests can inspect the table
without starting anything.

The opportunity queue is declared with the rest of the topology but has no
subscriber: opportunity events accumulate there for future consumers.
"""

import logging
from typing import NamedTuple

from messaging.event_bus import EventBus, MessageHandler
from messaging.topology import (
    CUSTOMER_QUEUE,
    LEAD_QUEUE,
    TASK_QUEUE,
    USER_REGISTERED_QUEUE,
    binding_for,
)
from notification_service.consumers import NotificationEventConsumer, UserEventConsumer

logger = logging.getLogger("subscriptions")


class Subscription(NamedTuple):
    """One (queue, topic pattern, handler) entry."""
    queue: str
    pattern: str
    handler: MessageHandler


def subscribe(queue: str, handler: MessageHandler) -> Subscription:
    """Subscription for a declared queue, carrying the pattern it is bound with."""
    return Subscription(queue, binding_for(queue).pattern, handler)


def build_subscriptions(
    notification_consumer: NotificationEventConsumer,
    user_consumer: UserEventConsumer,
) -> list[Subscription]:
    """
    Build the notification service's subscription table.

    Returns:
        Generic consumer on customer, lead and task queues;
        user consumer on the user registration queue
    """
    generic = notification_consumer.handle_message
    return [
        subscribe(CUSTOMER_QUEUE, generic),
        subscribe(LEAD_QUEUE, generic),
        subscribe(TASK_QUEUE, generic),
        subscribe(USER_REGISTERED_QUEUE, user_consumer.handle_message),
    ]


def register_subscriptions(bus: EventBus, subscriptions: list[Subscription]) -> None:
    """Subscribe every handler in the table to its queue."""
    for sub in subscriptions:
        bus.subscribe(sub.queue, sub.handler)
        logger.info(f"Subscribed {getattr(sub.handler, '__qualname__', sub.handler)} to '{sub.queue}' ({sub.pattern})")
