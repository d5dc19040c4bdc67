"""
Event publisher used by every producing service.

A service commits its own change first, then hands the event to the
publisher. Publishing is best effort: a failure is logged and reported
through the return value, never raised, so the business operation that
triggered it still succeeds.

Design decisions:
- Routing key is always <domain>.events.<event_type>
- Body is the field-named JSON form of the event
- event_type, event_id and schema_version are copied into message headers
  so consumers can filter without parsing the body
- Publishers don't know who is listening
"""

import logging
from typing import Union

from messaging.envelope import EventEnvelope, serialize_event
from messaging.event_bus import EventBus
from messaging.topology import EXCHANGE_NAME, Domain, routing_key_for

logger = logging.getLogger("event_publisher")


class EventPublisher:
    """
    Publishes domain events onto the topic exchange.

    Example usage:
        publisher = EventPublisher(bus)
        publisher.publish(Domain.CUSTOMER, CustomerCreated(customer_id=42, email="a@x.com"))
    """

    def __init__(self, bus: EventBus, exchange: str = EXCHANGE_NAME):
        self.bus = bus
        self.exchange = exchange

    def publish(self, domain: Union[Domain, str], event: EventEnvelope) -> bool:
        """
        Publish an event for a domain.

        Args:
            domain: One of customer, lead, task, opportunity, user
            event: Any event variant

        Returns:
            True if the bus accepted the message, False if publishing failed
        """
        try:
            routing_key = routing_key_for(domain, event.event_type)
            body = serialize_event(event)
            self.bus.publish(
                self.exchange,
                routing_key,
                body,
                headers={
                    "event_type": event.event_type,
                    "event_id": event.event_id,
                    "schema_version": event.schema_version,
                },
            )
        except Exception as e:
            logger.error(f"Failed to publish {event.event_type} event {event.event_id} for domain '{domain}': {e}")
            return False

        logger.info(f"Published {event.event_type} event: {event.event_id} with routing key: {routing_key}")
        return True

    # =========================================================================
    # Convenience methods, one per domain
    # =========================================================================

    def publish_customer_event(self, event: EventEnvelope) -> bool:
        return self.publish(Domain.CUSTOMER, event)

    def publish_lead_event(self, event: EventEnvelope) -> bool:
        return self.publish(Domain.LEAD, event)

    def publish_task_event(self, event: EventEnvelope) -> bool:
        return self.publish(Domain.TASK, event)

    def publish_opportunity_event(self, event: EventEnvelope) -> bool:
        return self.publish(Domain.OPPORTUNITY, event)

    def publish_user_event(self, event: EventEnvelope) -> bool:
        return self.publish(Domain.USER, event)
