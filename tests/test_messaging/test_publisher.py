"""
Tests for the best-effort event publisher.
"""

import json
import logging
from unittest.mock import MagicMock

from messaging.envelope import CustomerCreated, LeadStageChanged, UserRegistered, parse_event
from messaging.event_bus import PublishError
from messaging.memory_bus import InMemoryBroker
from messaging.publisher import EventPublisher
from messaging.topology import EXCHANGE_NAME, LEAD_QUEUE, Domain


class TestPublish:
    """Tests for the publish happy path."""

    def test_publish_routes_by_domain_and_event_type(self, broker: InMemoryBroker, publisher: EventPublisher):
        """Test routing key and body of the published message."""
        event = LeadStageChanged(lead_id=5, old_stage="NEW", new_stage="QUALIFIED")

        assert publisher.publish(Domain.LEAD, event) is True

        [message] = broker.get_publish_log()
        assert message.exchange == EXCHANGE_NAME
        assert message.routing_key == "lead.events.lead.stage.changed"
        assert parse_event(message.body) == event
        assert broker.queue_depth(LEAD_QUEUE) == 1

    def test_headers_carry_envelope_identity(self, broker: InMemoryBroker, publisher: EventPublisher):
        """Test event_type, event_id and schema_version headers."""
        event = CustomerCreated(customer_id=1, email="a@x.com")

        publisher.publish("customer", event)

        [message] = broker.get_publish_log()
        assert message.headers == {
            "event_type": "customer.created",
            "event_id": event.event_id,
            "schema_version": "1.0",
        }
        assert message.content_type == "application/json"
        assert json.loads(message.body)["customer_id"] == 1

    def test_convenience_methods_pick_domain(self, broker: InMemoryBroker, publisher: EventPublisher):
        """Test publish_<domain>_event helpers."""
        publisher.publish_user_event(UserRegistered(user_id=1, username="bob", email="b@y.com", full_name="Bob"))

        [message] = broker.get_publish_log()
        assert message.routing_key == "user.events.USER_REGISTERED"

    def test_success_is_logged_with_event_id(self, publisher: EventPublisher, caplog):
        """Test the publish log line."""
        event = CustomerCreated(customer_id=1, email="a@x.com")

        with caplog.at_level(logging.INFO, logger="event_publisher"):
            publisher.publish(Domain.CUSTOMER, event)

        assert event.event_id in caplog.text


class TestPublishFailures:
    """Tests that publishing never raises into the business operation."""

    def test_broker_unavailable_returns_false(self, broker: InMemoryBroker, publisher: EventPublisher, caplog):
        """Test that a broker outage is logged and swallowed."""
        broker.available = False
        event = CustomerCreated(customer_id=1, email="a@x.com")

        assert publisher.publish(Domain.CUSTOMER, event) is False
        assert "Failed to publish" in caplog.text
        assert event.event_id in caplog.text

    def test_unknown_domain_returns_false(self, publisher: EventPublisher):
        """Test that a bad domain is a logged failure, not an exception."""
        assert publisher.publish("invoice", CustomerCreated(customer_id=1, email="a@x.com")) is False

    def test_timeout_returns_false(self):
        """Test that any bus exception, such as a timeout, is swallowed."""
        bus = MagicMock()
        bus.publish.side_effect = TimeoutError("broker did not answer")
        publisher = EventPublisher(bus)

        assert publisher.publish(Domain.TASK, CustomerCreated(customer_id=1, email="a@x.com")) is False

    def test_publish_error_returns_false(self):
        """Test the PublishError path used by the RabbitMQ client."""
        bus = MagicMock()
        bus.publish.side_effect = PublishError("connection refused")

        assert EventPublisher(bus).publish_lead_event(
            LeadStageChanged(lead_id=1, new_stage="WON")
        ) is False
