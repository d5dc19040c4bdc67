"""
Tests for the domain event envelope.

These tests verify identity, immutability and the JSON wire form that
producers and consumers share.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from messaging.envelope import (
    EVENT_REGISTRY,
    CustomerCreated,
    EventEnvelope,
    EventTypes,
    LeadClosed,
    LeadStageChanged,
    TaskCompleted,
    UserRegistered,
    parse_envelope,
    parse_event,
    serialize_event,
)


class TestEventEnvelope:
    """Tests for the common envelope fields."""

    def test_defaults(self):
        """Test that id, timestamp, source and version are filled in."""
        event = CustomerCreated(customer_id=42, email="a@x.com")

        assert event.event_type == "customer.created"
        assert event.source == "customer-service"
        assert event.schema_version == "1.0"
        assert event.event_id
        assert event.timestamp.tzinfo is not None

    def test_event_ids_unique_across_10000_events(self):
        """Test that event ids never collide."""
        ids = {CustomerCreated(customer_id=i, email="a@x.com").event_id for i in range(10_000)}

        assert len(ids) == 10_000

    def test_events_are_immutable(self):
        """Test that an event cannot be changed after construction."""
        event = CustomerCreated(customer_id=42, email="a@x.com")

        with pytest.raises(ValidationError):
            event.event_type = "customer.deleted"

    def test_event_type_is_pinned_per_variant(self):
        """Test that a variant refuses a different event_type."""
        with pytest.raises(ValidationError):
            CustomerCreated(event_type="customer.deleted", customer_id=1, email="a@x.com")

    def test_event_str(self):
        """Test event string representation."""
        event = TaskCompleted(task_id=7, title="Call back")

        text = str(event)
        assert "task.completed" in text
        assert "task-service" in text


class TestRegistry:
    """Tests for the closed set of event variants."""

    def test_every_event_type_constant_is_registered(self):
        """Test that each EventTypes constant maps to a variant."""
        constants = {
            value for name, value in vars(EventTypes).items()
            if name.isupper()
        }

        assert constants == set(EVENT_REGISTRY)

    def test_registry_keys_match_variant_discriminant(self):
        """Test that the registry key is the variant's own event_type."""
        for event_type, cls in EVENT_REGISTRY.items():
            assert cls.model_fields["event_type"].default == event_type


class TestSerialization:
    """Tests for the JSON wire form."""

    def test_wire_form_is_field_named_json(self):
        """Test that the body is a JSON object keyed by field name."""
        event = LeadStageChanged(lead_id=5, customer_id=9, old_stage="NEW", new_stage="QUALIFIED")

        doc = json.loads(serialize_event(event))

        assert doc["event_type"] == "lead.stage.changed"
        assert doc["lead_id"] == 5
        assert doc["old_stage"] == "NEW"
        assert doc["new_stage"] == "QUALIFIED"
        assert doc["event_id"] == event.event_id

    def test_round_trip_keeps_every_field(self):
        """Test that parse_event(serialize_event(e)) == e."""
        event = UserRegistered(
            user_id=3,
            username="bob",
            email="b@y.com",
            first_name="Bob",
            last_name="Jones",
            full_name="Bob Jones",
            registered_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        )

        parsed = parse_event(serialize_event(event))

        assert isinstance(parsed, UserRegistered)
        assert parsed == event

    def test_round_trip_keeps_decimal_amounts(self):
        """Test that money fields survive serialization exactly."""
        event = LeadClosed(lead_id=1, stage="CLOSED_WON", value=Decimal("1234.50"))

        parsed = parse_event(serialize_event(event))

        assert parsed.value == Decimal("1234.50")

    def test_parse_envelope_reads_common_fields_of_any_variant(self):
        """Test that consumers can read the envelope without knowing the variant."""
        event = CustomerCreated(customer_id=42, email="a@x.com", company="Acme")

        envelope = parse_envelope(serialize_event(event))

        assert type(envelope) is EventEnvelope
        assert envelope.event_type == "customer.created"
        assert envelope.event_id == event.event_id
        assert envelope.source == "customer-service"
        assert envelope.timestamp == event.timestamp

    def test_unknown_event_type_parses_as_plain_envelope(self):
        """Test forward compatibility with event types added later."""
        body = json.dumps({
            "event_id": "abc",
            "event_type": "invoice.paid",
            "timestamp": "2024-01-01T00:00:00+00:00",
            "source": "billing-service",
            "invoice_id": 99,
        })

        event = parse_event(body)

        assert type(event) is EventEnvelope
        assert event.event_type == "invoice.paid"

    def test_malformed_body_raises(self):
        """Test that garbage input is rejected."""
        with pytest.raises(ValidationError):
            parse_envelope(b"not json")

    def test_registered_variant_missing_fields_raises(self):
        """Test that a known event type must carry its required payload."""
        body = json.dumps({"event_type": "USER_REGISTERED", "email": "x@y.com"})

        with pytest.raises(ValidationError):
            parse_event(body)
