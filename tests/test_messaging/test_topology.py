"""
Tests for the exchange/queue layout and topic matching.
"""

import pytest

from messaging.topology import (
    BINDINGS,
    CUSTOMER_QUEUE,
    LEAD_QUEUE,
    OPPORTUNITY_QUEUE,
    TASK_QUEUE,
    USER_REGISTERED_QUEUE,
    Binding,
    Domain,
    routing_key_for,
    topic_matches,
)


class TestRoutingKeys:
    """Tests for routing key construction."""

    def test_routing_key_format(self):
        """Test <domain>.events.<event_type>."""
        assert routing_key_for(Domain.LEAD, "lead.stage.changed") == "lead.events.lead.stage.changed"
        assert routing_key_for("user", "USER_REGISTERED") == "user.events.USER_REGISTERED"

    def test_unknown_domain_rejected(self):
        """Test that only the five domains are accepted."""
        with pytest.raises(ValueError):
            routing_key_for("invoice", "invoice.paid")


class TestTopicMatching:
    """Tests for binding pattern matching."""

    @pytest.mark.parametrize("pattern,key,expected", [
        ("lead.events.*", "lead.events.lead.stage.changed", True),
        ("lead.events.*", "lead.events.lead.created", True),
        ("customer.events.*", "lead.events.lead.stage.changed", False),
        ("user.events.*", "user.events.USER_REGISTERED", True),
        ("lead.events.*", "lead.events", False),
        ("lead.*.created", "lead.events.created", True),
        ("lead.*.created", "lead.events.extra.created", False),
        ("lead.#", "lead", True),
        ("lead.#", "lead.events.lead.created", True),
        ("#", "anything.at.all", True),
        ("task.events.task.completed", "task.events.task.completed", True),
        ("task.events.task.completed", "task.events.task.created", False),
    ])
    def test_topic_matches(self, pattern, key, expected):
        """Test wildcard semantics."""
        assert topic_matches(pattern, key) is expected

    def test_broker_pattern_widens_trailing_star(self):
        """Test that bindings become '#' patterns on a real AMQP broker."""
        assert Binding("lead.events.queue", "lead.events.*").broker_pattern == "lead.events.#"
        assert Binding("q", "lead.events.lead.created").broker_pattern == "lead.events.lead.created"


class TestBindings:
    """Tests for the declared topology."""

    def test_one_binding_per_domain(self):
        """Test that every domain queue is bound with its wildcard pattern."""
        assert {(b.queue, b.pattern) for b in BINDINGS} == {
            (CUSTOMER_QUEUE, "customer.events.*"),
            (LEAD_QUEUE, "lead.events.*"),
            (TASK_QUEUE, "task.events.*"),
            (OPPORTUNITY_QUEUE, "opportunity.events.*"),
            (USER_REGISTERED_QUEUE, "user.events.*"),
        }

    def test_lead_stage_change_reaches_only_lead_queue(self):
        """Test that a dotted lead event is routed to the lead queue alone."""
        key = routing_key_for(Domain.LEAD, "lead.stage.changed")

        assert [b.queue for b in BINDINGS if b.matches(key)] == [LEAD_QUEUE]

    def test_user_registered_reaches_user_queue(self):
        """Test that USER_REGISTERED lands on the user registration queue."""
        key = routing_key_for(Domain.USER, "USER_REGISTERED")

        assert [b.queue for b in BINDINGS if b.matches(key)] == [USER_REGISTERED_QUEUE]
