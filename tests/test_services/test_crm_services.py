"""
Tests for the producing services.

Each service operation must change its own state and publish exactly one
event with the right type on the right routing key. Publishing is best
effort, so an unavailable broker must never fail the operation.
"""

import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from messaging.envelope import EventTypes, parse_event
from messaging.memory_bus import InMemoryBroker
from messaging.publisher import EventPublisher
from services import (
    AuthService,
    CustomerService,
    EntityNotFound,
    LeadService,
    OpportunityService,
    TaskService,
    UsernameTaken,
)
from shared.models import utcnow


def published(broker: InMemoryBroker):
    """Parsed events in publish order, paired with their routing keys."""
    return [(m.routing_key, parse_event(m.body)) for m in broker.get_publish_log()]


class TestCustomerService:
    """Tests for customer events."""

    def test_create_publishes_customer_created(self, broker, publisher):
        service = CustomerService(publisher)

        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee", company="Acme")

        [(key, event)] = published(broker)
        assert key == "customer.events.customer.created"
        assert event.event_type == EventTypes.CUSTOMER_CREATED
        assert event.customer_id == customer.id
        assert event.company == "Acme"
        assert event.source == "customer-service"

    def test_update_publishes_new_values(self, broker, publisher):
        service = CustomerService(publisher)
        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee")

        updated = service.update_customer(customer.id, industry="Retail")

        assert updated.industry == "Retail"
        key, event = published(broker)[-1]
        assert event.event_type == EventTypes.CUSTOMER_UPDATED
        assert event.industry == "Retail"

    def test_delete(self, broker, publisher):
        service = CustomerService(publisher)
        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee")

        service.delete_customer(customer.id)

        _, event = published(broker)[-1]
        assert event.event_type == EventTypes.CUSTOMER_DELETED
        assert service.customers.get(customer.id) is None

    def test_missing_customer_raises_and_publishes_nothing(self, broker, publisher):
        service = CustomerService(publisher)

        with pytest.raises(EntityNotFound) as exc:
            service.update_customer(99, industry="Retail")

        assert exc.value.entity == "Customer"
        assert exc.value.entity_id == 99
        assert broker.get_publish_log() == []

    def test_broker_outage_does_not_fail_operation(self, broker, publisher, caplog):
        """Test best-effort publishing."""
        broker.available = False
        service = CustomerService(publisher)

        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee")

        assert service.customers.get(customer.id) == customer
        assert "Failed to publish" in caplog.text

    def test_invalid_update_is_rejected_before_commit(self, broker, publisher):
        """Test that a change failing validation leaves the customer as it was."""
        service = CustomerService(publisher)
        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee")

        with pytest.raises(ValidationError):
            service.update_customer(customer.id, email=None)

        assert service.customers.get(customer.id).email == "a@x.com"
        assert len(broker.get_publish_log()) == 1

    def test_event_build_failure_does_not_fail_operation(self, broker, publisher, monkeypatch, caplog):
        """Test that an event that cannot be built is logged after the commit."""
        service = CustomerService(publisher)
        customer = service.create_customer(email="a@x.com", first_name="Ann", last_name="Lee")

        def CustomerUpdated(**fields):
            raise ValueError("unsupported field value")

        monkeypatch.setattr("services.customers.CustomerUpdated", CustomerUpdated)

        updated = service.update_customer(customer.id, industry="Retail")

        assert updated.industry == "Retail"
        assert service.customers.get(customer.id).industry == "Retail"
        assert "Failed to build CustomerUpdated" in caplog.text
        assert len(broker.get_publish_log()) == 1


class TestLeadService:
    """Tests for lead pipeline events."""

    def test_lifecycle_event_types(self, broker, publisher):
        service = LeadService(publisher)
        lead = service.create_lead(email="l@x.com", company="Acme", expected_value=Decimal("1000"))

        service.change_stage(lead.id, "QUALIFICATION")
        service.assign_lead(lead.id, "rep1")
        service.close_lead(lead.id, won=True)

        types = [event.event_type for _, event in published(broker)]
        assert types == [
            EventTypes.LEAD_CREATED,
            EventTypes.LEAD_STAGE_CHANGED,
            EventTypes.LEAD_ASSIGNED,
            EventTypes.LEAD_CLOSED,
        ]
        assert all(key.startswith("lead.events.") for key, _ in published(broker))

    def test_stage_change_carries_old_and_new(self, broker, publisher):
        service = LeadService(publisher)
        lead = service.create_lead(email="l@x.com")

        service.change_stage(lead.id, "NEGOTIATION")

        _, event = published(broker)[-1]
        assert event.old_stage == "PROSPECTING"
        assert event.new_stage == "NEGOTIATION"

    def test_close_lost_uses_expected_value(self, broker, publisher):
        service = LeadService(publisher)
        lead = service.create_lead(email="l@x.com", expected_value=Decimal("250.50"))

        closed = service.close_lead(lead.id, won=False)

        assert closed.stage == "CLOSED_LOST"
        _, event = published(broker)[-1]
        assert event.stage == "CLOSED_LOST"
        assert event.value == Decimal("250.50")

    def test_convert(self, broker, publisher):
        service = LeadService(publisher)
        lead = service.create_lead(email="l@x.com")

        converted = service.convert_lead(lead.id, customer_id=7, opportunity_id=3)

        assert converted.status == "CONVERTED"
        _, event = published(broker)[-1]
        assert event.event_type == EventTypes.LEAD_CONVERTED
        assert (event.customer_id, event.opportunity_id) == (7, 3)

    def test_delete_missing_raises(self, publisher):
        with pytest.raises(EntityNotFound):
            LeadService(publisher).delete_lead(1)


class TestOpportunityService:
    """Tests for opportunity events."""

    def test_won_and_lost(self, broker, publisher):
        service = OpportunityService(publisher)
        big = service.create_opportunity("Big deal", amount=Decimal("50000"), customer_id=1)
        small = service.create_opportunity("Small deal")

        service.mark_won(big.id)
        lost = service.mark_lost(small.id, reason="Price too high")

        assert lost.loss_reason == "Price too high"
        events = [event for _, event in published(broker)]
        assert events[2].event_type == EventTypes.OPPORTUNITY_WON
        assert events[2].amount == Decimal("50000")
        assert events[3].event_type == EventTypes.OPPORTUNITY_LOST
        assert events[3].reason == "Price too high"

    def test_routing_key(self, broker, publisher):
        OpportunityService(publisher).create_opportunity("Deal")

        [(key, _)] = published(broker)
        assert key == "opportunity.events.opportunity.created"


class TestTaskService:
    """Tests for task events and due-soon lookup."""

    def test_assign_and_complete(self, broker, publisher):
        service = TaskService(publisher)
        task = service.create_task("Call Acme", assigned_to="rep1")

        service.assign_task(task.id, "rep2")
        done = service.complete_task(task.id)

        assert done.status == "COMPLETED"
        assert done.completed_at is not None
        events = [event for _, event in published(broker)]
        assert events[1].old_assigned_to == "rep1"
        assert events[1].new_assigned_to == "rep2"
        assert events[2].event_type == EventTypes.TASK_COMPLETED

    def test_invalid_due_date_is_rejected(self, publisher):
        service = TaskService(publisher)
        task = service.create_task("Call")

        with pytest.raises(ValidationError):
            service.update_task(task.id, due_date="next tuesday")

        assert service.tasks.get(task.id).due_date is None

    def test_find_due_soon(self, publisher):
        service = TaskService(publisher)
        now = utcnow()
        soon = service.create_task("Soon", due_date=now + timedelta(hours=2))
        service.create_task("Later", due_date=now + timedelta(days=3))
        service.create_task("No date")
        done = service.create_task("Done", due_date=now + timedelta(hours=1))
        service.complete_task(done.id)

        assert [t.id for t in service.find_due_soon(now)] == [soon.id]

    def test_mark_due_soon_publishes_reminder(self, broker, publisher):
        service = TaskService(publisher)
        task = service.create_task("Call", due_date=utcnow() + timedelta(hours=1))

        service.mark_due_soon(task.id)

        key, event = published(broker)[-1]
        assert key == "task.events.task.due.soon"
        assert event.task_id == task.id

    def test_delete(self, broker, publisher):
        service = TaskService(publisher)
        task = service.create_task("Call")

        service.delete_task(task.id)

        _, event = published(broker)[-1]
        assert event.event_type == EventTypes.TASK_DELETED


class TestAuthService:
    """Tests for user registration."""

    def test_register_publishes_user_registered(self, broker, publisher):
        user = AuthService(publisher).register("bob", "b@y.com", "Bob", "Jones")

        [(key, event)] = published(broker)
        assert key == "user.events.USER_REGISTERED"
        assert event.event_type == EventTypes.USER_REGISTERED
        assert event.user_id == user.id
        assert event.full_name == "Bob Jones"
        assert event.source == "auth-service"

    def test_duplicate_username_rejected(self, broker, publisher):
        service = AuthService(publisher)
        service.register("bob", "b@y.com")

        with pytest.raises(UsernameTaken):
            service.register("bob", "other@y.com")

        assert len(broker.get_publish_log()) == 1

    def test_full_name_without_names(self, publisher):
        user = AuthService(publisher).register("solo", "s@y.com")

        assert user.full_name == ""

    def test_registration_survives_broker_outage(self, broker: InMemoryBroker, publisher: EventPublisher):
        broker.available = False

        user = AuthService(publisher).register("bob", "b@y.com")

        assert user.id == 1
        assert broker.get_publish_log() == []

    def test_concurrent_registrations_of_one_username(self, broker, publisher):
        """Test that only one of many simultaneous registrations wins."""
        service = AuthService(publisher)
        barrier = threading.Barrier(8)
        outcomes = []

        def register(i):
            barrier.wait()
            try:
                service.register("bob", f"b{i}@y.com")
                outcomes.append("ok")
            except UsernameTaken:
                outcomes.append("taken")

        threads = [threading.Thread(target=register, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["ok"] + ["taken"] * 7
        assert len(service.users.all()) == 1
        assert len(broker.get_publish_log()) == 1
