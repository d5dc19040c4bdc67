"""
Domain event definitions shared by every CRM service.

Every event is an immutable envelope (id, type, timestamp, source, schema
version) plus a handful of scalar payload fields. Producers build one right
after committing an entity change; consumers read it back from the bus.

Design decisions:
- Events are named in past tense (customer.created, not CreateCustomer)
- event_type is a Literal on each variant and acts as the discriminant
- Payload fields are scalars only, so consumers never depend on producer types
- Unknown fields are ignored when reading, so any consumer can read the
  common envelope fields of any variant, including newer ones
- EVENT_REGISTRY is the closed set of variants keyed by event_type

Key insight:
- These events are defined by the publishing service (domain ownership)
- Adding fields is backward compatible; removing or renaming is not
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _new_event_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Event Type Constants
# =============================================================================

class EventTypes:
    """
    Constants for event type names.

    Using constants prevents typos and makes it easy to see all event types.
    """
    # customer-service
    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"
    CUSTOMER_DELETED = "customer.deleted"

    # sales-service: leads
    LEAD_CREATED = "lead.created"
    LEAD_UPDATED = "lead.updated"
    LEAD_DELETED = "lead.deleted"
    LEAD_CONVERTED = "lead.converted"
    LEAD_STAGE_CHANGED = "lead.stage.changed"
    LEAD_ASSIGNED = "lead.assigned"
    LEAD_CLOSED = "lead.closed"

    # sales-service: opportunities
    OPPORTUNITY_CREATED = "opportunity.created"
    OPPORTUNITY_UPDATED = "opportunity.updated"
    OPPORTUNITY_DELETED = "opportunity.deleted"
    OPPORTUNITY_WON = "opportunity.won"
    OPPORTUNITY_LOST = "opportunity.lost"

    # task-service
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    TASK_ASSIGNED = "task.assigned"
    TASK_COMPLETED = "task.completed"
    TASK_DUE_SOON = "task.due.soon"
    TASK_DELETED = "task.deleted"

    # auth-service
    USER_REGISTERED = "USER_REGISTERED"


# =============================================================================
# Envelope
# =============================================================================

class EventEnvelope(BaseModel):
    """
    Common fields carried by every domain event.

    Attributes:
        event_id: Unique identifier for this event instance
        event_type: Dotted name of the fact (routing and dispatch key)
        timestamp: When the producer built the event (producer clock)
        source: Which service published the event
        schema_version: Payload shape version, not branched on yet
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    event_id: str = Field(default_factory=_new_event_id)
    event_type: str
    timestamp: datetime = Field(default_factory=_now)
    source: str = "unknown"
    schema_version: str = "1.0"

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


# =============================================================================
# Customer Events
# =============================================================================

class _CustomerDetails(EventEnvelope):
    source: str = "customer-service"
    customer_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    industry: Optional[str] = None
    assigned_to: Optional[str] = None


class CustomerCreated(_CustomerDetails):
    event_type: Literal["customer.created"] = EventTypes.CUSTOMER_CREATED


class CustomerUpdated(_CustomerDetails):
    event_type: Literal["customer.updated"] = EventTypes.CUSTOMER_UPDATED


class CustomerDeleted(EventEnvelope):
    event_type: Literal["customer.deleted"] = EventTypes.CUSTOMER_DELETED
    source: str = "customer-service"
    customer_id: int
    email: Optional[str] = None


# =============================================================================
# Lead Events
# =============================================================================

class _LeadDetails(EventEnvelope):
    source: str = "sales-service"
    lead_id: int
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    industry: Optional[str] = None
    assigned_to: Optional[str] = None
    expected_value: Optional[Decimal] = None
    status: Optional[str] = None


class LeadCreated(_LeadDetails):
    event_type: Literal["lead.created"] = EventTypes.LEAD_CREATED


class LeadUpdated(_LeadDetails):
    event_type: Literal["lead.updated"] = EventTypes.LEAD_UPDATED


class LeadDeleted(EventEnvelope):
    event_type: Literal["lead.deleted"] = EventTypes.LEAD_DELETED
    source: str = "sales-service"
    lead_id: int
    email: Optional[str] = None


class LeadConverted(EventEnvelope):
    """Published when a lead turns into a customer and an opportunity."""
    event_type: Literal["lead.converted"] = EventTypes.LEAD_CONVERTED
    source: str = "sales-service"
    lead_id: int
    email: Optional[str] = None
    customer_id: Optional[int] = None
    opportunity_id: Optional[int] = None


class LeadStageChanged(EventEnvelope):
    event_type: Literal["lead.stage.changed"] = EventTypes.LEAD_STAGE_CHANGED
    source: str = "sales-service"
    lead_id: int
    customer_id: Optional[int] = None
    old_stage: Optional[str] = None
    new_stage: str
    assigned_to: Optional[str] = None


class LeadAssigned(EventEnvelope):
    event_type: Literal["lead.assigned"] = EventTypes.LEAD_ASSIGNED
    source: str = "sales-service"
    lead_id: int
    customer_id: Optional[int] = None
    old_assigned_to: Optional[str] = None
    new_assigned_to: Optional[str] = None


class LeadClosed(EventEnvelope):
    event_type: Literal["lead.closed"] = EventTypes.LEAD_CLOSED
    source: str = "sales-service"
    lead_id: int
    customer_id: Optional[int] = None
    stage: str
    value: Optional[Decimal] = None
    assigned_to: Optional[str] = None


# =============================================================================
# Opportunity Events
# =============================================================================

class _OpportunityDetails(EventEnvelope):
    source: str = "sales-service"
    opportunity_id: int
    name: str
    customer_id: Optional[int] = None
    lead_id: Optional[int] = None
    assigned_to: Optional[str] = None
    amount: Optional[Decimal] = None
    stage: Optional[str] = None
    type: Optional[str] = None


class OpportunityCreated(_OpportunityDetails):
    event_type: Literal["opportunity.created"] = EventTypes.OPPORTUNITY_CREATED


class OpportunityUpdated(_OpportunityDetails):
    event_type: Literal["opportunity.updated"] = EventTypes.OPPORTUNITY_UPDATED


class OpportunityDeleted(EventEnvelope):
    event_type: Literal["opportunity.deleted"] = EventTypes.OPPORTUNITY_DELETED
    source: str = "sales-service"
    opportunity_id: int
    name: Optional[str] = None


class OpportunityWon(EventEnvelope):
    event_type: Literal["opportunity.won"] = EventTypes.OPPORTUNITY_WON
    source: str = "sales-service"
    opportunity_id: int
    name: Optional[str] = None
    amount: Optional[Decimal] = None
    customer_id: Optional[int] = None


class OpportunityLost(EventEnvelope):
    event_type: Literal["opportunity.lost"] = EventTypes.OPPORTUNITY_LOST
    source: str = "sales-service"
    opportunity_id: int
    name: Optional[str] = None
    reason: Optional[str] = None
    customer_id: Optional[int] = None


# =============================================================================
# Task Events
# =============================================================================

class _TaskDetails(EventEnvelope):
    source: str = "task-service"
    task_id: int
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[str] = None
    customer_id: Optional[int] = None
    lead_id: Optional[int] = None
    due_date: Optional[datetime] = None


class TaskCreated(_TaskDetails):
    event_type: Literal["task.created"] = EventTypes.TASK_CREATED


class TaskUpdated(_TaskDetails):
    event_type: Literal["task.updated"] = EventTypes.TASK_UPDATED


class TaskAssigned(EventEnvelope):
    event_type: Literal["task.assigned"] = EventTypes.TASK_ASSIGNED
    source: str = "task-service"
    task_id: int
    old_assigned_to: Optional[str] = None
    new_assigned_to: Optional[str] = None
    title: Optional[str] = None
    due_date: Optional[datetime] = None


class TaskCompleted(EventEnvelope):
    event_type: Literal["task.completed"] = EventTypes.TASK_COMPLETED
    source: str = "task-service"
    task_id: int
    assigned_to: Optional[str] = None
    title: Optional[str] = None
    completed_at: Optional[datetime] = None


class TaskDueSoon(EventEnvelope):
    event_type: Literal["task.due.soon"] = EventTypes.TASK_DUE_SOON
    source: str = "task-service"
    task_id: int
    assigned_to: Optional[str] = None
    title: Optional[str] = None
    due_date: Optional[datetime] = None


class TaskDeleted(EventEnvelope):
    event_type: Literal["task.deleted"] = EventTypes.TASK_DELETED
    source: str = "task-service"
    task_id: int
    title: Optional[str] = None
    assigned_to: Optional[str] = None


# =============================================================================
# User Events
# =============================================================================

class UserRegistered(EventEnvelope):
    """Published by the auth service once an account has been created."""
    event_type: Literal["USER_REGISTERED"] = EventTypes.USER_REGISTERED
    source: str = "auth-service"
    user_id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    registered_at: datetime = Field(default_factory=_now)


# =============================================================================
# Registry and (de)serialization
# =============================================================================

DomainEvent = Union[
    CustomerCreated, CustomerUpdated, CustomerDeleted,
    LeadCreated, LeadUpdated, LeadDeleted, LeadConverted,
    LeadStageChanged, LeadAssigned, LeadClosed,
    OpportunityCreated, OpportunityUpdated, OpportunityDeleted,
    OpportunityWon, OpportunityLost,
    TaskCreated, TaskUpdated, TaskAssigned, TaskCompleted,
    TaskDueSoon, TaskDeleted,
    UserRegistered,
]

EVENT_REGISTRY: dict[str, type[EventEnvelope]] = {
    cls.model_fields["event_type"].default: cls
    for cls in DomainEvent.__args__
}


def serialize_event(event: EventEnvelope) -> bytes:
    """Serialize an event to a field-named JSON document."""
    return event.model_dump_json().encode("utf-8")


def parse_envelope(body: Union[bytes, str]) -> EventEnvelope:
    """
    Read only the common envelope fields of any event.

    Raises:
        pydantic.ValidationError: If the body is not a valid envelope
    """
    return EventEnvelope.model_validate_json(body)


def parse_event(body: Union[bytes, str]) -> EventEnvelope:
    """
    Read an event as its typed variant.

    Event types that are not registered come back as a plain EventEnvelope
    so newer producers do not break older consumers.

    Raises:
        pydantic.ValidationError: If the body is malformed or a registered
            variant is missing required fields
    """
    envelope = parse_envelope(body)
    event_cls = EVENT_REGISTRY.get(envelope.event_type)
    if event_cls is None:
        return envelope
    return event_cls.model_validate_json(body)
