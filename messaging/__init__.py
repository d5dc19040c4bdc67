"""
Domain-event distribution for the CRM services.

This package contains everything producers and consumers share:
- Event envelope and its variants (envelope.py)
- Exchange, queue and binding layout (topology.py)
- Bus clients: in-memory and RabbitMQ (memory_bus.py, rabbitmq_bus.py)
- The best-effort publisher used by producing services (publisher.py)
"""

from messaging.bus import create_bus
from messaging.envelope import (
    EVENT_REGISTRY,
    EventEnvelope,
    EventTypes,
    parse_envelope,
    parse_event,
    serialize_event,
)
from messaging.event_bus import EventBus, Message, MessageHandler, PublishError
from messaging.memory_bus import InMemoryBroker
from messaging.publisher import EventPublisher
from messaging.rabbitmq_bus import RabbitMQBus
from messaging.topology import (
    BINDINGS,
    EXCHANGE_NAME,
    Binding,
    Domain,
    declare_topology,
    routing_key_for,
    topic_matches,
)

__all__ = [
    "create_bus",
    "EVENT_REGISTRY",
    "EventEnvelope",
    "EventTypes",
    "parse_envelope",
    "parse_event",
    "serialize_event",
    "EventBus",
    "Message",
    "MessageHandler",
    "PublishError",
    "InMemoryBroker",
    "EventPublisher",
    "RabbitMQBus",
    "BINDINGS",
    "EXCHANGE_NAME",
    "Binding",
    "Domain",
    "declare_topology",
    "routing_key_for",
    "topic_matches",
]
