"""
Bus client contract shared by the in-memory and RabbitMQ implementations.

Services publish bytes to an exchange with a routing key; consumers
subscribe handlers to named queues. The bus is constructed once at startup
and passed to whoever needs it; there is no module-level default instance.

Design decisions:
- Messages are opaque bytes plus headers; the envelope codec lives elsewhere
- Handlers receive the whole Message so they can read headers and the key
- A handler that raises does not stop the bus; the message counts as consumed
- Declarations are idempotent so every process can declare the topology
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


class PublishError(RuntimeError):
    """Raised by a bus client when a message could not be handed to the broker."""


@dataclass(frozen=True)
class Message:
    """
    A message as seen on the bus.

    Attributes:
        routing_key: Dotted topic used for routing
        body: Serialized event
        headers: Transport headers (event_type, event_id, schema_version)
        content_type: MIME type of the body
        exchange: Exchange the message was published to
    """
    routing_key: str
    body: bytes
    headers: dict[str, Any] = field(default_factory=dict)
    content_type: str = "application/json"
    exchange: str = ""

    def __str__(self) -> str:
        return f"Message({self.routing_key}, {len(self.body)} bytes)"


# Type alias for message handler functions
MessageHandler = Callable[[Message], None]


class EventBus(ABC):
    """
    Topic publish/subscribe client.

    Example usage:
        bus = create_bus(settings)
        declare_topology(bus)
        bus.subscribe("customer.events.queue", consumer.handle_message)
        bus.start()

        bus.publish("crm.events.exchange", "customer.events.customer.created", body)
    """

    @abstractmethod
    def declare_exchange(self, exchange: str) -> None:
        """Declare a durable topic exchange."""

    @abstractmethod
    def declare_queue(self, queue: str) -> None:
        """Declare a durable queue."""

    @abstractmethod
    def bind(self, queue: str, exchange: str, pattern: str) -> None:
        """Bind a queue to an exchange with a topic pattern."""

    @abstractmethod
    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        headers: Optional[dict[str, Any]] = None,
        content_type: str = "application/json",
    ) -> None:
        """
        Send one message to an exchange.

        Raises:
            PublishError: If the message could not be handed to the broker
        """

    @abstractmethod
    def subscribe(self, queue: str, handler: MessageHandler) -> None:
        """Attach a handler to a queue. Takes effect on start()."""

    @abstractmethod
    def start(self) -> None:
        """Begin delivering messages to subscribed handlers."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivery and release connections."""

    def __enter__(self) -> "EventBus":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
