"""
Bus topology: one topic exchange, one durable queue per domain.

Producers only know the exchange and a routing key of the form
<domain>.events.<event_type>. Which queues receive the message is decided
by the bindings declared here, so new consumers can subscribe to a domain
without the producer knowing about them.

Design decisions:
- A trailing "*" in a binding matches the whole event type, even when the
  event type itself contains dots (lead.events.* matches
  lead.events.lead.stage.changed)
- On a real AMQP broker "*" is exactly one word, so bindings are declared
  there with a trailing "#" instead (see Binding.broker_pattern)
- The user queue keeps its historical name but uses the same wildcard
  binding as every other domain
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from messaging.event_bus import EventBus

logger = logging.getLogger("bus_topology")

EXCHANGE_NAME = "crm.events.exchange"


class Domain(str, Enum):
    """Business areas that publish events."""
    CUSTOMER = "customer"
    LEAD = "lead"
    TASK = "task"
    OPPORTUNITY = "opportunity"
    USER = "user"


# =============================================================================
# Queues
# =============================================================================

CUSTOMER_QUEUE = "customer.events.queue"
LEAD_QUEUE = "lead.events.queue"
TASK_QUEUE = "task.events.queue"
OPPORTUNITY_QUEUE = "opportunity.events.queue"
USER_REGISTERED_QUEUE = "user.events.user.registered"

QUEUE_FOR_DOMAIN: dict[Domain, str] = {
    Domain.CUSTOMER: CUSTOMER_QUEUE,
    Domain.LEAD: LEAD_QUEUE,
    Domain.TASK: TASK_QUEUE,
    Domain.OPPORTUNITY: OPPORTUNITY_QUEUE,
    Domain.USER: USER_REGISTERED_QUEUE,
}


def domain_pattern(domain: Union[Domain, str]) -> str:
    """Binding pattern covering every event of a domain."""
    return f"{Domain(domain).value}.events.*"


def routing_key_for(domain: Union[Domain, str], event_type: str) -> str:
    """
    Build the routing key for an event.

    Raises:
        ValueError: If domain is not a known Domain
    """
    return f"{Domain(domain).value}.events.{event_type}"


# =============================================================================
# Matching
# =============================================================================

def _match_words(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match_words(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" and not rest:
        # trailing "*" takes the rest of the key as the event type
        return True
    if head == "*" or head == words[0]:
        return _match_words(rest, words[1:])
    return False


def topic_matches(pattern: str, routing_key: str) -> bool:
    """
    Check whether a routing key matches a binding pattern.

    "#" matches zero or more words and "*" matches one word, except that a
    trailing "*" matches one or more words (the dotted event type).

    Examples:
        topic_matches("lead.events.*", "lead.events.lead.stage.changed")  # True
        topic_matches("customer.events.*", "lead.events.lead.created")     # False
    """
    return _match_words(pattern.split("."), routing_key.split("."))


@dataclass(frozen=True)
class Binding:
    """A queue bound to the exchange with a topic pattern."""
    queue: str
    pattern: str

    def matches(self, routing_key: str) -> bool:
        return topic_matches(self.pattern, routing_key)

    @property
    def broker_pattern(self) -> str:
        """The pattern as declared on an AMQP broker."""
        if self.pattern.endswith(".*"):
            return self.pattern[:-1] + "#"
        return self.pattern


BINDINGS: tuple[Binding, ...] = tuple(
    Binding(queue=QUEUE_FOR_DOMAIN[d], pattern=domain_pattern(d)) for d in Domain
)


def binding_for(queue: str) -> Binding:
    """
    Look up the declared binding of a queue.

    Raises:
        ValueError: if the queue is not part of the topology
    """
    for binding in BINDINGS:
        if binding.queue == queue:
            return binding
    raise ValueError(f"Queue '{queue}' is not declared in the topology")


def declare_topology(bus: "EventBus", exchange: str = EXCHANGE_NAME) -> None:
    """Declare the exchange, every domain queue and its binding on a bus."""
    bus.declare_exchange(exchange)
    for binding in BINDINGS:
        bus.declare_queue(binding.queue)
        bus.bind(binding.queue, exchange, binding.pattern)
    logger.info(f"Declared exchange '{exchange}' with {len(BINDINGS)} queue bindings")
