"""
Event bus factory.

Creates the bus implementation selected by settings.bus_backend:
- memory: InMemoryBroker (no external deps, single process)
- rabbitmq: RabbitMQBus (durable broker shared by every service)
"""

import logging
from typing import Optional

from messaging.event_bus import EventBus
from messaging.memory_bus import InMemoryBroker
from messaging.rabbitmq_bus import RabbitMQBus
from shared.config import Settings, get_settings

logger = logging.getLogger("event_bus")


def create_bus(settings: Optional[Settings] = None) -> EventBus:
    """
    Create an event bus for the configured backend.

    Args:
        settings: Runtime settings. None reads them from the environment.
    """
    settings = settings or get_settings()
    if settings.bus_backend == "rabbitmq":
        logger.info(f"Using RabbitMQ bus ({settings.rabbitmq_url or settings.rabbitmq_host})")
        return RabbitMQBus(settings)
    logger.info("Using in-memory bus")
    return InMemoryBroker(
        publish_log_limit=settings.memory_publish_log_limit,
        max_queue_length=settings.memory_max_queue_length,
    )
