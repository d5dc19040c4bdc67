"""
Shared pytest fixtures for the CRM event services tests.

These fixtures provide fresh, in-process collaborators for every test:
an in-memory broker with the CRM topology declared, a notification store,
mock email gateways and a publisher.
"""

import pytest

from messaging.memory_bus import InMemoryBroker
from messaging.publisher import EventPublisher
from messaging.topology import declare_topology
from notification_service.consumers import NotificationEventConsumer, UserEventConsumer
from notification_service.service import NotificationService
from notification_service.subscriptions import build_subscriptions, register_subscriptions
from notification_service.worker import NotificationWorker
from shared.channels import MockEmailGateway
from shared.config import Settings
from shared.notification_store import NotificationStore


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def broker() -> InMemoryBroker:
    """Fresh in-memory broker with exchange, queues and bindings declared."""
    broker = InMemoryBroker()
    declare_topology(broker)
    yield broker
    broker.stop()


@pytest.fixture
def publisher(broker: InMemoryBroker) -> EventPublisher:
    return EventPublisher(broker)


@pytest.fixture
def store() -> NotificationStore:
    """In-memory notification store."""
    return NotificationStore()


@pytest.fixture
def notification_service(store: NotificationStore) -> NotificationService:
    return NotificationService(store)


@pytest.fixture
def email_gateway() -> MockEmailGateway:
    """Email gateway that records every send."""
    return MockEmailGateway()


@pytest.fixture
def failing_email_gateway() -> MockEmailGateway:
    """Email gateway whose every send raises EmailDeliveryError."""
    return MockEmailGateway(fail=True)


@pytest.fixture
def notification_consumer(notification_service: NotificationService) -> NotificationEventConsumer:
    return NotificationEventConsumer(notification_service)


@pytest.fixture
def user_consumer(notification_service: NotificationService, email_gateway: MockEmailGateway) -> UserEventConsumer:
    return UserEventConsumer(notification_service, email_gateway)


@pytest.fixture
def wired_broker(
    broker: InMemoryBroker,
    notification_consumer: NotificationEventConsumer,
    user_consumer: UserEventConsumer,
) -> InMemoryBroker:
    """
    Broker with the notification subscription table registered but not started.

    Tests call broker.drain() to deliver synchronously.
    """
    register_subscriptions(broker, build_subscriptions(notification_consumer, user_consumer))
    return broker


@pytest.fixture
def worker(settings, broker, store, email_gateway) -> NotificationWorker:
    """Started notification worker consuming from the broker on background threads."""
    worker = NotificationWorker(settings=settings, bus=broker, store=store, email_gateway=email_gateway)
    worker.start()
    yield worker
    worker.stop()
