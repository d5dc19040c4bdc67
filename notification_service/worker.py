"""
Notification worker: wires the consumers to a bus and runs them.

Everything is constructed explicitly from Settings or passed in, so tests
can hand over an InMemoryBroker and a MockEmailGateway while production
uses RabbitMQ and SMTP.
"""

import logging
import signal
import threading
from typing import Optional

from messaging.bus import create_bus
from messaging.event_bus import EventBus
from messaging.topology import declare_topology
from notification_service.consumers import NotificationEventConsumer, UserEventConsumer
from notification_service.service import NotificationService
from notification_service.subscriptions import (
    Subscription,
    build_subscriptions,
    register_subscriptions,
)
from shared.channels import EmailGateway, create_email_gateway
from shared.config import Settings, get_settings
from shared.notification_store import NotificationStore

logger = logging.getLogger("notification_worker")


class NotificationWorker:
    """
    The notification service process.

    Example:
        worker = NotificationWorker(bus=broker)
        worker.start()
        ...
        worker.stop()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
        store: Optional[NotificationStore] = None,
        email_gateway: Optional[EmailGateway] = None,
    ):
        """
        Initialize the worker.

        Args:
            settings: Runtime settings (defaults to environment)
            bus: Bus to consume from (defaults to create_bus(settings))
            store: Notification store (defaults to settings.notification_data_file)
            email_gateway: Outbound mail (defaults to create_email_gateway(settings))
        """
        self.settings = settings or get_settings()
        self.bus = bus or create_bus(self.settings)
        self.store = store or NotificationStore(self.settings.notification_data_file)
        self.email_gateway = email_gateway or create_email_gateway(self.settings)

        self.service = NotificationService(self.store)
        self.notification_consumer = NotificationEventConsumer(
            self.service, admin_recipient=self.settings.admin_recipient
        )
        self.user_consumer = UserEventConsumer(self.service, self.email_gateway)
        self.subscriptions: list[Subscription] = build_subscriptions(
            self.notification_consumer, self.user_consumer
        )

        self._started = False
        self._registered = False
        self._shutdown = threading.Event()

    def start(self) -> None:
        """Declare the topology, register the subscription table and start consuming."""
        if self._started:
            logger.warning("NotificationWorker already started")
            return
        declare_topology(self.bus, self.settings.exchange_name)
        # the bus keeps its handlers across stop/start
        if not self._registered:
            register_subscriptions(self.bus, self.subscriptions)
            self._registered = True
        self._shutdown.clear()
        self.bus.start()
        self._started = True
        logger.info(f"NotificationWorker started with {len(self.subscriptions)} subscriptions")

    def stop(self) -> None:
        if not self._started:
            return
        self.bus.stop()
        self._started = False
        self._shutdown.set()
        logger.info("NotificationWorker stopped")

    def run_forever(self) -> None:
        """Start and block until SIGINT or SIGTERM."""
        def _request_shutdown(signum, frame):
            logger.info(f"Received signal {signum}, shutting down")
            self._shutdown.set()

        signal.signal(signal.SIGTERM, _request_shutdown)
        signal.signal(signal.SIGINT, _request_shutdown)

        self.start()
        try:
            self._shutdown.wait()
        finally:
            self.stop()
