"""
RabbitMQ implementation of the EventBus contract, built on pika.

pika's BlockingConnection is not thread-safe, so this client keeps one
connection for publishing (guarded by a lock) and opens a separate
connection inside every consumer thread.

Design decisions:
- Declarations are recorded and replayed on every new connection, so a
  reconnecting consumer finds its exchange, queue and binding in place
- Consumers ack after the handler returns or raises; nothing is requeued
  or retried, matching the at-most-once delivery the services rely on
- A consumer thread that loses its connection waits reconnect_delay and
  reconnects until stop() is called
- Publish failures drop the publisher connection and raise PublishError
"""

import logging
import threading
from collections import defaultdict
from functools import partial
from typing import Any, Optional

import pika
import pika.exceptions

from messaging.event_bus import EventBus, Message, MessageHandler, PublishError
from messaging.topology import Binding
from shared.config import Settings

logger = logging.getLogger("rabbitmq_bus")

PERSISTENT_DELIVERY_MODE = 2

# Errors that mean "the broker connection is gone or unusable"
CONNECTION_ERRORS = (pika.exceptions.AMQPError, OSError)


def create_connection_parameters(settings: Settings) -> pika.connection.Parameters:
    """Build pika connection parameters, preferring RABBITMQ_URL when set."""
    if settings.rabbitmq_url:
        return pika.URLParameters(settings.rabbitmq_url)
    return pika.ConnectionParameters(
        host=settings.rabbitmq_host,
        port=settings.rabbitmq_port,
        virtual_host=settings.rabbitmq_vhost,
        credentials=pika.PlainCredentials(settings.rabbitmq_user, settings.rabbitmq_password),
        heartbeat=settings.rabbitmq_heartbeat,
        blocked_connection_timeout=settings.rabbitmq_blocked_connection_timeout,
        socket_timeout=settings.rabbitmq_socket_timeout,
    )


class RabbitMQBus(EventBus):
    """
    EventBus backed by a RabbitMQ broker.

    Example usage:
        bus = RabbitMQBus(get_settings())
        declare_topology(bus)
        bus.subscribe("customer.events.queue", consumer.handle_message)
        bus.start()
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.parameters = create_connection_parameters(settings)

        self._exchanges: list[str] = []
        self._queues: list[str] = []
        self._bindings: list[tuple[str, str, str]] = []
        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)

        self._publish_lock = threading.Lock()
        self._publish_connection = None
        self._publish_channel = None

        self._running = False
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._consumers: list[tuple[Any, Any]] = []
        self._consumers_lock = threading.Lock()

    # =========================================================================
    # Declarations
    # =========================================================================

    def declare_exchange(self, exchange: str) -> None:
        if exchange not in self._exchanges:
            self._exchanges.append(exchange)

    def declare_queue(self, queue: str) -> None:
        if queue not in self._queues:
            self._queues.append(queue)

    def bind(self, queue: str, exchange: str, pattern: str) -> None:
        entry = (queue, exchange, Binding(queue=queue, pattern=pattern).broker_pattern)
        if entry not in self._bindings:
            self._bindings.append(entry)

    def _apply_declarations(self, channel) -> None:
        for exchange in self._exchanges:
            channel.exchange_declare(exchange=exchange, exchange_type="topic", durable=True)
        for queue in self._queues:
            channel.queue_declare(queue=queue, durable=True)
        for queue, exchange, routing_key in self._bindings:
            channel.queue_bind(queue=queue, exchange=exchange, routing_key=routing_key)

    # =========================================================================
    # Publishing
    # =========================================================================

    def _ensure_publish_channel(self):
        # caller holds self._publish_lock
        if self._publish_channel is not None and self._publish_channel.is_open:
            return self._publish_channel
        self._publish_connection = pika.BlockingConnection(self.parameters)
        channel = self._publish_connection.channel()
        self._apply_declarations(channel)
        self._publish_channel = channel
        logger.info("Publisher connection to RabbitMQ established")
        return channel

    def _reset_publisher(self) -> None:
        connection = self._publish_connection
        self._publish_connection = None
        self._publish_channel = None
        if connection is not None and connection.is_open:
            try:
                connection.close()
            except CONNECTION_ERRORS as e:
                logger.debug(f"Error closing publisher connection: {e}")

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        headers: Optional[dict[str, Any]] = None,
        content_type: str = "application/json",
    ) -> None:
        properties = pika.BasicProperties(
            content_type=content_type,
            headers=dict(headers or {}),
            delivery_mode=PERSISTENT_DELIVERY_MODE,
        )
        with self._publish_lock:
            try:
                channel = self._ensure_publish_channel()
                channel.basic_publish(
                    exchange=exchange,
                    routing_key=routing_key,
                    body=body,
                    properties=properties,
                )
            except CONNECTION_ERRORS as e:
                self._reset_publisher()
                raise PublishError(f"Failed to publish to '{exchange}' with key '{routing_key}': {e}") from e

    # =========================================================================
    # Consuming
    # =========================================================================

    def subscribe(self, queue: str, handler: MessageHandler) -> None:
        self._handlers[queue].append(handler)
        if self._running:
            self._spawn_consumer(queue, handler)

    def start(self) -> None:
        if self._running:
            logger.warning("RabbitMQ bus already running")
            return
        self._running = True
        self._stop_event.clear()
        for queue, handlers in self._handlers.items():
            for handler in handlers:
                self._spawn_consumer(queue, handler)
        logger.info(f"RabbitMQ bus started with {len(self._threads)} consumer thread(s)")

    def stop(self, timeout: float = 5.0) -> None:
        if self._running:
            self._running = False
            self._stop_event.set()
            with self._consumers_lock:
                consumers = list(self._consumers)
            for connection, channel in consumers:
                try:
                    connection.add_callback_threadsafe(channel.stop_consuming)
                except CONNECTION_ERRORS as e:
                    logger.debug(f"Consumer connection already closed: {e}")
            for thread in self._threads:
                thread.join(timeout=timeout)
            self._threads.clear()
        with self._publish_lock:
            self._reset_publisher()
        logger.info("RabbitMQ bus stopped")

    def _spawn_consumer(self, queue: str, handler: MessageHandler) -> None:
        thread = threading.Thread(
            target=self._consume_loop,
            args=(queue, handler),
            name=f"consumer-{queue}-{len(self._threads)}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def _consume_loop(self, queue: str, handler: MessageHandler) -> None:
        while self._running:
            connection = None
            consumer = None
            try:
                connection = pika.BlockingConnection(self.parameters)
                channel = connection.channel()
                consumer = (connection, channel)
                with self._consumers_lock:
                    self._consumers.append(consumer)

                self._apply_declarations(channel)
                channel.basic_qos(prefetch_count=self.settings.rabbitmq_prefetch_count)
                channel.basic_consume(
                    queue=queue,
                    on_message_callback=partial(self._on_message, handler),
                    auto_ack=False,
                )
                logger.info(f"Listening on queue '{queue}'")
                channel.start_consuming()
            except CONNECTION_ERRORS as e:
                logger.error(f"Consumer on '{queue}' lost its connection: {e}")
            finally:
                if consumer is not None:
                    with self._consumers_lock:
                        self._consumers.remove(consumer)
                if connection is not None:
                    if connection.is_open:
                        try:
                            connection.close()
                        except CONNECTION_ERRORS as e:
                            logger.debug(f"Error closing consumer connection: {e}")

            if self._running:
                logger.info(f"Reconnecting consumer on '{queue}' in {self.settings.rabbitmq_reconnect_delay}s")
                self._stop_event.wait(self.settings.rabbitmq_reconnect_delay)

    def _on_message(self, handler: MessageHandler, channel, method, properties, body: bytes) -> None:
        message = Message(
            routing_key=method.routing_key,
            body=body,
            headers=dict(properties.headers or {}),
            content_type=properties.content_type or "application/json",
            exchange=method.exchange,
        )
        try:
            handler(message)
        except Exception as e:
            logger.error(f"Handler raised for {message}: {e}")
        finally:
            channel.basic_ack(delivery_tag=method.delivery_tag)
