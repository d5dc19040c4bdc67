"""
In-memory topic broker for tests, demos and single-process deployments.

This behaves like a small RabbitMQ: a topic exchange copies each published
message into every bound queue whose pattern matches, queues hold messages
until a consumer takes them, and every queue with subscribers is served by
its own worker thread once the broker is started.

Design decisions:
- Handlers on different queues run in parallel (one thread per queue)
- Handlers on the same queue compete for messages (round-robin)
- A handler exception is logged and counted; the message is still consumed
- Messages published before start() wait in their queue
- drain() delivers synchronously on the calling thread, which keeps tests
  deterministic without starting any threads

Observability:
- Bounded publish log of the most recent messages accepted by an exchange
- Per-queue error, drop and processed-message counters

Memory:
- A queue nobody consumes (the opportunity queue in the CRM topology) keeps
  growing until max_queue_length is reached; past that the oldest message
  is dropped, like a RabbitMQ queue declared with x-max-length
"""

import logging
import threading
from collections import defaultdict, deque
from typing import Any, Optional

from messaging.event_bus import EventBus, Message, MessageHandler, PublishError
from messaging.topology import Binding

logger = logging.getLogger("memory_bus")


class InMemoryBroker(EventBus):
    """
    Thread-based in-process implementation of the EventBus contract.

    Example usage:
        broker = InMemoryBroker()
        declare_topology(broker)
        broker.subscribe("lead.events.queue", handler)
        broker.publish("crm.events.exchange", "lead.events.lead.created", b"{}")
        broker.drain()  # or broker.start() for background delivery
    """

    DEFAULT_PUBLISH_LOG_LIMIT = 10_000

    def __init__(
        self,
        publish_log_limit: Optional[int] = DEFAULT_PUBLISH_LOG_LIMIT,
        max_queue_length: Optional[int] = None,
    ):
        """
        Args:
            publish_log_limit: Messages kept in the publish log (None keeps all)
            max_queue_length: Per-queue cap; the oldest message is dropped past it.
                              None leaves queues unbounded.
        """
        self.max_queue_length = max_queue_length
        self._cond = threading.Condition(threading.RLock())
        self._exchanges: set[str] = set()
        self._queues: dict[str, deque[Message]] = {}
        self._bindings: dict[str, list[Binding]] = defaultdict(list)
        self._handlers: dict[str, list[MessageHandler]] = defaultdict(list)
        self._next_handler: dict[str, int] = defaultdict(int)
        self._in_flight = 0

        self._running = False
        self._workers: dict[str, threading.Thread] = {}

        # Simulates an unreachable broker when False
        self.available = True

        # Observability
        self._publish_log: deque[Message] = deque(maxlen=publish_log_limit)
        self._error_counts: dict[str, int] = defaultdict(int)
        self._dropped_counts: dict[str, int] = defaultdict(int)
        self._messages_processed = 0

    # =========================================================================
    # Declarations
    # =========================================================================

    def declare_exchange(self, exchange: str) -> None:
        with self._cond:
            self._exchanges.add(exchange)

    def declare_queue(self, queue: str) -> None:
        with self._cond:
            self._queues.setdefault(queue, deque())

    def bind(self, queue: str, exchange: str, pattern: str) -> None:
        """
        Bind a queue to an exchange.

        Raises:
            ValueError: If the queue or the exchange has not been declared
        """
        with self._cond:
            if queue not in self._queues:
                raise ValueError(f"Queue not declared: {queue}")
            if exchange not in self._exchanges:
                raise ValueError(f"Exchange not declared: {exchange}")
            binding = Binding(queue=queue, pattern=pattern)
            if binding not in self._bindings[exchange]:
                self._bindings[exchange].append(binding)
        logger.debug(f"Bound '{queue}' to '{exchange}' with '{pattern}'")

    # =========================================================================
    # Publish / subscribe
    # =========================================================================

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        headers: Optional[dict[str, Any]] = None,
        content_type: str = "application/json",
    ) -> int:
        """
        Route a message to every matching queue.

        Returns:
            Number of queues the message was copied into

        Raises:
            PublishError: If the broker is unavailable or the exchange is unknown
        """
        if not self.available:
            raise PublishError("Broker unavailable")

        message = Message(
            routing_key=routing_key,
            body=body,
            headers=dict(headers or {}),
            content_type=content_type,
            exchange=exchange,
        )
        with self._cond:
            if exchange not in self._exchanges:
                raise PublishError(f"Exchange not declared: {exchange}")
            self._publish_log.append(message)
            routed = 0
            dropped = []
            for binding in self._bindings[exchange]:
                if binding.matches(routing_key):
                    pending = self._queues[binding.queue]
                    if self.max_queue_length is not None and len(pending) >= self.max_queue_length:
                        pending.popleft()
                        self._dropped_counts[binding.queue] += 1
                        dropped.append(binding.queue)
                    pending.append(message)
                    routed += 1
            self._cond.notify_all()

        for queue in dropped:
            logger.warning(f"Queue '{queue}' is full ({self.max_queue_length}), dropped its oldest message")
        if routed == 0:
            logger.warning(f"No queue bound for routing key '{routing_key}', message dropped")
        else:
            logger.debug(f"Routed {message} to {routed} queue(s)")
        return routed

    def subscribe(self, queue: str, handler: MessageHandler) -> None:
        """
        Attach a handler to a queue.

        Raises:
            ValueError: If the queue has not been declared
        """
        with self._cond:
            if queue not in self._queues:
                raise ValueError(f"Queue not declared: {queue}")
            self._handlers[queue].append(handler)
            if self._running and queue not in self._workers:
                self._spawn_worker(queue)
        logger.debug(f"Subscribed handler to '{queue}'")

    # =========================================================================
    # Delivery
    # =========================================================================

    def start(self) -> None:
        with self._cond:
            if self._running:
                return
            self._running = True
            for queue in list(self._handlers):
                self._spawn_worker(queue)
        logger.info(f"In-memory broker started with {len(self._workers)} consumer thread(s)")

    def stop(self, timeout: float = 5.0) -> None:
        with self._cond:
            if not self._running:
                return
            self._running = False
            self._cond.notify_all()
            workers = list(self._workers.values())
            self._workers.clear()
        for worker in workers:
            worker.join(timeout=timeout)
        logger.info("In-memory broker stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def _spawn_worker(self, queue: str) -> None:
        worker = threading.Thread(
            target=self._worker_loop,
            args=(queue,),
            name=f"consumer-{queue}",
            daemon=True,
        )
        self._workers[queue] = worker
        worker.start()

    def _take(self, queue: str) -> Optional[tuple[Message, MessageHandler]]:
        # caller holds self._cond
        pending = self._queues[queue]
        handlers = self._handlers.get(queue)
        if not pending or not handlers:
            return None
        message = pending.popleft()
        index = self._next_handler[queue] % len(handlers)
        self._next_handler[queue] = index + 1
        self._in_flight += 1
        return message, handlers[index]

    def _worker_loop(self, queue: str) -> None:
        while True:
            with self._cond:
                while self._running:
                    item = self._take(queue)
                    if item is not None:
                        break
                    self._cond.wait()
                else:
                    return
            self._deliver(queue, *item)

    def _deliver(self, queue: str, message: Message, handler: MessageHandler) -> None:
        try:
            handler(message)
            with self._cond:
                self._messages_processed += 1
        except Exception as e:
            with self._cond:
                self._error_counts[queue] += 1
            logger.error(f"Handler on '{queue}' raised for {message}: {e}")
        finally:
            with self._cond:
                self._in_flight -= 1
                self._cond.notify_all()

    def drain(self, queue: Optional[str] = None) -> int:
        """
        Deliver pending messages on the calling thread.

        Args:
            queue: Only drain this queue. None drains every subscribed queue.

        Returns:
            Number of messages handed to a handler
        """
        queues = [queue] if queue else list(self._handlers)
        delivered = 0
        for name in queues:
            while True:
                with self._cond:
                    item = self._take(name)
                if item is None:
                    break
                self._deliver(name, *item)
                delivered += 1
        return delivered

    def wait_until_idle(self, timeout: float = 5.0) -> bool:
        """
        Block until every subscribed queue is empty and no handler is running.

        Returns:
            True if the broker went idle before the timeout
        """
        def idle() -> bool:
            pending = sum(len(self._queues[q]) for q in self._handlers if self._handlers[q])
            return pending == 0 and self._in_flight == 0

        with self._cond:
            return self._cond.wait_for(idle, timeout=timeout)

    # =========================================================================
    # Inspection
    # =========================================================================

    def queue_depth(self, queue: str) -> int:
        """Number of messages waiting in a queue."""
        with self._cond:
            return len(self._queues.get(queue, ()))

    def subscriber_count(self, queue: str) -> int:
        """Number of handlers attached to a queue."""
        with self._cond:
            return len(self._handlers.get(queue, ()))

    def get_bindings(self, exchange: str) -> list[Binding]:
        with self._cond:
            return list(self._bindings.get(exchange, []))

    def get_publish_log(self, routing_key: Optional[str] = None) -> list[Message]:
        """Messages accepted by any exchange, optionally filtered by routing key."""
        with self._cond:
            if routing_key is None:
                return list(self._publish_log)
            return [m for m in self._publish_log if m.routing_key == routing_key]

    def clear_publish_log(self) -> None:
        with self._cond:
            self._publish_log.clear()

    def get_error_counts(self) -> dict[str, int]:
        """Handler failures per queue."""
        with self._cond:
            return dict(self._error_counts)

    def get_dropped_counts(self) -> dict[str, int]:
        """Messages discarded per queue because the queue was full."""
        with self._cond:
            return dict(self._dropped_counts)

    @property
    def messages_processed(self) -> int:
        """Total messages handled without an exception."""
        return self._messages_processed
