"""
CatalogEventConsumer -- AMQP transport for catalog-change events.

Responsibility:
    Own the broker connection, topology and acknowledgement protocol, and
    hand each decoded event to the CatalogChangeReconciler.

Topology:
    exchange  refinery.events            (topic, durable)
    queue     procurement.catalog-events (durable)
    bindings  catalog.item.updated, catalog.item.discontinued

Delivery:
    At-least-once.  A message is acked only after the reconciler returns,
    i.e. after the store transaction committed.  A handler exception
    requeues the message.  Messages that can never succeed (undecodable
    body, unknown routing key, no itemId) are logged and acked.

Connection policy:
    Connect, and re-connect after a drop, with bounded retry
    (``max_retries`` attempts, back-off ``interval_start`` growing by
    ``interval_step`` up to ``interval_max`` seconds).  When the retries are
    exhausted the consumer logs ``catalog_consumer_gave_up`` and returns.
    It never raises into the process that started it.
"""

import json
import threading
from contextlib import contextmanager
from typing import Any

from kombu import Connection, Exchange, Queue, binding
from kombu.exceptions import OperationalError
from kombu.mixins import ConsumerMixin

from procurement_kernel.logging_config import get_logger
from procurement_services.reconciler import (
    ITEM_DISCONTINUED,
    ITEM_UPDATED,
    CatalogChangeReconciler,
)

logger = get_logger("services.event_consumer")

EVENTS_EXCHANGE = Exchange("refinery.events", type="topic", durable=True)

CATALOG_EVENTS_QUEUE = Queue(
    "procurement.catalog-events",
    bindings=[
        binding(EVENTS_EXCHANGE, routing_key=ITEM_UPDATED),
        binding(EVENTS_EXCHANGE, routing_key=ITEM_DISCONTINUED),
    ],
    durable=True,
)


class CatalogEventConsumer(ConsumerMixin):
    """
    Consumes the catalog events queue until stopped or out of retries.

    Contract:
        ``run_forever()`` blocks.  It returns True after ``stop()`` and
        False after giving up on the broker.
    """

    def __init__(
        self,
        connection: Connection,
        reconciler: CatalogChangeReconciler,
        *,
        max_retries: int = 10,
        interval_start: float = 3.0,
        interval_step: float = 3.0,
        interval_max: float = 30.0,
        prefetch_count: int = 10,
        queue: Queue = CATALOG_EVENTS_QUEUE,
    ):
        self.connection = connection
        self._reconciler = reconciler
        self._max_retries = max_retries
        self._interval_start = interval_start
        self._interval_step = interval_step
        self._interval_max = interval_max
        self._prefetch_count = prefetch_count
        self._queue = queue

    @property
    def connect_max_retries(self) -> int:
        return self._max_retries

    def stop(self) -> None:
        self.should_stop = True

    # ------------------------------------------------------------------
    # ConsumerMixin hooks
    # ------------------------------------------------------------------

    @contextmanager
    def establish_connection(self):
        with self.create_connection() as conn:
            conn.ensure_connection(
                self.on_connection_error,
                self._max_retries,
                interval_start=self._interval_start,
                interval_step=self._interval_step,
                interval_max=self._interval_max,
            )
            yield conn

    def get_consumers(self, Consumer, channel):
        return [
            Consumer(
                queues=[self._queue],
                callbacks=[self.on_message],
                accept=["json"],
                prefetch_count=self._prefetch_count,
                on_decode_error=self.on_decode_error,
            )
        ]

    def on_connection_error(self, exc, interval):
        logger.warning(
            "catalog_consumer_connection_retry",
            extra={"error": str(exc), "retry_in_seconds": interval},
        )

    def on_connection_revived(self):
        logger.info("catalog_consumer_connected")

    def on_consume_ready(self, connection, channel, consumers, **kwargs):
        logger.info(
            "catalog_consumer_started",
            extra={"queue": self._queue.name},
        )

    def on_decode_error(self, message, exc):
        logger.error(
            "catalog_event_undecodable",
            extra={"error": str(exc), "content_type": message.content_type},
        )
        message.ack()

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def on_message(self, body: Any, message) -> None:
        routing_key = (message.delivery_info or {}).get("routing_key", "")
        try:
            payload = decode_body(body)
        except ValueError as exc:
            logger.error(
                "catalog_event_undecodable",
                extra={"routing_key": routing_key, "error": str(exc)},
            )
            message.ack()
            return

        try:
            self._reconciler.handle(routing_key, payload)
        except Exception:
            logger.exception(
                "catalog_event_failed",
                extra={"routing_key": routing_key},
            )
            message.requeue()
            return

        message.ack()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run_forever(self) -> bool:
        try:
            self.run()
        except (OperationalError, *self.connection.connection_errors) as exc:
            logger.error(
                "catalog_consumer_gave_up",
                extra={"error": str(exc), "max_retries": self._max_retries},
            )
            return False
        logger.info("catalog_consumer_stopped")
        return True


def decode_body(body: Any) -> Any:
    """
    JSON-decode a raw body.

    Publishers that omit the content type deliver bytes; kombu already
    decodes ``application/json`` bodies.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    if isinstance(body, str):
        return json.loads(body)
    return body


def start_consumer_thread(consumer: CatalogEventConsumer) -> threading.Thread:
    """Run the consumer on a daemon thread so it never blocks shutdown."""
    thread = threading.Thread(
        target=consumer.run_forever,
        name="catalog-event-consumer",
        daemon=True,
    )
    thread.start()
    return thread
