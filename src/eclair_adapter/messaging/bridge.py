from __future__ import annotations

import datetime
import json
import threading
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

import pika
from pika.exceptions import AMQPConnectionError

from eclair_adapter.config import NackPolicy
from eclair_adapter.errors import ValidationError
from eclair_adapter.event import stop_event
from eclair_adapter.log import count_logger, getLogger
from eclair_adapter.retry import new_retry_handler
from eclair_adapter.utils import now_utc, parse_timestamp

from .events import LightningEvent, PaymentReceived, PaymentSent

if TYPE_CHECKING:
    from pika.adapters.blocking_connection import BlockingChannel
    from pika.spec import Basic, BasicProperties

    from eclair_adapter.config import AmqpConfig

    from .channel import EventChannel

# seconds process_data_events blocks before the stop events are checked again
PROCESS_EVENTS_TIME_LIMIT = 1
# number of handled messages after which the worker logs its progress
LOG_INTERVAL_MESSAGES = 100

logger = getLogger(__name__)


class EventKind(str, Enum):
    PAYMENT_RECEIVED = "eclair.message.payment_received"
    PAYMENT_SENT = "eclair.message.payment_sent"


class WorkerState(str, Enum):
    IDLE = "idle"
    CONSUMING = "consuming"


def _timestamp(properties: BasicProperties | None) -> datetime.datetime:
    """
    Returns the timestamp of the message: the amqp timestamp property, a
    'timestamp' header or the current time as last resort.
    """

    if properties is not None:
        if properties.timestamp is not None:
            return parse_timestamp(properties.timestamp) or now_utc()

        headers = properties.headers or {}
        if (ts := headers.get("timestamp")) is not None:
            return parse_timestamp(ts) or now_utc()

    return now_utc()


def build_payment_received(
    payload: dict[str, Any], timestamp: datetime.datetime
) -> PaymentReceived:
    return PaymentReceived(
        preimage_hash=payload["paymentHash"],
        amount_paid_msat=sum(int(part["amount"]) for part in payload["parts"]),
        timestamp=timestamp,
    )


def build_payment_sent(
    payload: dict[str, Any], timestamp: datetime.datetime
) -> PaymentSent:
    amount = int(payload["recipientAmount"])

    return PaymentSent(
        preimage=payload["paymentPreimage"],
        preimage_hash=payload["paymentHash"],
        amount_msat=amount,
        amount_paid_msat=amount,
        timestamp=timestamp,
    )


_BUILDERS: dict[
    EventKind, Callable[[dict[str, Any], datetime.datetime], LightningEvent]
] = {
    EventKind.PAYMENT_RECEIVED: build_payment_received,
    EventKind.PAYMENT_SENT: build_payment_sent,
}


def create_event(
    routing_key: str, body: bytes, properties: BasicProperties | None = None
) -> LightningEvent | None:
    """
    Converts a broker message into a domain event. Messages with an unknown
    routing key result in None.
    """

    try:
        kind = EventKind(routing_key)
    except ValueError:
        return None

    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError(f"Payload is not an object: {payload!r}")

    return _BUILDERS[kind](payload, _timestamp(properties))


# Reconnecting to the broker after the connection was lost.
_connection_retry_handler = new_retry_handler(
    exceptions_retry=(AMQPConnectionError,),
    exceptions_raise=(ValidationError,),
    max_retries=5,
    delay=10,
    min_tolerance_delta=120,
)


class EclairMessageWorker:
    """
    Consumes the eclair messages of one queue and publishes them as domain
    events. Only one message is in flight at a time.
    """

    def __init__(
        self,
        new_connection: Callable[[], pika.BlockingConnection],
        event_channel: EventChannel,
        queue: str,
        nack_policy: NackPolicy = NackPolicy.DISCARD,
        name: str = "worker",
    ) -> None:
        self._logger = getLogger(f"{__name__}.{name}")
        self._new_connection = new_connection
        self.event_channel = event_channel
        self.queue = queue
        self.nack_policy = nack_policy
        self.state = WorkerState.IDLE

        # Set by stop(); the consuming loop ends within PROCESS_EVENTS_TIME_LIMIT.
        self._stopped = threading.Event()

    @classmethod
    def from_config(
        cls, cfg: AmqpConfig, event_channel: EventChannel, name: str = "worker"
    ) -> EclairMessageWorker:
        params = pika.URLParameters(cfg.url)

        return cls(
            new_connection=lambda: pika.BlockingConnection(params),
            event_channel=event_channel,
            queue=cfg.queue,
            nack_policy=cfg.nack_policy,
            name=name,
        )

    def start(self) -> None:
        self.run(self.queue)

    def stop(self) -> None:
        self._stopped.set()

    def run(self, queue: str) -> None:
        """
        Subscribes to the queue and handles messages until the worker is
        stopped.
        """

        if not queue or not queue.strip():
            raise ValidationError("Queue name must not be blank.")

        self._consume(queue)

    def _is_stopped(self) -> bool:
        return self._stopped.is_set() or stop_event.is_set()

    @_connection_retry_handler
    def _consume(self, queue: str) -> None:
        if self._is_stopped():
            return None

        connection = self._new_connection()
        try:
            channel = connection.channel()
            channel.basic_qos(prefetch_count=1)
            channel.basic_consume(
                queue=queue, on_message_callback=self.execute, auto_ack=False
            )

            self.state = WorkerState.CONSUMING
            self._logger.info(f"Consuming messages from {queue=}")

            while not self._is_stopped():
                connection.process_data_events(time_limit=PROCESS_EVENTS_TIME_LIMIT)

        finally:
            self.state = WorkerState.IDLE
            if connection.is_open:
                connection.close()

        self._logger.info(f"Stopped consuming from {queue=}")

    @count_logger(LOG_INTERVAL_MESSAGES, "messages")
    def execute(
        self,
        channel: BlockingChannel,
        method: Basic.Deliver,
        properties: BasicProperties,
        body: bytes,
    ) -> None:
        """
        Handles one delivered message. The message is acknowledged after the
        event was published, otherwise it is rejected according to the nack
        policy.
        """

        routing_key = method.routing_key
        try:
            event = create_event(routing_key, body, properties)
            if event is not None:
                self.event_channel.publish(event)

        except Exception:
            self._logger.exception(
                f"Error handling eclair message '{routing_key}'; {body=}"
            )
            requeue = self.nack_policy.requeue(bool(method.redelivered))
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=requeue)
            return None

        if event is None:
            self._logger.debug(f"Ignoring message with {routing_key=}")

        channel.basic_ack(delivery_tag=method.delivery_tag)
