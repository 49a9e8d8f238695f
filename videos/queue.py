"""Durable transcode job queue on kombu.

Messages are JSON ``{"video_id": ..., "file_path": ...}`` bodies on a durable
queue, consumed with manual acknowledgement and a prefetch of one.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterator

from kombu import Connection, Exchange, Queue
from kombu.exceptions import OperationalError

from .config import QueueConfig
from .errors import MalformedJobMessage, QueueUnavailable
from .serializers import TranscodeJobMessageSerializer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscodeJobMessage:
    video_id: str
    source_path: str

    def to_dict(self) -> dict:
        return {"video_id": self.video_id, "file_path": self.source_path}


def decode_job_message(body) -> TranscodeJobMessage:
    """Parse a raw message body; anything unusable raises MalformedJobMessage."""
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedJobMessage(f"body is not utf-8: {exc}") from exc
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError as exc:
            raise MalformedJobMessage(f"body is not JSON: {exc}") from exc

    ser = TranscodeJobMessageSerializer(data=body)
    if not ser.is_valid():
        raise MalformedJobMessage(f"invalid job message: {dict(ser.errors)}")
    return TranscodeJobMessage(
        video_id=str(ser.validated_data["video_id"]),
        source_path=ser.validated_data["file_path"],
    )


@dataclass
class Delivery:
    """One inbound message. Must be settled by exactly one ack() or nack()."""

    body: object
    _ack: Callable[[], None]
    _nack: Callable[[bool], None]
    settled: bool = False

    def ack(self) -> None:
        self._settle()
        self._ack()

    def nack(self, requeue: bool = False) -> None:
        self._settle()
        self._nack(requeue)

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError("delivery already acknowledged")
        self.settled = True


class JobQueue:
    def __init__(self, config: QueueConfig, connection: Connection | None = None) -> None:
        self.config = config
        self._connection = connection
        self.exchange = Exchange(config.queue_name, type="direct", durable=True)
        self.queue = Queue(config.queue_name, self.exchange, routing_key=config.queue_name, durable=True)

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            self._connection = Connection(self.config.broker_url)
        return self._connection

    def _broker_errors(self) -> tuple:
        conn = self.connection
        return (OperationalError,) + tuple(conn.connection_errors) + tuple(conn.channel_errors)

    def publish(self, message: TranscodeJobMessage) -> None:
        try:
            with self.connection.Producer(serializer="json") as producer:
                producer.publish(
                    message.to_dict(),
                    exchange=self.exchange,
                    routing_key=self.config.queue_name,
                    declare=[self.queue],
                    delivery_mode="persistent",
                    retry=True,
                    retry_policy={"max_retries": 3},
                )
        except self._broker_errors() as exc:
            raise QueueUnavailable(f"cannot publish to {self.config.queue_name}: {exc}") from exc
        logger.info("published transcode job for video %s", message.video_id)

    def consume(self, stop: threading.Event | None = None) -> Iterator[Delivery]:
        """Yield deliveries until ``stop`` is set.

        The sequence is lazy: the next message is only pulled once the caller
        asks for it, so at most one job is in flight per consumer. Broker
        failures raise QueueUnavailable; calling consume() again reconnects.
        """
        stop = stop or threading.Event()
        broker_errors = self._broker_errors()
        try:
            self.connection.ensure_connection(max_retries=3)
            simple = self.connection.SimpleQueue(self.queue, serializer="json")
        except broker_errors as exc:
            raise QueueUnavailable(f"cannot consume {self.config.queue_name}: {exc}") from exc

        try:
            simple.consumer.qos(prefetch_count=1)
            while not stop.is_set():
                try:
                    message = simple.get(block=True, timeout=self.config.poll_seconds)
                except simple.Empty:
                    continue
                except broker_errors as exc:
                    raise QueueUnavailable(f"lost connection to {self.config.queue_name}: {exc}") from exc
                yield Delivery(
                    body=message.body,
                    _ack=message.ack,
                    _nack=lambda requeue, m=message: m.requeue() if requeue else m.reject(),
                )
        finally:
            simple.close()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.release()
            self._connection = None
