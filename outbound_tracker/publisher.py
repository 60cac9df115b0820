"""Delivers log records to a single named queue.

The queue is provisioned lazily and at most once per publisher: the first
caller creates it (treating "already exists" as success), resolves its
address and caches a QueueHandle. Every later publish reads the cached
handle without taking the lock. A provisioning failure is terminal for the
instance.

publish() never raises for delivery problems. It returns a PublishResult
and leaves logging to the caller.
"""

from __future__ import annotations

import enum
import threading
from collections.abc import MutableMapping
from dataclasses import dataclass

from loguru import logger

from outbound_tracker import config
from outbound_tracker.queues.base import (
    QueueAlreadyExistsError,
    QueueService,
    QueueServiceError,
)
from outbound_tracker.records import LogRecord


class PublisherState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    PROVISIONING = "provisioning"
    READY = "ready"
    FAILED = "failed"


class ProvisioningError(Exception):
    """The destination queue could not be created or resolved."""

    def __init__(self, queue_name: str, reason: str):
        super().__init__(f"Could not provision queue {queue_name!r}: {reason}")
        self.queue_name = queue_name
        self.reason = reason


@dataclass(frozen=True)
class QueueHandle:
    name: str
    address: str


@dataclass
class PublishResult:
    delivered: bool
    record_id: str
    message_id: str | None = None
    error: str | None = None


class QueuePublisher:
    def __init__(
        self,
        queue_service: QueueService,
        properties: MutableMapping[str, str] | None = None,
    ):
        self._queue_service = queue_service
        self.properties = properties if properties is not None else {}
        self._lock = threading.Lock()
        self._state = PublisherState.UNINITIALIZED
        self._handle: QueueHandle | None = None
        self._failure: ProvisioningError | None = None

    @property
    def state(self) -> PublisherState:
        return self._state

    @property
    def handle(self) -> QueueHandle | None:
        return self._handle

    def provision(self) -> QueueHandle:
        """Create and resolve the queue once. Raises ProvisioningError."""
        handle = self._handle
        if handle is not None:
            return handle

        with self._lock:
            if self._handle is not None:
                return self._handle
            if self._failure is not None:
                raise ProvisioningError(
                    self._failure.queue_name, self._failure.reason
                ) from self._failure

            self._state = PublisherState.PROVISIONING
            name = config.queue_name(self.properties)
            try:
                address = self._create_and_resolve(name)
            except Exception as exc:
                logger.error(f"Error creating queue with name: {name}")
                self._failure = ProvisioningError(name, f"{type(exc).__name__}: {exc}")
                self._state = PublisherState.FAILED
                raise self._failure from exc

            self._handle = QueueHandle(name=name, address=address)
            self._state = PublisherState.READY
            return self._handle

    def _create_and_resolve(self, name: str) -> str:
        logger.debug(f"Connecting to queue name: {name}")
        try:
            self._queue_service.create_queue(name)
        except QueueAlreadyExistsError:
            logger.debug(f"Queue already exists with name: {name}")

        address = self._queue_service.resolve_address(name)
        logger.debug(f"Connected to queue address: {address}")
        return address

    def publish(self, record: LogRecord) -> PublishResult:
        try:
            handle = self.provision()
        except ProvisioningError as exc:
            return PublishResult(delivered=False, record_id=record.id, error=str(exc))

        # Resolved now, not at capture time: the host may have changed it.
        record.client_id = config.client_id(self.properties)

        try:
            payload = record.to_json()
        except (TypeError, ValueError) as exc:
            return PublishResult(
                delivered=False,
                record_id=record.id,
                error=f"Serialization failed: {exc}",
            )

        try:
            message_id = self._queue_service.send(handle.address, payload)
        except QueueServiceError as exc:
            return PublishResult(delivered=False, record_id=record.id, error=str(exc))

        logger.debug(f"Message sent successfully: {record.id}")
        return PublishResult(delivered=True, record_id=record.id, message_id=message_id)
