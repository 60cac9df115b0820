"""In-process queue service for tests and local development."""

from __future__ import annotations

import threading
import uuid

from outbound_tracker.queues.base import QueueAlreadyExistsError, QueueServiceError


class InMemoryQueueService:
    def __init__(self, address_prefix: str = "memory://queues/"):
        self.address_prefix = address_prefix
        self.messages: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def create_queue(self, name: str) -> None:
        with self._lock:
            if self.address_prefix + name in self.messages:
                raise QueueAlreadyExistsError(name)
            self.messages[self.address_prefix + name] = []

    def resolve_address(self, name: str) -> str:
        address = self.address_prefix + name
        with self._lock:
            if address not in self.messages:
                raise QueueServiceError(f"No such queue: {name}")
        return address

    def send(self, address: str, payload: str) -> str | None:
        with self._lock:
            if address not in self.messages:
                raise QueueServiceError(f"No such queue: {address}")
            self.messages[address].append(payload)
        return str(uuid.uuid4())
