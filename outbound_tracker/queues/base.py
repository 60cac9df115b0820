"""The queue service primitive the publisher talks to.

Adapters wrap a concrete backend (SQS, the local queue server, memory)
and translate its errors into the two exceptions below.
"""

from __future__ import annotations

from typing import Protocol


class QueueServiceError(Exception):
    """A queue backend call failed."""


class QueueAlreadyExistsError(QueueServiceError):
    def __init__(self, name: str):
        super().__init__(f"Queue already exists: {name}")
        self.name = name


class QueueService(Protocol):
    def create_queue(self, name: str) -> None:  # pragma: no cover - interface
        ...

    def resolve_address(self, name: str) -> str:  # pragma: no cover - interface
        ...

    def send(self, address: str, payload: str) -> str | None:  # pragma: no cover - interface
        ...
