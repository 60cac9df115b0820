"""HTTP client for the local development queue service (queue-service/)."""

import os

import httpx

from outbound_tracker.queues.base import QueueAlreadyExistsError, QueueServiceError

QUEUE_SERVICE_URL = os.environ.get("QUEUE_SERVICE_URL", "http://localhost:8082")


class HTTPQueueService:
    def __init__(self, base_url: str = QUEUE_SERVICE_URL, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        # Plain client on purpose: the queue's own traffic is never tracked
        self._client = client if client is not None else httpx.Client(timeout=5.0)

    def create_queue(self, name: str) -> None:
        try:
            response = self._client.post(f"{self.base_url}/queues", json={"name": name})
        except httpx.HTTPError as exc:
            raise QueueServiceError(f"Queue service unreachable: {exc}") from exc
        if response.status_code == 409:
            raise QueueAlreadyExistsError(name)
        if response.is_error:
            raise QueueServiceError(
                f"Create queue {name!r} failed: {response.status_code} {response.text}"
            )

    def resolve_address(self, name: str) -> str:
        try:
            response = self._client.get(f"{self.base_url}/queues/{name}")
            response.raise_for_status()
            return response.json()["url"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise QueueServiceError(f"Resolve queue {name!r} failed: {exc}") from exc

    def send(self, address: str, payload: str) -> str | None:
        try:
            response = self._client.post(
                f"{address}/messages",
                content=payload.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            return response.json().get("messageId")
        except (httpx.HTTPError, ValueError) as exc:
            raise QueueServiceError(f"Send to {address} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()
