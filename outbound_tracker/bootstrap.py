"""Startup wiring for hosts that want a ready interceptor in one call."""

from __future__ import annotations

from collections.abc import MutableMapping
from concurrent.futures import Executor
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from outbound_tracker.interceptor import TrackingInterceptor
from outbound_tracker.publisher import QueuePublisher
from outbound_tracker.queues.base import QueueService


def create_interceptor(
    queue_service: QueueService | None = None,
    *,
    properties: MutableMapping[str, str] | None = None,
    dotenv_path: str | Path | None = None,
    eager: bool = True,
    executor: Executor | None = None,
) -> TrackingInterceptor:
    """Build the publisher and interceptor.

    With eager=True the queue is provisioned here, so a ProvisioningError
    reaches the host at startup instead of being logged on first publish.
    """
    # Search from the host's working directory, not from this package
    load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)

    if queue_service is None:
        from outbound_tracker.queues.sqs import SQSQueueService

        queue_service = SQSQueueService()

    publisher = QueuePublisher(queue_service, properties=properties)
    if eager:
        publisher.provision()
    return TrackingInterceptor(publisher, executor=executor)
