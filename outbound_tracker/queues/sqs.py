"""Amazon SQS as the queue service, via boto3."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from outbound_tracker.queues.base import QueueAlreadyExistsError, QueueServiceError

# Legacy query protocol and JSON protocol spell this differently
ALREADY_EXISTS_CODES = frozenset({
    "QueueAlreadyExists",
    "QueueNameExists",
    "AWS.SimpleQueueService.QueueNameExists",
})


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class SQSQueueService:
    def __init__(self, client=None):
        # Credentials and region come from boto3's default chain
        self._sqs = client if client is not None else boto3.client("sqs")

    def create_queue(self, name: str) -> None:
        try:
            self._sqs.create_queue(QueueName=name)
        except ClientError as exc:
            if _error_code(exc) in ALREADY_EXISTS_CODES:
                raise QueueAlreadyExistsError(name) from exc
            raise QueueServiceError(f"CreateQueue failed ({_error_code(exc)}): {exc}") from exc
        except BotoCoreError as exc:
            raise QueueServiceError(f"CreateQueue failed: {exc}") from exc

    def resolve_address(self, name: str) -> str:
        try:
            return self._sqs.get_queue_url(QueueName=name)["QueueUrl"]
        except (ClientError, BotoCoreError) as exc:
            raise QueueServiceError(f"GetQueueUrl failed: {exc}") from exc

    def send(self, address: str, payload: str) -> str | None:
        try:
            response = self._sqs.send_message(QueueUrl=address, MessageBody=payload)
        except (ClientError, BotoCoreError) as exc:
            raise QueueServiceError(f"SendMessage failed: {exc}") from exc
        return response.get("MessageId")
