import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from outbound_tracker.queues.base import QueueAlreadyExistsError, QueueServiceError
from outbound_tracker.queues.http import HTTPQueueService
from outbound_tracker.queues.memory import InMemoryQueueService
from outbound_tracker.queues.sqs import SQSQueueService


def _client_error(code: str, operation: str = "CreateQueue") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


# -- SQS -----------------------------------------------------------------------


def test_sqs_defaults_to_boto3_client():
    with patch("outbound_tracker.queues.sqs.boto3.client") as factory:
        SQSQueueService()
    factory.assert_called_once_with("sqs")


def test_sqs_create_queue():
    sqs = MagicMock()
    SQSQueueService(sqs).create_queue("q1")
    sqs.create_queue.assert_called_once_with(QueueName="q1")


@pytest.mark.parametrize(
    "code", ["QueueAlreadyExists", "QueueNameExists", "AWS.SimpleQueueService.QueueNameExists"]
)
def test_sqs_already_exists(code):
    sqs = MagicMock()
    sqs.create_queue.side_effect = _client_error(code)
    with pytest.raises(QueueAlreadyExistsError):
        SQSQueueService(sqs).create_queue("q1")


def test_sqs_other_create_error():
    sqs = MagicMock()
    sqs.create_queue.side_effect = _client_error("AccessDenied")
    with pytest.raises(QueueServiceError, match="AccessDenied") as exc_info:
        SQSQueueService(sqs).create_queue("q1")
    assert not isinstance(exc_info.value, QueueAlreadyExistsError)


def test_sqs_network_error():
    sqs = MagicMock()
    sqs.create_queue.side_effect = EndpointConnectionError(endpoint_url="https://sqs")
    with pytest.raises(QueueServiceError):
        SQSQueueService(sqs).create_queue("q1")


def test_sqs_resolve_and_send():
    sqs = MagicMock()
    sqs.get_queue_url.return_value = {"QueueUrl": "https://sqs.us-east-1.amazonaws.com/1/q1"}
    sqs.send_message.return_value = {"MessageId": "abc"}
    service = SQSQueueService(sqs)

    address = service.resolve_address("q1")
    message_id = service.send(address, '{"id":"1"}')

    assert address == "https://sqs.us-east-1.amazonaws.com/1/q1"
    assert message_id == "abc"
    sqs.send_message.assert_called_once_with(QueueUrl=address, MessageBody='{"id":"1"}')


def test_sqs_send_error():
    sqs = MagicMock()
    sqs.send_message.side_effect = _client_error("ServiceUnavailable", "SendMessage")
    with pytest.raises(QueueServiceError):
        SQSQueueService(sqs).send("https://sqs/q", "{}")


# -- HTTP ----------------------------------------------------------------------

BASE = "http://queue.local:8082"


def test_http_create_queue(httpx_mock):
    httpx_mock.add_response(method="POST", url=f"{BASE}/queues", status_code=201,
                            json={"url": f"{BASE}/queues/q1"})
    HTTPQueueService(BASE).create_queue("q1")
    assert json.loads(httpx_mock.get_request().content) == {"name": "q1"}


def test_http_create_conflict(httpx_mock):
    httpx_mock.add_response(method="POST", url=f"{BASE}/queues", status_code=409)
    with pytest.raises(QueueAlreadyExistsError):
        HTTPQueueService(BASE).create_queue("q1")


def test_http_create_server_error(httpx_mock):
    httpx_mock.add_response(method="POST", url=f"{BASE}/queues", status_code=500)
    with pytest.raises(QueueServiceError):
        HTTPQueueService(BASE).create_queue("q1")


def test_http_unreachable(httpx_mock):
    httpx_mock.add_exception(httpx.ConnectError("refused"))
    with pytest.raises(QueueServiceError, match="unreachable"):
        HTTPQueueService(BASE).create_queue("q1")


def test_http_resolve_and_send(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/queues/q1",
                            json={"url": f"{BASE}/queues/q1"})
    httpx_mock.add_response(method="POST", url=f"{BASE}/queues/q1/messages",
                            json={"messageId": "m-1"})
    service = HTTPQueueService(BASE)

    address = service.resolve_address("q1")
    message_id = service.send(address, '{"id":"r-1"}')

    assert address == f"{BASE}/queues/q1"
    assert message_id == "m-1"
    sent = httpx_mock.get_requests()[-1]
    assert sent.headers["Content-Type"] == "application/json"
    assert sent.content == b'{"id":"r-1"}'


def test_http_resolve_missing(httpx_mock):
    httpx_mock.add_response(method="GET", url=f"{BASE}/queues/nope", status_code=404)
    with pytest.raises(QueueServiceError):
        HTTPQueueService(BASE).resolve_address("nope")


# -- Memory --------------------------------------------------------------------


def test_memory_queue_lifecycle():
    service = InMemoryQueueService()
    service.create_queue("q1")
    with pytest.raises(QueueAlreadyExistsError):
        service.create_queue("q1")
    address = service.resolve_address("q1")
    assert service.send(address, "payload")
    assert service.messages[address] == ["payload"]


def test_memory_unknown_queue():
    service = InMemoryQueueService()
    with pytest.raises(QueueServiceError):
        service.resolve_address("missing")
    with pytest.raises(QueueServiceError):
        service.send("memory://queues/missing", "x")
