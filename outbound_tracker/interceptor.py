"""Tracks outbound HTTP calls without ever changing their outcome.

intercept(request, body, next):
- Times the call around next(request, body). Whatever next raises goes
  straight back to the caller.
- Reads the response body once, fully, and puts a replayable in-memory
  stream back on the response so the caller still gets every byte.
- Builds a LogRecord. If that fails (body can't be read or isn't text)
  the failure is logged and the response comes back without a log id.
  A body that failed mid-read replays what was read, then the same error.
- Stamps the record id on the response and hands the record to the
  publisher. Publish failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from concurrent.futures import Executor, Future

import httpx
from loguru import logger

from outbound_tracker.publisher import PublishResult, QueuePublisher
from outbound_tracker.records import LogRecord, build_record, now_iso

LOG_ID_HEADER = "acs-log-id"

Next = Callable[[httpx.Request, bytes], httpx.Response]
AsyncNext = Callable[[httpx.Request, bytes], Awaitable[httpx.Response]]


class _FailedBodyStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Replays the bytes read before the body failed, then the failure."""

    def __init__(self, data: bytes, error: Exception):
        self._data = data
        self._error = error

    def __iter__(self):
        if self._data:
            yield self._data
        raise self._error

    async def __aiter__(self):
        if self._data:
            yield self._data
        raise self._error


def _buffer(response: httpx.Response) -> bytes | None:
    """Read the body once and put a replayable stream back.

    Returns None if the body could not be read. The caller then hits the
    same error when it reads the response itself.
    """
    stream = response.stream
    chunks: list[bytes] = []
    try:
        for chunk in stream:
            chunks.append(chunk)
    except (httpx.TransportError, httpx.StreamError) as exc:
        logger.warning(f"Unable to read response body for tracking: {type(exc).__name__}: {exc}")
        response.stream = _FailedBodyStream(b"".join(chunks), exc)
        return None
    finally:
        stream.close()
    raw = b"".join(chunks)
    response.stream = httpx.ByteStream(raw)
    return raw


async def _abuffer(response: httpx.Response) -> bytes | None:
    stream = response.stream
    chunks: list[bytes] = []
    try:
        async for chunk in stream:
            chunks.append(chunk)
    except (httpx.TransportError, httpx.StreamError) as exc:
        logger.warning(f"Unable to read response body for tracking: {type(exc).__name__}: {exc}")
        response.stream = _FailedBodyStream(b"".join(chunks), exc)
        return None
    finally:
        await stream.aclose()
    raw = b"".join(chunks)
    response.stream = httpx.ByteStream(raw)
    return raw


def _log_outcome(result: PublishResult) -> None:
    if not result.delivered:
        logger.warning(f"Unable to publish tracking event {result.record_id}: {result.error}")


class TrackingInterceptor:
    def __init__(
        self,
        publisher: QueuePublisher,
        header_name: str = LOG_ID_HEADER,
        executor: Executor | None = None,
    ):
        self.publisher = publisher
        self.header_name = header_name
        self._executor = executor

    def intercept(self, request: httpx.Request, body: bytes, next: Next) -> httpx.Response:
        start_time = now_iso()
        response = next(request, body)
        end_time = now_iso()

        raw = _buffer(response)
        if raw is None:
            return response
        record = self._capture(request, body, response, raw, start_time, end_time)
        if record is None:
            return response

        self._stamp(response, record)
        self._dispatch(record)
        return response

    async def aintercept(
        self, request: httpx.Request, body: bytes, next: AsyncNext
    ) -> httpx.Response:
        start_time = now_iso()
        response = await next(request, body)
        end_time = now_iso()

        raw = await _abuffer(response)
        if raw is None:
            return response
        record = self._capture(request, body, response, raw, start_time, end_time)
        if record is None:
            return response

        self._stamp(response, record)
        if self._executor is not None:
            self._dispatch(record)
        else:
            try:
                result = await asyncio.to_thread(self.publisher.publish, record)
            except Exception:
                logger.exception(f"Unexpected error publishing tracking event {record.id}")
            else:
                _log_outcome(result)
        return response

    def _capture(self, request, body, response, raw, start_time, end_time) -> LogRecord | None:
        try:
            capture = build_record(request, body, response, raw, start_time, end_time)
        except Exception:
            logger.exception(f"Unable to build tracking event for {request.method} {request.url}")
            return None
        if not capture.ok:
            logger.warning(f"Skipping tracking event for {request.method} {request.url}: {capture.error}")
            return None
        return capture.record

    def _stamp(self, response: httpx.Response, record: LogRecord) -> None:
        try:
            response.headers[self.header_name] = record.id
        except Exception:
            logger.exception(f"Unable to set {self.header_name} on response")

    def _dispatch(self, record: LogRecord) -> None:
        if self._executor is not None:
            try:
                future = self._executor.submit(self.publisher.publish, record)
            except RuntimeError as exc:
                # Executor already shut down
                logger.warning(f"Unable to schedule tracking event {record.id}: {exc}")
                return
            future.add_done_callback(self._on_published)
            return

        try:
            result = self.publisher.publish(record)
        except Exception:
            # Last-resort catch so a tracker bug never fails the tracked call
            logger.exception(f"Unexpected error publishing tracking event {record.id}")
            return
        _log_outcome(result)

    @staticmethod
    def _on_published(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Unexpected error publishing tracking event")
            return
        _log_outcome(future.result())
