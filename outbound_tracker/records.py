"""Structured capture of one outbound request/response exchange."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import httpx


def now_iso() -> str:
    """Current local time as ISO-8601 with UTC offset."""
    return datetime.now().astimezone().isoformat()


@dataclass(frozen=True)
class HeaderEntry:
    name: str
    values: list[str]

    def to_dict(self) -> dict:
        return {"name": self.name, "values": list(self.values)}


@dataclass
class LogRecord:
    request_uri: str
    request_method: str
    request_headers: list[HeaderEntry]
    request_body: str
    response_status_code: int
    response_status_text: str
    response_headers: list[HeaderEntry]
    response_body: str
    start_time: str
    end_time: str
    client_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __setattr__(self, name, value):
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("LogRecord.id is immutable")
        super().__setattr__(name, value)

    def to_dict(self) -> dict:
        """Wire shape: camelCase keys, clientId omitted when unset."""
        data = {
            "id": self.id,
            "clientId": self.client_id,
            "requestUri": self.request_uri,
            "requestMethod": self.request_method,
            "requestHeaders": [h.to_dict() for h in self.request_headers],
            "requestBody": self.request_body,
            "responseStatusCode": self.response_status_code,
            "responseStatusText": self.response_status_text,
            "responseHeaders": [h.to_dict() for h in self.response_headers],
            "responseBody": self.response_body,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.client_id is None:
            del data["clientId"]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass
class CaptureResult:
    record: LogRecord | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def extract_headers(headers: httpx.Headers) -> list[HeaderEntry]:
    """One entry per distinct name (case-insensitive), first-seen order.

    The entry keeps the casing of the first occurrence and every value in
    the order it appeared.
    """
    names: dict[str, str] = {}
    values: dict[str, list[str]] = {}
    for raw_key, raw_value in headers.raw:
        key = raw_key.decode(headers.encoding)
        lower = key.lower()
        if lower not in names:
            names[lower] = key
            values[lower] = []
        values[lower].append(raw_value.decode(headers.encoding))
    return [HeaderEntry(name=names[k], values=values[k]) for k in names]


def decode_body(response: httpx.Response, raw: bytes) -> str:
    """Undo content-encoding, then strictly decode the charset.

    Raises httpx.DecodingError or UnicodeDecodeError when the body is not
    text.
    """
    buffered = httpx.Response(
        response.status_code, headers=response.headers, content=raw
    )
    encoding = buffered.charset_encoding or "utf-8"
    return buffered.content.decode(encoding)


def build_record(
    request: httpx.Request,
    body: bytes,
    response: httpx.Response,
    raw_body: bytes,
    start_time: str,
    end_time: str,
) -> CaptureResult:
    """Capture one exchange.

    The request body is decoded as UTF-8 with invalid bytes replaced by
    U+FFFD, so a binary request body is recorded lossily but never blocks
    tracking. The response body must decode cleanly or the capture fails.
    """
    try:
        response_body = decode_body(response, raw_body)
    except (httpx.DecodingError, UnicodeDecodeError, LookupError) as exc:
        return CaptureResult(error=f"Unreadable response body: {type(exc).__name__}: {exc}")

    record = LogRecord(
        request_uri=str(request.url),
        request_method=request.method,
        request_headers=extract_headers(request.headers),
        request_body=body.decode("utf-8", errors="replace"),
        response_status_code=response.status_code,
        response_status_text=response.reason_phrase,
        response_headers=extract_headers(response.headers),
        response_body=response_body,
        start_time=start_time,
        end_time=end_time,
    )
    return CaptureResult(record=record)
