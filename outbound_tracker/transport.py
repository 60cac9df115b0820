"""httpx transports that route every request through a TrackingInterceptor."""

from __future__ import annotations

from typing import Any

import httpx

from outbound_tracker.interceptor import TrackingInterceptor


class TrackingTransport(httpx.BaseTransport):
    def __init__(
        self,
        interceptor: TrackingInterceptor,
        transport: httpx.BaseTransport | None = None,
    ):
        self._interceptor = interceptor
        self._transport = transport if transport is not None else httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        body = request.read()
        return self._interceptor.intercept(
            request, body, lambda req, _body: self._transport.handle_request(req)
        )

    def close(self) -> None:
        self._transport.close()


class AsyncTrackingTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        interceptor: TrackingInterceptor,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._interceptor = interceptor
        self._transport = transport if transport is not None else httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()

        async def send(req: httpx.Request, _body: bytes) -> httpx.Response:
            return await self._transport.handle_async_request(req)

        return await self._interceptor.aintercept(request, body, send)

    async def aclose(self) -> None:
        await self._transport.aclose()


def tracked_client(
    interceptor: TrackingInterceptor,
    transport: httpx.BaseTransport | None = None,
    **kwargs: Any,
) -> httpx.Client:
    """An httpx.Client whose every request is tracked."""
    return httpx.Client(transport=TrackingTransport(interceptor, transport), **kwargs)


def tracked_async_client(
    interceptor: TrackingInterceptor,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=AsyncTrackingTransport(interceptor, transport), **kwargs
    )
