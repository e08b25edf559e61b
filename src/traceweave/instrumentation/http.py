"""Traced httpx transports.

Wrap any httpx transport so every outbound request runs in a CLIENT span
and carries the `traceparent` header of that span. The span is a child of
the ambient context at send time.

Example:
    >>> async with traced_async_client(tracer, timeout=10.0) as client:
    ...     with tracer.span("custom-span"):
    ...         await client.get("https://pokeapi.co/api/v2/pokemon/ditto")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from traceweave.runtime.observability.tracing import SpanKind, SpanStatus, TraceContext, inject

if TYPE_CHECKING:
    from traceweave.runtime.observability.tracing import Span, Tracer


def _start_client_span(tracer: Tracer, request: httpx.Request) -> Span:
    """Start the CLIENT span and write its context into the request headers."""
    url = request.url
    ctx, span = tracer.start(TraceContext.current(), f"HTTP {request.method}", kind=SpanKind.CLIENT, attributes={
        "http.method": request.method,
        "http.url": f"{url.scheme}://{url.netloc.decode()}{url.path}",
        "net.peer.name": url.host,
        "net.peer.port": url.port or (443 if url.scheme == "https" else 80),
    })
    inject(ctx, request.headers)
    return span


def _finish(span: Span, response: httpx.Response) -> None:
    span.set_attribute("http.status_code", response.status_code)
    if response.status_code >= 500:
        span.set_status(SpanStatus.ERROR, f"HTTP {response.status_code}")
    else:
        span.set_status(SpanStatus.OK)
    span.end()


def _fail(span: Span, exc: BaseException) -> None:
    span.record_exception(exc)
    span.end()


class TracingTransport(httpx.AsyncBaseTransport):
    """Async transport that traces each request.

    Args:
        tracer: Tracer for CLIENT spans
        transport: Wrapped transport (defaults to httpx.AsyncHTTPTransport)
    """

    def __init__(self, tracer: Tracer, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.tracer = tracer
        self.transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        span = _start_client_span(self.tracer, request)
        try:
            response = await self.transport.handle_async_request(request)
        except BaseException as e:
            _fail(span, e)
            raise
        _finish(span, response)
        return response

    async def aclose(self) -> None:
        await self.transport.aclose()


class SyncTracingTransport(httpx.BaseTransport):
    """Blocking counterpart of TracingTransport."""

    def __init__(self, tracer: Tracer, transport: httpx.BaseTransport | None = None) -> None:
        self.tracer = tracer
        self.transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        span = _start_client_span(self.tracer, request)
        try:
            response = self.transport.handle_request(request)
        except BaseException as e:
            _fail(span, e)
            raise
        _finish(span, response)
        return response

    def close(self) -> None:
        self.transport.close()


def traced_async_client(
    tracer: Tracer,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = 10.0,
    **kwargs: object,
) -> httpx.AsyncClient:
    """Build an AsyncClient whose requests are traced. Extra kwargs go to httpx.AsyncClient."""
    return httpx.AsyncClient(transport=TracingTransport(tracer, transport), timeout=timeout, **kwargs)  # type: ignore[arg-type]


def traced_client(
    tracer: Tracer,
    *,
    transport: httpx.BaseTransport | None = None,
    timeout: float = 10.0,
    **kwargs: object,
) -> httpx.Client:
    """Build a Client whose requests are traced. Extra kwargs go to httpx.Client."""
    return httpx.Client(transport=SyncTracingTransport(tracer, transport), timeout=timeout, **kwargs)  # type: ignore[arg-type]
