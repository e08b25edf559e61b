"""Frontend example service (default port 8080).

Routes:
    GET /health        untraced liveness probe
    GET /hello         empty 200 inside a server span
    GET /hello-traced  external + secondary calls, span attributes, child spans and events
    GET /hello-http    manual traceparent injection and two external calls
    GET /hello-events  events between simulated work, two external calls
    GET /hello-grpc    Greeter RPC over a traced channel

`/hello-otelhttp` and `/hello-resty` are aliases of `/hello-traced` and
`/hello-events`, kept for existing load scripts.

A background ticker emits a root `timed-operation` span every
`ticker_interval` seconds while the app runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import uvicorn
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse, Response

from traceweave.foundation.config import TraceweaveSettings, get_settings
from traceweave.runtime.observability.export import Exporter
from traceweave.runtime.observability.logging import configure_logging, get_logger
from traceweave.runtime.observability.tracing import (
    TraceContext,
    Tracer,
    TracerProvider,
    current_span,
    inject,
)

from .common import (
    ServiceRuntime,
    build_app,
    decode_json,
    fetch,
    simulate_work,
    status_line,
)
from .greeter import GreeterClient, traced_channel
from .ticker import create_ticker

if TYPE_CHECKING:
    from starlette.requests import Request

log = get_logger("traceweave.frontend")


def _runtime(request: Request) -> ServiceRuntime:
    return request.app.state.runtime


async def health(request: Request) -> Response:
    return Response(status_code=200)


async def hello(request: Request) -> Response:
    return Response(status_code=200)


async def example_child_span(tracer: Tracer, scale: float) -> None:
    """Nested span under whatever span is ambient."""
    with tracer.span("operation-name") as span:
        span.add_event("ciao")
        await simulate_work(0.010, scale)


async def hello_traced(request: Request) -> Response:
    rt = _runtime(request)
    external, scale = rt.settings.service.external_url, rt.work_scale

    await fetch(rt.client, external)
    await fetch(rt.client, f"{rt.settings.service.secondary_url}/hello")

    # Attributes on the server span
    span = current_span()
    if span is not None:
        span.set_attributes({"isTrue": True, "stringAttr": "Ciao"})

    async with rt.tracer.span("custom-span"):
        await simulate_work(0.010, scale)
        response = await fetch(rt.client, external)
        await simulate_work(0.020, scale)
        if span is not None:
            span.add_event("Done Activity")
        await example_child_span(rt.tracer, scale)
    return PlainTextResponse(status_line(response))


async def hello_http(request: Request) -> Response:
    rt = _runtime(request)
    external = rt.settings.service.external_url

    # Manual propagation; the traced transport then re-injects its CLIENT span
    headers = inject(TraceContext.current(), {})
    await fetch(rt.client, external, headers=headers)
    response = await fetch(rt.client, external)
    body = decode_json(response)
    log.debug("decoded upstream body", kind=type(body).__name__)
    return PlainTextResponse(status_line(response))


async def hello_events(request: Request) -> Response:
    rt = _runtime(request)
    external, scale = rt.settings.service.external_url, rt.work_scale
    span = current_span()

    await simulate_work(0.070, scale)
    if span is not None:
        span.add_event("Done first fake long running task")
    await simulate_work(0.090, scale)
    if span is not None:
        span.add_event("Done second fake long running task")

    response = await fetch(rt.client, external, headers=inject(TraceContext.current(), {}))
    # Second call reuses the pooled connection
    await fetch(rt.client, external)

    if span is not None:
        span.add_event("Start post processing")
    await simulate_work(0.050, scale)
    return PlainTextResponse(status_line(response))


async def hello_grpc(request: Request) -> Response:
    rt = _runtime(request)
    greeter: GreeterClient = rt.extras["greeter"]  # type: ignore[assignment]
    reply = await greeter.say_hello("ciao", timeout=rt.settings.service.outbound_timeout)
    log.info("greeting received", reply=reply)
    return Response(status_code=200)


ROUTES = [
    ("/health", health),
    ("/hello", hello),
    ("/hello-traced", hello_traced),
    ("/hello-http", hello_http),
    ("/hello-events", hello_events),
    ("/hello-grpc", hello_grpc),
    # Legacy paths, still targeted by the k6 load script
    ("/hello-otelhttp", hello_traced),
    ("/hello-resty", hello_events),
]


async def _open_greeter(rt: ServiceRuntime) -> None:
    channel = traced_channel(rt.tracer, rt.settings.service.grpc_address)
    rt.extras["channel"] = channel
    rt.extras["greeter"] = GreeterClient(channel)


async def _close_greeter(rt: ServiceRuntime) -> None:
    if (channel := rt.extras.pop("channel", None)) is not None:
        await channel.close()  # type: ignore[attr-defined]
    rt.extras.pop("greeter", None)


def create_app(
    settings: TraceweaveSettings | None = None,
    *,
    provider: TracerProvider | None = None,
    exporter: Exporter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Build the frontend app.

    Args:
        settings: Defaults to get_settings()
        provider: Tracer provider to use; built from settings when omitted
        exporter: Exporter for a settings-built provider (overrides the configured one)
        transport: httpx transport for outbound calls
    """
    settings = settings or get_settings()
    provider = provider or TracerProvider.from_settings(settings, exporter=exporter)
    runtime = ServiceRuntime(settings=settings, provider=provider,
                             tracer=provider.get_tracer("traceweave.frontend"), transport=transport)
    return build_app(runtime, ROUTES, on_startup=_open_greeter, on_shutdown=_close_greeter, ticker=create_ticker)


def main() -> None:
    settings = get_settings()
    configure_logging(settings.logging.format, settings.logging.level)
    uvicorn.run(create_app(settings), host=settings.service.host, port=settings.service.port,
                log_level=settings.logging.level.lower())
