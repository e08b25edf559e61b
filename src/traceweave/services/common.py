"""Shared plumbing for the example services.

Each service is a Starlette app whose routes are wrapped in the interceptor
chain once, at construction. The TracerProvider is passed in (or built from
settings) and torn down by the app's lifespan together with the outbound
clients and the background ticker.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import orjson
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.routing import Route

from traceweave.foundation.errors import ErrorCode, JsonValue, UpstreamError
from traceweave.instrumentation.http import traced_async_client
from traceweave.runtime.middleware import (
    CorrelationInterceptor,
    Handler,
    Interceptor,
    RecoverInterceptor,
    ServerTracingInterceptor,
    compose,
)
from traceweave.runtime.observability.logging import get_logger

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from traceweave.foundation.config import TraceweaveSettings
    from traceweave.runtime.concurrency import PeriodicTask
    from traceweave.runtime.observability.tracing import Tracer, TracerProvider

log = get_logger("traceweave.services")


# ─────────────────────────────────────────────────────────────────────────────
# Outbound calls
# ─────────────────────────────────────────────────────────────────────────────


async def fetch(client: httpx.AsyncClient, url: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
    """GET `url` and fail fast: transport errors and non-2xx responses raise UpstreamError."""
    try:
        response = await client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        raise UpstreamError(f"GET {url} timed out", url=url, code=ErrorCode.TIMEOUT) from e
    except httpx.HTTPError as e:
        raise UpstreamError(f"GET {url} failed: {type(e).__name__}: {e}", url=url, code=ErrorCode.NETWORK_ERROR) from e
    if not response.is_success:
        raise UpstreamError(f"GET {url} returned {response.status_code}", url=url, status=response.status_code)
    return response


def decode_json(response: httpx.Response) -> JsonValue:
    """Decode an upstream JSON body; undecodable bodies are upstream failures."""
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError as e:
        raise UpstreamError(f"GET {response.request.url} returned invalid JSON", url=str(response.request.url),
                            status=response.status_code) from e


def status_line(response: httpx.Response) -> str:
    """`200 OK` style status text for plain-text replies."""
    return f"{response.status_code} {response.reason_phrase}".strip()


async def simulate_work(seconds: float, scale: float) -> None:
    """Sleep `seconds * scale` to stand in for real work. A zero scale skips sleeping."""
    if (delay := seconds * scale) > 0:
        await asyncio.sleep(delay)


# ─────────────────────────────────────────────────────────────────────────────
# App assembly
# ─────────────────────────────────────────────────────────────────────────────


def default_interceptors(tracer: Tracer) -> list[Interceptor]:
    """Tracing outermost so the server span sees the status RecoverInterceptor produces."""
    return [ServerTracingInterceptor(tracer), CorrelationInterceptor(), RecoverInterceptor()]


def traced_routes(routes: Sequence[tuple[str, Handler]], interceptors: Sequence[Interceptor]) -> list[Route]:
    """Wrap each endpoint in the interceptor chain. Every route is GET-only.

    The matched Route is left in `scope["route"]` so interceptors can read the
    path template.
    """
    return [_traced_route(path, compose(interceptors, endpoint)) for path, endpoint in routes]


def _traced_route(path: str, handler: Handler) -> Route:
    async def endpoint(request: Request) -> Response:
        request.scope.setdefault("route", route)
        return await handler(request)

    route = Route(path, endpoint, methods=["GET"])
    return route


def http_middleware(settings: TraceweaveSettings) -> list[Middleware]:
    service = settings.service
    middleware = []
    if service.cors:
        middleware.append(Middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]))
    if service.gzip:
        middleware.append(Middleware(GZipMiddleware, minimum_size=1000))
    return middleware


@dataclass(slots=True)
class ServiceRuntime:
    """Per-app resources shared by endpoints via `request.app.state.runtime`.

    Attributes:
        settings: Effective settings
        provider: Tracer provider owned by the app (shut down by the lifespan)
        tracer: Tracer for the service's own spans
        transport: Optional httpx transport for the outbound client (tests inject a MockTransport)
        http: Traced outbound client, open while the app runs
    """

    settings: TraceweaveSettings
    provider: TracerProvider
    tracer: Tracer
    transport: httpx.AsyncBaseTransport | None = None
    http: httpx.AsyncClient | None = field(default=None, repr=False)
    extras: dict[str, object] = field(default_factory=dict, repr=False)

    @property
    def client(self) -> httpx.AsyncClient:
        if self.http is None:
            raise RuntimeError("service is not running: outbound client is closed")
        return self.http

    @property
    def work_scale(self) -> float:
        return self.settings.service.work_scale


Hook = Callable[[ServiceRuntime], Awaitable[None]]


def build_app(
    runtime: ServiceRuntime,
    routes: Sequence[tuple[str, Handler]],
    *,
    interceptors: Sequence[Interceptor] | None = None,
    on_startup: Hook | None = None,
    on_shutdown: Hook | None = None,
    ticker: Callable[[ServiceRuntime], PeriodicTask | None] | None = None,
) -> Starlette:
    """Assemble a Starlette app whose lifespan owns the runtime's resources.

    Startup opens the traced outbound client, runs `on_startup` and starts the
    ticker. Shutdown reverses that order and finally shuts the provider down,
    draining buffered spans within the export shutdown timeout.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        settings = runtime.settings
        runtime.http = traced_async_client(runtime.tracer, transport=runtime.transport,
                                           timeout=settings.service.outbound_timeout)
        task: PeriodicTask | None = None
        try:
            if on_startup is not None:
                await on_startup(runtime)
            if ticker is not None and (task := ticker(runtime)) is not None:
                task.start()
            log.info("service started", service=runtime.provider.service_name)
            yield
        finally:
            if task is not None:
                await task.stop()
            if on_shutdown is not None:
                await on_shutdown(runtime)
            await runtime.http.aclose()
            runtime.http = None
            await asyncio.to_thread(runtime.provider.shutdown)
            log.info("service stopped", service=runtime.provider.service_name)

    app = Starlette(
        debug=runtime.settings.debug,
        routes=traced_routes(routes, interceptors if interceptors is not None else default_interceptors(runtime.tracer)),
        middleware=http_middleware(runtime.settings),
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    return app
