"""Tests for the interceptor chain and the built-in interceptors."""

from __future__ import annotations

import orjson
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.testclient import TestClient

from traceweave.foundation.errors import UpstreamError
from traceweave.runtime.middleware import (
    CorrelationInterceptor,
    Handler,
    Interceptor,
    RecoverInterceptor,
    ServerTracingInterceptor,
    compose,
    status_for,
)
from traceweave.runtime.observability.export import InMemorySpanExporter
from traceweave.runtime.observability.logging import get_logger
from traceweave.runtime.observability.tracing import SpanKind, SpanStatus, Tracer, TracerProvider, current_span
from traceweave.services.common import traced_routes


def make_request(path: str = "/hello", headers: dict[str, str] | None = None, query: str = "") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "server": ("frontend.test", 8080),
        "client": ("10.0.0.7", 51234),
    })


async def ok(request: Request) -> Response:
    return PlainTextResponse("ok")


async def boom(request: Request) -> Response:
    raise UpstreamError("GET http://pokeapi.test returned 503", status=503)


# ═════════════════════════════════════════════════════════════════════════════
# compose
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_compose_runs_first_interceptor_outermost() -> None:
    calls: list[str] = []

    def recorder(name: str) -> Interceptor:
        async def interceptor(request: Request, next: Handler) -> Response:
            calls.append(f"{name}:before")
            response = await next(request)
            calls.append(f"{name}:after")
            return response
        return interceptor  # type: ignore[return-value]

    async def endpoint(request: Request) -> Response:
        calls.append("endpoint")
        return await ok(request)

    handler = compose([recorder("a"), recorder("b")], endpoint)
    await handler(make_request())
    assert calls == ["a:before", "b:before", "endpoint", "b:after", "a:after"]


@pytest.mark.asyncio
async def test_compose_empty_chain_is_endpoint() -> None:
    response = await compose([], ok)(make_request())
    assert response.body == b"ok"


@pytest.mark.asyncio
async def test_interceptor_can_short_circuit() -> None:
    async def deny(request: Request, next: Handler) -> Response:
        return Response(status_code=403)

    async def unreachable(request: Request) -> Response:
        raise AssertionError("endpoint must not run")

    response = await compose([deny], unreachable)(make_request())  # type: ignore[list-item]
    assert response.status_code == 403


# ═════════════════════════════════════════════════════════════════════════════
# ServerTracingInterceptor
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_server_span_attributes(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    seen: list[object] = []

    async def endpoint(request: Request) -> Response:
        seen.append(current_span())
        return await ok(request)

    handler = compose([ServerTracingInterceptor(tracer)], endpoint)
    await handler(make_request("/hello-traced", {"User-Agent": "pytest"}, query="q=1"))
    provider.force_flush()

    (span,) = exporter.spans
    assert seen == [span]
    assert span.kind is SpanKind.SERVER
    assert span.attributes == {
        "http.method": "GET",
        "http.route": "/hello-traced",
        "http.target": "/hello-traced?q=1",
        "http.scheme": "http",
        "net.host.name": "frontend.test",
        "net.peer.ip": "10.0.0.7",
        "http.user_agent": "pytest",
        "http.status_code": 200,
    }
    assert current_span() is None


@pytest.mark.asyncio
async def test_server_span_error_status(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    async def failing(request: Request) -> Response:
        return Response(status_code=503)

    response = await compose([ServerTracingInterceptor(tracer)], failing)(make_request())
    assert response.status_code == 503
    provider.force_flush()
    (span,) = exporter.spans
    assert span.status is SpanStatus.ERROR
    assert span.status_message == "HTTP 503"


@pytest.mark.asyncio
async def test_server_span_escaping_exception(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    with pytest.raises(UpstreamError):
        await compose([ServerTracingInterceptor(tracer)], boom)(make_request())
    provider.force_flush()
    (span,) = exporter.spans
    assert span.is_ended
    assert span.status is SpanStatus.ERROR
    assert span.events[-1].name == "exception"


@pytest.mark.asyncio
async def test_server_tracing_skip(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    handler = compose([ServerTracingInterceptor(tracer)], ok)
    await handler(make_request("/health"))
    custom = compose([ServerTracingInterceptor(tracer, skip=lambda r: r.url.path.startswith("/internal"))], ok)
    await custom(make_request("/internal/metrics"))
    await custom(make_request("/health"))
    provider.force_flush()
    assert [s.name for s in exporter.spans] == ["GET /health"]


def test_server_span_uses_route_template(tracer: Tracer, provider: TracerProvider,
                                         exporter: InMemorySpanExporter) -> None:
    async def pokemon(request: Request) -> Response:
        return PlainTextResponse(request.path_params["name"])

    app = Starlette(routes=traced_routes([("/pokemon/{name}", pokemon)], [ServerTracingInterceptor(tracer)]))
    with TestClient(app) as client:
        assert client.get("/pokemon/ditto").text == "ditto"
    provider.force_flush()

    (span,) = exporter.spans
    assert span.name == "GET /pokemon/{name}"
    assert span.attributes["http.route"] == "/pokemon/{name}"
    assert span.attributes["http.target"] == "/pokemon/ditto"


# ═════════════════════════════════════════════════════════════════════════════
# RecoverInterceptor
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_recover_maps_upstream_error() -> None:
    response = await compose([RecoverInterceptor()], boom)(make_request())
    assert response.status_code == 502
    assert response.media_type == "application/json"
    body = orjson.loads(response.body)
    assert body == {"message": "GET http://pokeapi.test returned 503", "code": "UPSTREAM_ERROR",
                    "status": 502, "request_id": None}


@pytest.mark.asyncio
async def test_recover_unknown_exception_is_500() -> None:
    async def broken(request: Request) -> Response:
        raise KeyError("pokemon")

    response = await compose([RecoverInterceptor(log=get_logger("test"))], broken)(make_request())
    assert response.status_code == 500
    body = orjson.loads(response.body)
    assert body["status"] == 500
    assert "pokemon" in body["message"]


def test_status_for_custom_map() -> None:
    status_map = ((KeyError, 404), (LookupError, 400))
    assert status_for(KeyError("x"), status_map) == 404
    assert status_for(IndexError("x"), status_map) == 400
    assert status_for(ValueError("x"), status_map) == 500


@pytest.mark.asyncio
async def test_default_chain_order(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    chain = compose([ServerTracingInterceptor(tracer), CorrelationInterceptor(), RecoverInterceptor()], boom)
    response = await chain(make_request(headers={"X-Request-ID": "req-7"}))

    assert response.status_code == 502
    assert response.headers["X-Request-ID"] == "req-7"
    assert orjson.loads(response.body)["request_id"] == "req-7"
    provider.force_flush()
    (span,) = exporter.spans
    assert span.status is SpanStatus.ERROR
    assert span.attributes["http.status_code"] == 502
    assert span.attributes["http.request_id"] == "req-7"
    exception = next(e for e in span.events if e.name == "exception")
    assert exception.attributes["exception.escaped"] is False


# ═════════════════════════════════════════════════════════════════════════════
# CorrelationInterceptor
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_correlation_mints_request_id() -> None:
    seen: list[str] = []

    async def endpoint(request: Request) -> Response:
        seen.append(request.state.request_id)
        return await ok(request)

    response = await compose([CorrelationInterceptor()], endpoint)(make_request())
    request_id = response.headers["X-Request-ID"]
    assert seen == [request_id]
    assert len(request_id) == 32


@pytest.mark.asyncio
async def test_correlation_custom_header() -> None:
    response = await compose([CorrelationInterceptor(header="X-Correlation-ID")], ok)(
        make_request(headers={"X-Correlation-ID": "abc"}))
    assert response.headers["X-Correlation-ID"] == "abc"
