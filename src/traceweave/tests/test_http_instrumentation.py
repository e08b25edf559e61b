"""Tests for traced httpx transports and the one-shot sample."""

from __future__ import annotations

import io

import httpx
import pytest

from traceweave.foundation.config import TraceweaveSettings
from traceweave.foundation.errors import UpstreamError
from traceweave.instrumentation.http import traced_async_client, traced_client
from traceweave.runtime.observability.export import ConsoleExporter, InMemorySpanExporter
from traceweave.runtime.observability.tracing import (
    SpanKind,
    SpanStatus,
    Tracer,
    TracerProvider,
    parse_traceparent,
)
from traceweave.services import sample

URL = "http://pokeapi.test/api/v2/pokemon/ditto?limit=1"


class Recorder:
    """MockTransport handler that records requests and replies with a fixed status."""

    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json={"name": "ditto"})


# ═════════════════════════════════════════════════════════════════════════════
# Async transport
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_client_span_and_header(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    recorder = Recorder()
    async with traced_async_client(tracer, transport=httpx.MockTransport(recorder)) as client:
        async with tracer.span("custom-span") as parent:
            response = await client.get(URL)
    assert response.status_code == 200
    provider.force_flush()

    (span,) = [s for s in exporter.spans if s.kind is SpanKind.CLIENT]
    assert span.name == "HTTP GET"
    assert span.parent_span_id == parent.span_id
    assert span.status is SpanStatus.OK
    assert span.attributes == {
        "http.method": "GET",
        "http.url": "http://pokeapi.test/api/v2/pokemon/ditto",
        "net.peer.name": "pokeapi.test",
        "net.peer.port": 80,
        "http.status_code": 200,
    }
    sent = parse_traceparent(recorder.requests[0].headers["traceparent"])
    assert sent is not None
    assert (sent.trace_id, sent.span_id, sent.sampled) == (span.trace_id, span.span_id, True)


@pytest.mark.asyncio
async def test_request_without_ambient_span_starts_root(tracer: Tracer, provider: TracerProvider,
                                                        exporter: InMemorySpanExporter) -> None:
    async with traced_async_client(tracer, transport=httpx.MockTransport(Recorder())) as client:
        await client.get(URL)
    provider.force_flush()
    (span,) = exporter.spans
    assert span.parent_span_id is None


@pytest.mark.asyncio
async def test_server_error_marks_span(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    async with traced_async_client(tracer, transport=httpx.MockTransport(Recorder(503))) as client:
        response = await client.get(URL)
    assert response.status_code == 503
    provider.force_flush()
    (span,) = exporter.spans
    assert span.status is SpanStatus.ERROR
    assert span.status_message == "HTTP 503"


@pytest.mark.asyncio
async def test_client_error_is_not_span_error(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    async with traced_async_client(tracer, transport=httpx.MockTransport(Recorder(404))) as client:
        await client.get(URL)
    provider.force_flush()
    (span,) = exporter.spans
    assert span.status is SpanStatus.OK
    assert span.attributes["http.status_code"] == 404


@pytest.mark.asyncio
async def test_transport_error_is_recorded(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with traced_async_client(tracer, transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(httpx.ConnectError):
            await client.get(URL)
    provider.force_flush()
    (span,) = exporter.spans
    assert span.is_ended
    assert span.status is SpanStatus.ERROR
    assert span.events[-1].attributes["exception.type"] == "ConnectError"


# ═════════════════════════════════════════════════════════════════════════════
# Sync transport
# ═════════════════════════════════════════════════════════════════════════════


def test_sync_client(tracer: Tracer, provider: TracerProvider, exporter: InMemorySpanExporter) -> None:
    recorder = Recorder()
    with traced_client(tracer, transport=httpx.MockTransport(recorder)) as client:
        with tracer.span("custom-span") as parent:
            client.get("https://pokeapi.test/api/v2/pokemon/ditto")
    provider.force_flush()
    (span,) = [s for s in exporter.spans if s.kind is SpanKind.CLIENT]
    assert span.parent_span_id == parent.span_id
    assert span.attributes["net.peer.port"] == 443
    assert recorder.requests[0].headers["traceparent"] == f"00-{span.trace_id}-{span.span_id}-01"


# ═════════════════════════════════════════════════════════════════════════════
# Sample
# ═════════════════════════════════════════════════════════════════════════════


def _sample_settings() -> TraceweaveSettings:
    return TraceweaveSettings(service={"external_url": URL, "work_scale": 0.0})


def test_sample_run_exports_custom_span() -> None:
    exporter = InMemorySpanExporter()
    status = sample.run(_sample_settings(), exporter=exporter, transport=httpx.MockTransport(Recorder()))
    assert status == 200
    assert exporter.is_shutdown
    custom = exporter.by_name("custom-span")[0]
    (client_span,) = [s for s in exporter.spans if s.kind is SpanKind.CLIENT]
    assert client_span.parent_span_id == custom.span_id
    assert custom.resource["service.name"] == "traceweave-sample"


def test_sample_run_failure_still_exports() -> None:
    exporter = InMemorySpanExporter()
    with pytest.raises(UpstreamError) as info:
        sample.run(_sample_settings(), exporter=exporter, transport=httpx.MockTransport(Recorder(500)))
    assert info.value.status == 500
    custom = exporter.by_name("custom-span")[0]
    assert custom.status is SpanStatus.ERROR


def test_sample_console_output() -> None:
    out = io.StringIO()
    sample.run(_sample_settings(), exporter=ConsoleExporter(output=out, verbose=True),
               transport=httpx.MockTransport(Recorder()))
    text = out.getvalue()
    assert "custom-span" in text
    assert "HTTP GET" in text
