"""Tests for grpc.aio tracing interceptors over a loopback Greeter server."""

from __future__ import annotations

import asyncio
import socket
from collections.abc import AsyncIterator

import grpc
import pytest
import pytest_asyncio

from traceweave.foundation.errors import ErrorCode, TraceweaveError
from traceweave.instrumentation.grpc import rpc_attributes
from traceweave.runtime.observability.export import InMemorySpanExporter
from traceweave.runtime.observability.tracing import Span, SpanKind, SpanStatus, Tracer, TracerProvider, check_trace
from traceweave.services.greeter import GreeterClient, HelloRequest, create_server, traced_channel


@pytest_asyncio.fixture
async def greeter(tracer: Tracer) -> AsyncIterator[GreeterClient]:
    server, port = create_server(tracer, "127.0.0.1:0")
    await server.start()
    channel = traced_channel(tracer, f"127.0.0.1:{port}")
    try:
        yield GreeterClient(channel)
    finally:
        await channel.close()
        await server.stop(grace=None)


async def exported_server_span(provider: TracerProvider, exporter: InMemorySpanExporter) -> Span:
    """Flush until the SERVER span is exported. An aborted handler ends it after the client sees the status."""
    async with asyncio.timeout(5.0):
        while True:
            provider.force_flush()
            if servers := [s for s in exporter.spans if s.kind is SpanKind.SERVER]:
                return servers[0]
            await asyncio.sleep(0.01)


def test_rpc_attributes() -> None:
    assert rpc_attributes("/greeter.Greeter/SayHello") == {
        "rpc.system": "grpc", "rpc.service": "greeter.Greeter", "rpc.method": "SayHello"}


def test_hello_request_defaults() -> None:
    assert HelloRequest().greeting == ""


@pytest.mark.asyncio
async def test_say_hello_continues_trace(greeter: GreeterClient, tracer: Tracer, provider: TracerProvider,
                                         exporter: InMemorySpanExporter) -> None:
    async with tracer.span("GET /hello-grpc") as root:
        reply = await greeter.say_hello("ciao", timeout=5.0)
    assert reply == "Hello ciao"
    server = await exported_server_span(provider, exporter)

    spans = exporter.spans
    (client,) = [s for s in spans if s.kind is SpanKind.CLIENT]
    assert client.name == server.name == "greeter.Greeter/SayHello"
    assert client.parent_span_id == root.span_id
    assert server.parent_span_id == client.span_id
    assert server.trace_id == client.trace_id == root.trace_id
    assert client.status is SpanStatus.OK and server.status is SpanStatus.OK
    assert client.attributes["rpc.grpc.status_code"] == 0
    assert server.attributes["rpc.method"] == "SayHello"
    assert check_trace(spans, require_parents=True) == []


@pytest.mark.asyncio
async def test_empty_greeting_is_invalid_argument(greeter: GreeterClient, provider: TracerProvider,
                                                  exporter: InMemorySpanExporter) -> None:
    with pytest.raises(TraceweaveError) as info:
        await greeter.say_hello("", timeout=5.0)
    assert info.value.code is ErrorCode.INVALID_ARGUMENT
    assert "INVALID_ARGUMENT" in str(info.value)

    server = await exported_server_span(provider, exporter)
    assert len(exporter.spans) == 2
    for span in exporter.spans:
        assert span.status is SpanStatus.ERROR
        assert span.attributes["rpc.grpc.status_code"] == grpc.StatusCode.INVALID_ARGUMENT.value[0]
    assert server.status_message == "request missing required field: greeting"


@pytest.mark.asyncio
async def test_unreachable_server_maps_to_network_error(tracer: Tracer, provider: TracerProvider,
                                                       exporter: InMemorySpanExporter) -> None:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    channel = traced_channel(tracer, f"127.0.0.1:{port}")
    try:
        with pytest.raises(TraceweaveError) as info:
            await GreeterClient(channel).say_hello("ciao", timeout=1.0)
    finally:
        await channel.close()
    assert info.value.code in (ErrorCode.NETWORK_ERROR, ErrorCode.TIMEOUT)

    provider.force_flush()
    (client,) = exporter.spans
    assert client.kind is SpanKind.CLIENT
    assert client.status is SpanStatus.ERROR
