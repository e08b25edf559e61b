"""Tests for the OTLP bridge: data-model mapping through the OTLP protobuf encoder."""

from __future__ import annotations

import json

import pytest

pytest.importorskip("opentelemetry.exporter.otlp.proto.grpc")

from opentelemetry.exporter.otlp.proto.common.trace_encoder import encode_spans  # noqa: E402
from opentelemetry.proto.trace.v1.trace_pb2 import Span as PB2Span  # noqa: E402
from opentelemetry.proto.trace.v1.trace_pb2 import Status as PB2Status  # noqa: E402
from opentelemetry.sdk.trace.export import SpanExportResult  # noqa: E402

from traceweave.foundation.config import TraceweaveSettings  # noqa: E402
from traceweave.runtime.observability.export import ExportResult, create_exporter  # noqa: E402
from traceweave.runtime.observability.export.vendors import OTLPBridge  # noqa: E402
from traceweave.runtime.observability.tracing import (  # noqa: E402
    Span,
    SpanContext,
    SpanEvent,
    SpanKind,
    SpanStatus,
)

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
ROOT_ID = "00f067aa0ba902b7"
CHILD_ID = "53995c3f42cd8ad8"


class StubExporter:
    """Stands in for OTLPSpanExporter: records spans, returns a fixed result."""

    def __init__(self, result: SpanExportResult) -> None:
        self.result = result
        self.exported: list[object] = []
        self.shutdown_called = False

    def export(self, spans: list[object]) -> SpanExportResult:
        self.exported.extend(spans)
        return self.result

    def shutdown(self) -> None:
        self.shutdown_called = True


@pytest.fixture
def bridge() -> OTLPBridge:
    return OTLPBridge(endpoint="http://localhost:4317", service_name="frontend")


def root_and_child(*, sampled: bool = True) -> tuple[Span, Span]:
    root = Span(name="GET /hello", context=SpanContext(TRACE_ID, ROOT_ID, sampled=sampled), kind=SpanKind.SERVER,
                start_time=1_700_000_000.0, scope="traceweave.server", resource={"service.name": "frontend"})
    child = Span(name="HTTP GET", context=SpanContext(TRACE_ID, CHILD_ID, sampled=sampled), parent_span_id=ROOT_ID,
                 kind=SpanKind.CLIENT, start_time=1_700_000_000.1, scope="traceweave.http",
                 resource={"service.name": "frontend"},
                 attributes={"http.method": "GET", "http.status_code": 200, "tags": ["a", "b"],
                             "peer": {"name": "pokeapi"}})
    child.events.append(SpanEvent("retry", timestamp=1_700_000_000.15, attributes={"attempt": 1}))
    child.set_status(SpanStatus.ERROR, "HTTP 503")
    child.end(1_700_000_000.2)
    root.set_status(SpanStatus.OK)
    root.end(1_700_000_000.3)
    return root, child


def encoded(bridge: OTLPBridge, *spans: Span) -> dict[str, PB2Span]:
    request = encode_spans([bridge._to_otel_span(s) for s in spans])  # type: ignore[arg-type]
    return {pb.name: pb for rs in request.resource_spans for ss in rs.scope_spans for pb in ss.spans}


def attr_values(pb: PB2Span) -> dict[str, object]:
    return {kv.key: getattr(kv.value, kv.value.WhichOneof("value")) for kv in pb.attributes}


# ═════════════════════════════════════════════════════════════════════════════
# Mapping
# ═════════════════════════════════════════════════════════════════════════════


def test_ids_and_parent(bridge: OTLPBridge) -> None:
    spans = encoded(bridge, *root_and_child())
    root, child = spans["GET /hello"], spans["HTTP GET"]
    assert root.trace_id.hex() == child.trace_id.hex() == TRACE_ID
    assert root.span_id.hex() == ROOT_ID
    assert root.parent_span_id == b""
    assert child.span_id.hex() == CHILD_ID
    assert child.parent_span_id.hex() == ROOT_ID


def test_kind_timing_and_status(bridge: OTLPBridge) -> None:
    spans = encoded(bridge, *root_and_child())
    root, child = spans["GET /hello"], spans["HTTP GET"]
    assert root.kind == PB2Span.SpanKind.SPAN_KIND_SERVER
    assert child.kind == PB2Span.SpanKind.SPAN_KIND_CLIENT
    assert child.start_time_unix_nano == int(1_700_000_000.1 * 1e9)
    assert child.end_time_unix_nano == int(1_700_000_000.2 * 1e9)
    assert root.status.code == PB2Status.StatusCode.STATUS_CODE_OK
    assert child.status.code == PB2Status.StatusCode.STATUS_CODE_ERROR
    assert child.status.message == "HTTP 503"


def test_attributes_are_flattened(bridge: OTLPBridge) -> None:
    child = encoded(bridge, *root_and_child())["HTTP GET"]
    assert attr_values(child) == {
        "http.method": "GET",
        "http.status_code": 200,
        "tags": json.dumps(["a", "b"]),
        "peer": json.dumps({"name": "pokeapi"}),
    }
    assert bridge._flatten_attrs({"missing": None, "ratio": 0.5}) == {"missing": "", "ratio": 0.5}
    (event,) = child.events
    assert event.name == "retry"
    assert event.time_unix_nano == int(1_700_000_000.15 * 1e9)
    assert event.attributes[0].key == "attempt" and event.attributes[0].value.int_value == 1


@pytest.mark.parametrize("sampled", [True, False])
def test_sampled_flag(bridge: OTLPBridge, sampled: bool) -> None:
    root, _ = root_and_child(sampled=sampled)
    assert bridge._to_otel_span(root).get_span_context().trace_flags.sampled is sampled


def test_resource_and_scope(bridge: OTLPBridge) -> None:
    root, _ = root_and_child()
    root.resource = {"service.name": "secondary", "deployment.environment": "test"}
    otel = bridge._to_otel_span(root)
    assert otel.resource.attributes["service.name"] == "secondary"
    assert otel.resource.attributes["deployment.environment"] == "test"
    assert otel.instrumentation_scope is not None and otel.instrumentation_scope.name == "traceweave.server"

    root.resource = {}
    assert bridge._to_otel_span(root).resource.attributes["service.name"] == "frontend"


# ═════════════════════════════════════════════════════════════════════════════
# Export results
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(("result", "expected"), [
    (SpanExportResult.SUCCESS, ExportResult.SUCCESS),
    (SpanExportResult.FAILURE, ExportResult.FAILURE),
])
def test_export_result(bridge: OTLPBridge, result: SpanExportResult, expected: ExportResult) -> None:
    stub = bridge._exporter = StubExporter(result)  # type: ignore[assignment]
    assert bridge.export(list(root_and_child())) is expected
    assert len(stub.exported) == 2


def test_shutdown_reaches_exporter(bridge: OTLPBridge) -> None:
    stub = bridge._exporter = StubExporter(SpanExportResult.SUCCESS)  # type: ignore[assignment]
    bridge.shutdown()
    assert stub.shutdown_called


def test_create_exporter_builds_bridge() -> None:
    settings = TraceweaveSettings(tracing={"exporter": "otlp", "service_name": "greeter"})
    exp = create_exporter("otlp", settings)
    assert isinstance(exp, OTLPBridge)
    assert exp.service_name == "greeter"
    exp.shutdown()
