"""OTLP exporter bridge (requires the `otel` extra).

Converts traceweave Spans to OpenTelemetry ReadableSpan-compatible objects
and hands them to the OTLP/gRPC span exporter. The wire format belongs to
OpenTelemetry; this module only maps the data model.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from traceweave.foundation.errors import Attributes, ConfigError

from ...logging import get_logger
from ..exporter import Exporter, ExportResult

if TYPE_CHECKING:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import Event
    from opentelemetry.sdk.util.instrumentation import InstrumentationScope
    from opentelemetry.trace import SpanContext, SpanKind
    from opentelemetry.trace.status import Status

    from ...tracing.span import Span

log = get_logger("traceweave.export.otlp")


def create_otlp_exporter(
    endpoint: str = "http://localhost:4317",
    service_name: str = "traceweave",
    insecure: bool = True,
    headers: dict[str, str] | None = None,
    timeout: float = 30.0,
) -> Exporter:
    """Create OTLP exporter for OpenTelemetry backends. Requires: pip install traceweave[otel]"""
    try:
        import opentelemetry.exporter.otlp.proto.grpc.trace_exporter  # noqa: F401
    except ImportError as e:
        raise ConfigError("OTLP exporter requires: pip install traceweave[otel]") from e
    return OTLPBridge(endpoint=endpoint, service_name=service_name, insecure=insecure, headers=headers, timeout=timeout)


@dataclass
class OTLPBridge:
    """Bridge traceweave Spans to OTel OTLP export, preserving timing, context, attributes, events, and status."""

    endpoint: str
    service_name: str
    insecure: bool = True
    headers: dict[str, str] | None = None
    timeout: float = 30.0
    _exporter: OTLPSpanExporter | None = field(default=None, init=False, repr=False)
    _resource: Resource | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource

        self._resource = Resource.create({SERVICE_NAME: self.service_name})
        self._exporter = OTLPSpanExporter(endpoint=self.endpoint, insecure=self.insecure,
                                          headers=self.headers or {}, timeout=self.timeout)

    def export(self, spans: list[Span]) -> ExportResult:
        """Convert and export spans to OTLP backend."""
        from opentelemetry.sdk.trace.export import SpanExportResult

        if self._exporter is None:
            return ExportResult.FAILURE
        result = self._exporter.export([self._to_otel_span(s) for s in spans])  # type: ignore[list-item]
        return ExportResult.SUCCESS if result is SpanExportResult.SUCCESS else ExportResult.FAILURE

    def _to_otel_span(self, span: Span) -> _ReadableSpanAdapter:
        """Convert traceweave Span to OTel ReadableSpan."""
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import Event
        from opentelemetry.sdk.util.instrumentation import InstrumentationScope
        from opentelemetry.trace import SpanContext, TraceFlags
        from opentelemetry.trace import SpanKind as OtelSpanKind
        from opentelemetry.trace.status import Status, StatusCode

        kind_map = {"internal": OtelSpanKind.INTERNAL, "server": OtelSpanKind.SERVER, "client": OtelSpanKind.CLIENT,
                    "producer": OtelSpanKind.PRODUCER, "consumer": OtelSpanKind.CONSUMER}
        otel_kind = kind_map.get(span.kind.value, OtelSpanKind.INTERNAL)

        # Hex ids -> int
        trace_id = int(span.context.trace_id, 16)
        flags = TraceFlags(TraceFlags.SAMPLED if span.context.sampled else TraceFlags.DEFAULT)
        ctx = SpanContext(trace_id=trace_id, span_id=int(span.context.span_id, 16), is_remote=False, trace_flags=flags)
        parent_ctx = (SpanContext(trace_id=trace_id, span_id=int(span.parent_span_id, 16), is_remote=False,
                                  trace_flags=flags) if span.parent_span_id else None)

        # Seconds -> nanoseconds
        start_ns = int(span.start_time * 1e9)
        end_ns = int(span.end_time * 1e9) if span.end_time else start_ns

        status = (Status(StatusCode.ERROR, span.status_message or "") if span.status.value == "error"
                  else Status(StatusCode.OK) if span.status.value == "ok" else Status(StatusCode.UNSET))

        events = tuple(Event(name=e.name, timestamp=int(e.timestamp * 1e9),
                             attributes=self._flatten_attrs(e.attributes)) for e in span.events)

        assert self._resource is not None  # Always set in __post_init__
        resource = self._resource.merge(Resource(self._flatten_attrs(span.resource)))
        return _ReadableSpanAdapter(name=span.name, context=ctx, parent=parent_ctx, kind=otel_kind,
                                    start_time=start_ns, end_time=end_ns, attributes=self._flatten_attrs(span.attributes),
                                    events=events, status=status, resource=resource,
                                    instrumentation_scope=InstrumentationScope(name=span.scope or "traceweave"))

    def _flatten_attrs(self, attrs: Attributes) -> dict[str, str | int | float | bool]:
        """Flatten attributes to OTel-compatible primitive types."""
        def _convert(v: object) -> str | int | float | bool:
            if isinstance(v, (str, int, float, bool)):
                return v
            return json.dumps(v, default=str) if isinstance(v, (dict, list, tuple)) else ("" if v is None else str(v))
        return {k: _convert(v) for k, v in attrs.items()}

    def shutdown(self) -> None:
        """Flush and shutdown the exporter."""
        if self._exporter is not None:
            self._exporter.shutdown()


@dataclass(slots=True)
class _ReadableSpanAdapter:
    """Adapter implementing OTel ReadableSpan protocol for direct export."""

    name: str
    context: SpanContext
    parent: SpanContext | None
    kind: SpanKind
    start_time: int  # nanoseconds
    end_time: int  # nanoseconds
    attributes: dict[str, str | int | float | bool]
    events: tuple[Event, ...]
    status: Status
    resource: Resource
    instrumentation_scope: InstrumentationScope | None = None

    # ReadableSpan protocol
    def get_span_context(self) -> SpanContext:
        return self.context

    @property
    def parent_span_context(self) -> SpanContext | None:
        return self.parent

    links: tuple[()] = ()
    dropped_attributes: int = 0
    dropped_events: int = 0
    dropped_links: int = 0

    @property
    def instrumentation_info(self) -> InstrumentationScope | None:
        return self.instrumentation_scope
