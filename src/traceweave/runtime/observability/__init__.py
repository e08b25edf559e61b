"""Observability core: tracing, span export and structured logging.

Quick Start:
    >>> from traceweave.runtime.observability import TracerProvider, BatchSpanProcessor, ConsoleExporter
    >>>
    >>> provider = TracerProvider(processor=BatchSpanProcessor(ConsoleExporter()))
    >>> tracer = provider.get_tracer("frontend")
    >>>
    >>> with tracer.span("operation-name") as span:
    ...     span.set_attribute("pokemon", "ditto")
    ...     span.add_event("ciao")
    >>>
    >>> provider.shutdown()  # drains buffered spans

Propagation:
    >>> headers = inject(TraceContext.current(), {})
    >>> # {"traceparent": "00-<trace-id>-<span-id>-01"}
    >>> parent = extract_context(request.headers)
"""

from .export import (
    BatchSpanProcessor,
    CompositeExporter,
    ConsoleExporter,
    Exporter,
    ExportResult,
    InMemorySpanExporter,
    JsonExporter,
    NoOpExporter,
    ProcessorState,
    ProcessorStats,
    SpanProcessor,
    create_exporter,
)
from .logging import BoundLogger, configure_logging, get_logger, log_context, span_logger
from .tracing import (
    TRACEPARENT,
    Span,
    SpanContext,
    SpanEvent,
    SpanKind,
    SpanScope,
    SpanStatus,
    TraceContext,
    TraceContextPropagator,
    Tracer,
    TracerProvider,
    current_span,
    extract,
    extract_context,
    inject,
    traced,
    use_context,
)

__all__ = [
    # Tracing
    "SpanContext", "TraceContext", "current_span", "use_context",
    "Span", "SpanEvent", "SpanKind", "SpanStatus", "SpanScope",
    "Tracer", "TracerProvider", "traced",
    "TRACEPARENT", "TraceContextPropagator", "inject", "extract", "extract_context",
    # Export
    "SpanProcessor", "BatchSpanProcessor", "ProcessorState", "ProcessorStats",
    "Exporter", "ExportResult", "ConsoleExporter", "JsonExporter", "InMemorySpanExporter",
    "NoOpExporter", "CompositeExporter", "create_exporter",
    # Logging
    "BoundLogger", "configure_logging", "get_logger", "log_context", "span_logger",
]
