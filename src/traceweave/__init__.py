"""Traceweave - distributed trace propagation and span lifecycle for Python services.

A small tracing core (W3C traceparent propagation, immutable ambient context,
batched export) plus httpx/grpc.aio instrumentation and example services
showing it end to end.

Quick Start:
    >>> from traceweave import TracerProvider, BatchSpanProcessor, ConsoleExporter
    >>>
    >>> provider = TracerProvider(processor=BatchSpanProcessor(ConsoleExporter()))
    >>> tracer = provider.get_tracer("checkout")
    >>>
    >>> with tracer.span("custom-span") as span:
    ...     span.set_attribute("isTrue", True)
    ...     with tracer.span("operation-name") as child:
    ...         child.add_event("ciao")
    >>>
    >>> provider.shutdown()

Explicit contexts:
    >>> ctx, a = tracer.start(TraceContext.empty(), "A")   # new root trace
    >>> _, b = tracer.start(ctx, "B")                       # child of A
    >>> b.end(); a.end()

Propagation:
    >>> inject(ctx, headers)          # writes traceparent
    >>> extract(request.headers)      # SpanContext or None, never raises

From settings (TRACEWEAVE_* environment, .env):
    >>> provider = TracerProvider.from_settings(get_settings())
"""

from __future__ import annotations

__version__ = "0.1.0"

# Config
from .foundation.config import TraceweaveSettings, clear_settings_cache, get_settings

# Errors
from .foundation.errors import (
    ConfigError,
    ErrorCode,
    ErrorInfo,
    SpanStateError,
    TraceweaveError,
    UpstreamError,
    classify_exception,
)

# Tracing core
from .runtime.observability.tracing import (
    TRACEPARENT,
    AlwaysOff,
    AlwaysOn,
    Span,
    SpanContext,
    SpanEvent,
    SpanKind,
    SpanScope,
    SpanStatus,
    TraceContext,
    TraceContextPropagator,
    TraceIdRatio,
    Tracer,
    TracerProvider,
    check_trace,
    current_span,
    extract,
    extract_context,
    inject,
    traced,
    use_context,
)

# Export
from .runtime.observability.export import (
    BatchSpanProcessor,
    CompositeExporter,
    ConsoleExporter,
    Exporter,
    ExportResult,
    InMemorySpanExporter,
    JsonExporter,
    NoOpExporter,
    ProcessorStats,
    create_exporter,
)

# Logging
from .runtime.observability.logging import configure_logging, get_logger, log_context, span_logger

# Interceptors
from .runtime.middleware import (
    CorrelationInterceptor,
    Interceptor,
    RecoverInterceptor,
    ServerTracingInterceptor,
    compose,
)

# Instrumentation
from .instrumentation.http import SyncTracingTransport, TracingTransport, traced_async_client, traced_client

__all__ = [
    "__version__",
    # Config
    "TraceweaveSettings", "get_settings", "clear_settings_cache",
    # Errors
    "ErrorCode", "ErrorInfo", "TraceweaveError", "SpanStateError", "UpstreamError", "ConfigError",
    "classify_exception",
    # Tracing
    "SpanContext", "TraceContext", "current_span", "use_context",
    "Span", "SpanEvent", "SpanKind", "SpanStatus", "SpanScope",
    "Tracer", "TracerProvider", "traced", "check_trace",
    "AlwaysOn", "AlwaysOff", "TraceIdRatio",
    "TRACEPARENT", "TraceContextPropagator", "inject", "extract", "extract_context",
    # Export
    "BatchSpanProcessor", "ProcessorStats", "Exporter", "ExportResult",
    "ConsoleExporter", "JsonExporter", "InMemorySpanExporter", "NoOpExporter", "CompositeExporter",
    "create_exporter",
    # Logging
    "configure_logging", "get_logger", "log_context", "span_logger",
    # Interceptors
    "Interceptor", "compose", "ServerTracingInterceptor", "RecoverInterceptor", "CorrelationInterceptor",
    # Instrumentation
    "TracingTransport", "SyncTracingTransport", "traced_async_client", "traced_client",
]
