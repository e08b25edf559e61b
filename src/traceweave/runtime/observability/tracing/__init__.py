"""Tracing module: spans, context, propagation and tracer for distributed tracing."""

from .context import (
    IdGenerator,
    RandomIdGenerator,
    SpanContext,
    TraceContext,
    attach,
    current_span,
    detach,
    use_context,
)
from .propagation import (
    TRACEPARENT,
    TraceContextPropagator,
    extract,
    extract_context,
    format_traceparent,
    inject,
    parse_traceparent,
)
from .provider import TracerProvider
from .sampling import AlwaysOff, AlwaysOn, Sampler, TraceIdRatio, sampler_for_rate
from .span import Span, SpanEvent, SpanKind, SpanStatus
from .tracer import SpanScope, Tracer, traced
from .tree import AnomalyKind, TraceAnomaly, check_trace, children_of

__all__ = [
    # Context
    "SpanContext",
    "TraceContext",
    "IdGenerator",
    "RandomIdGenerator",
    "attach",
    "detach",
    "use_context",
    "current_span",
    # Propagation
    "TRACEPARENT",
    "TraceContextPropagator",
    "inject",
    "extract",
    "extract_context",
    "format_traceparent",
    "parse_traceparent",
    # Span
    "Span",
    "SpanEvent",
    "SpanKind",
    "SpanStatus",
    # Tracer
    "Tracer",
    "TracerProvider",
    "SpanScope",
    "traced",
    # Sampling
    "Sampler",
    "AlwaysOn",
    "AlwaysOff",
    "TraceIdRatio",
    "sampler_for_rate",
    # Tree checks
    "AnomalyKind",
    "TraceAnomaly",
    "check_trace",
    "children_of",
]
