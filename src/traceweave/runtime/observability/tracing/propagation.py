"""W3C Trace Context propagation (`traceparent` header).

Header format: `version-traceid-spanid-flags`, e.g.
`00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01`.

Extraction never raises: anything malformed is treated as absent so the
receiver starts a new root trace instead of failing the request.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Callable, TypeVar

from .context import SpanContext, TraceContext, is_valid_span_id, is_valid_trace_id

TRACEPARENT = "traceparent"
VERSION = "00"

C = TypeVar("C")

Getter = Callable[[C, str], str | None]
Setter = Callable[[C, str, str], None]

_VERSION_RE = re.compile(r"[0-9a-f]{2}")
_FLAGS_RE = re.compile(r"[0-9a-f]{2}")


def default_getter(carrier: Mapping[str, str], key: str) -> str | None:
    """Case-insensitive lookup for plain mappings; header classes handle case themselves."""
    if (value := carrier.get(key)) is not None:
        return value
    if isinstance(carrier, dict):
        for k, v in carrier.items():
            if isinstance(k, str) and k.lower() == key:
                return v
    return None


def default_setter(carrier: MutableMapping[str, str], key: str, value: str) -> None:
    carrier[key] = value


def format_traceparent(span_context: SpanContext) -> str:
    """Render a span context as a version-00 traceparent value."""
    return f"{VERSION}-{span_context.trace_id}-{span_context.span_id}-{span_context.flags}"


def parse_traceparent(value: str | None) -> SpanContext | None:
    """Parse a traceparent value. Returns None for anything malformed.

    Versions other than 00 are decoded from the first four fields; version
    00 must have exactly four.
    """
    if not value or not isinstance(value, str):
        return None
    parts = value.strip().split("-")
    if len(parts) < 4:
        return None
    version, trace_id, span_id, flags = parts[:4]
    if not _VERSION_RE.fullmatch(version) or version == "ff":
        return None
    if version == VERSION and len(parts) != 4:
        return None
    if not (is_valid_trace_id(trace_id) and is_valid_span_id(span_id) and _FLAGS_RE.fullmatch(flags)):
        return None
    return SpanContext(trace_id=trace_id, span_id=span_id, sampled=bool(int(flags, 16) & 0x01), is_remote=True)


def inject(ctx: TraceContext, carrier: C, setter: Setter[C] = default_setter) -> C:  # type: ignore[assignment]
    """Write the current span context into `carrier`.

    Pure with respect to `ctx`. Empty or invalid contexts leave the carrier
    untouched. Returns the carrier for chaining.
    """
    sc = ctx.span_context
    if sc is not None and sc.is_valid:
        setter(carrier, TRACEPARENT, format_traceparent(sc))
    return carrier


def extract(carrier: C, getter: Getter[C] = default_getter) -> SpanContext | None:  # type: ignore[assignment]
    """Read a span context from `carrier`; None when absent or malformed."""
    try:
        return parse_traceparent(getter(carrier, TRACEPARENT))
    except (TypeError, ValueError, AttributeError):
        return None


def extract_context(carrier: C, getter: Getter[C] = default_getter) -> TraceContext:  # type: ignore[assignment]
    """Extract and wrap as an ambient context (empty when absent)."""
    return TraceContext.from_remote(extract(carrier, getter))


@dataclass(frozen=True, slots=True)
class TraceContextPropagator:
    """Propagator object for components that take one by injection.

    Example:
        >>> propagator = TraceContextPropagator()
        >>> headers = propagator.inject(ctx, {})
        >>> propagator.extract(headers) == ctx.span_context
        True
    """

    fields: tuple[str, ...] = (TRACEPARENT,)

    def inject(self, ctx: TraceContext, carrier: C, setter: Setter[C] = default_setter) -> C:  # type: ignore[assignment]
        return inject(ctx, carrier, setter)

    def extract(self, carrier: C, getter: Getter[C] = default_getter) -> SpanContext | None:  # type: ignore[assignment]
        return extract(carrier, getter)
