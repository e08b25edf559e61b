"""Trace identifiers, SpanContext and the ambient TraceContext.

SpanContext is the propagable identity of a span. TraceContext is the
request-scoped carrier of the "current" span: it is immutable, and deriving
a child produces a new value rather than changing the old one. The active
TraceContext lives in a ContextVar so it follows asyncio tasks and threads
started with copied contexts.
"""

from __future__ import annotations

import random
import re
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .span import Span

INVALID_TRACE_ID = "0" * 32
INVALID_SPAN_ID = "0" * 16

_TRACE_ID_RE = re.compile(r"[0-9a-f]{32}")
_SPAN_ID_RE = re.compile(r"[0-9a-f]{16}")


def is_valid_trace_id(value: str) -> bool:
    return bool(_TRACE_ID_RE.fullmatch(value)) and value != INVALID_TRACE_ID


def is_valid_span_id(value: str) -> bool:
    return bool(_SPAN_ID_RE.fullmatch(value)) and value != INVALID_SPAN_ID


# ─────────────────────────────────────────────────────────────────────────────
# ID Generation
# ─────────────────────────────────────────────────────────────────────────────


@runtime_checkable
class IdGenerator(Protocol):
    """Produces trace and span ids as lowercase hex strings."""

    def new_trace_id(self) -> str: ...
    def new_span_id(self) -> str: ...


@dataclass(slots=True)
class RandomIdGenerator:
    """Random 128-bit trace ids and 64-bit span ids. Never returns the all-zero id."""

    def new_trace_id(self) -> str:
        while not (n := random.getrandbits(128)):
            pass
        return f"{n:032x}"

    def new_span_id(self) -> str:
        while not (n := random.getrandbits(64)):
            pass
        return f"{n:016x}"


# ─────────────────────────────────────────────────────────────────────────────
# SpanContext
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class SpanContext:
    """Immutable, propagable identity of a span.

    Attributes:
        trace_id: 32 lowercase hex chars shared by every span of a trace
        span_id: 16 lowercase hex chars unique to one span
        sampled: Whether spans of this trace are exported
        is_remote: True when extracted from an inbound carrier (not part of equality)

    Example:
        >>> ctx = SpanContext("4bf92f3577b34da6a3ce929d0e0e4736", "00f067aa0ba902b7", sampled=True)
        >>> ctx.flags
        '01'
    """

    trace_id: str
    span_id: str
    sampled: bool = True
    is_remote: bool = field(default=False, compare=False)

    @property
    def is_valid(self) -> bool:
        return is_valid_trace_id(self.trace_id) and is_valid_span_id(self.span_id)

    @property
    def flags(self) -> str:
        """Trace-flags byte as two hex chars (bit0 = sampled)."""
        return "01" if self.sampled else "00"


# ─────────────────────────────────────────────────────────────────────────────
# Ambient TraceContext
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TraceContext:
    """Request-scoped carrier of the current span.

    Holds the current SpanContext and, for local spans, the live Span so that
    handlers can annotate it. Never mutated: `with_span` returns a new value.

    Example:
        >>> root = TraceContext.empty()
        >>> root.span_context is None
        True
    """

    span_context: SpanContext | None = None
    span: Span | None = field(default=None, compare=False, repr=False)

    @classmethod
    def empty(cls) -> TraceContext:
        return _EMPTY

    @classmethod
    def from_remote(cls, span_context: SpanContext | None) -> TraceContext:
        """Wrap an extracted context. Invalid or missing contexts yield the empty context."""
        if span_context is None or not span_context.is_valid:
            return _EMPTY
        return cls(span_context=span_context)

    @classmethod
    def current(cls) -> TraceContext:
        """Get the ambient context for the running task."""
        return _current.get()

    def with_span(self, span: Span) -> TraceContext:
        """Derive a context whose current span is `span`."""
        return TraceContext(span_context=span.context, span=span)

    @property
    def is_empty(self) -> bool:
        return self.span_context is None


_EMPTY = TraceContext()
_current: ContextVar[TraceContext] = ContextVar("traceweave_context", default=_EMPTY)


def attach(ctx: TraceContext) -> Token[TraceContext]:
    """Install `ctx` as the ambient context. Pair every attach with detach."""
    return _current.set(ctx)


def detach(token: Token[TraceContext]) -> None:
    _current.reset(token)


@contextmanager
def use_context(ctx: TraceContext) -> Iterator[TraceContext]:
    """Scope `ctx` as the ambient context for the duration of the block.

    Example:
        >>> ctx, span = tracer.start(TraceContext.current(), "work")
        >>> with use_context(ctx):
        ...     do_nested_work()  # nested spans become children of "work"
    """
    token = attach(ctx)
    try:
        yield ctx
    finally:
        detach(token)


def current_span() -> Span | None:
    """Get the live span of the ambient context, if any."""
    return _current.get().span
