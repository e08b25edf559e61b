"""Span types for distributed tracing.

Spans represent units of work with timing, attributes, and events. A span is
owned by the task that started it until `end()`, after which it belongs to
the span processor and is frozen.
"""

from __future__ import annotations

import threading
import time
import traceback
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Callable

from traceweave.foundation.errors import Attributes, AttributeValue, JsonDict, SpanStateError

from ..logging import get_logger

if TYPE_CHECKING:
    from .context import SpanContext

log = get_logger("traceweave.span")


class SpanKind(StrEnum):
    """Span type classification."""

    INTERNAL = "internal"  # In-process operation
    SERVER = "server"      # Inbound request handling
    CLIENT = "client"      # Outbound call
    PRODUCER = "producer"  # Enqueues async work
    CONSUMER = "consumer"  # Processes async work


class SpanStatus(StrEnum):
    """Span completion status."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(slots=True)
class SpanEvent:
    """Point-in-time event within a span (e.g., "Done Activity", "retry")."""

    name: str
    timestamp: float = field(default_factory=time.time)
    attributes: Attributes = field(default_factory=dict)


@dataclass(slots=True)
class Span:
    """Represents a unit of work in a trace.

    Attributes:
        name: Human-readable span name (e.g., "custom-span")
        context: SpanContext with trace/span IDs and sampling flag
        parent_span_id: Span id of the parent, None for trace roots
        kind: Type of work (internal, server, client)
        start_time: Unix timestamp of span start
        end_time: Unix timestamp of span end (None while recording)
        attributes: Key-value metadata, last write wins
        events: Timestamped events in insertion order
        status: Completion status
        status_message: Description for ERROR status
        scope: Instrumentation scope name of the creating tracer
        resource: Attributes of the producing service (service.name, ...)

    Example:
        >>> span = Span(name="search", context=SpanContext(trace_id, span_id))
        >>> span.set_attribute("query", "python tutorial")
        >>> span.add_event("cache_miss")
        >>> span.end()
    """

    name: str
    context: SpanContext
    parent_span_id: str | None = None
    kind: SpanKind = SpanKind.INTERNAL
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    attributes: Attributes = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)
    status: SpanStatus = SpanStatus.UNSET
    status_message: str | None = None
    scope: str = ""
    resource: Attributes = field(default_factory=dict, repr=False)
    _on_end: Callable[[Span], None] | None = field(default=None, repr=False, compare=False)
    _strict: bool = field(default=False, repr=False, compare=False)
    _end_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def span_context(self) -> SpanContext:
        """Read-only identity, valid before and after end()."""
        return self.context

    @property
    def trace_id(self) -> str:
        return self.context.trace_id

    @property
    def span_id(self) -> str:
        return self.context.span_id

    @property
    def duration_ms(self) -> float | None:
        """Duration in milliseconds, or None if not ended."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    @property
    def is_ended(self) -> bool:
        return self.end_time is not None

    @property
    def is_recording(self) -> bool:
        """Whether span still accepts mutation."""
        return self.end_time is None

    def _check_mutable(self, op: str) -> bool:
        if self.end_time is None:
            return True
        if self._strict:
            raise SpanStateError(f"{op} on ended span {self.name!r} ({self.context.span_id})")
        log.debug("ignored mutation of ended span", op=op, span=self.name)
        return False

    def set_attribute(self, key: str, value: AttributeValue) -> Span:
        """Set attribute, returns self for chaining."""
        if self._check_mutable("set_attribute"):
            self.attributes[key] = value
        return self

    def set_attributes(self, attrs: Attributes) -> Span:
        """Merge multiple attributes (last write wins)."""
        if self._check_mutable("set_attributes"):
            self.attributes.update(attrs)
        return self

    def add_event(self, name: str, attributes: Attributes | None = None, timestamp: float | None = None) -> Span:
        """Append timestamped event to span."""
        if self._check_mutable("add_event"):
            self.events.append(SpanEvent(name=name, timestamp=timestamp or time.time(),
                                         attributes=dict(attributes or {})))
        return self

    def set_status(self, status: SpanStatus, message: str | None = None) -> Span:
        """Set completion status. Message is kept only for ERROR."""
        if self._check_mutable("set_status"):
            self.status = status
            self.status_message = message if status is SpanStatus.ERROR else None
        return self

    def record_exception(self, exc: BaseException, *, escaped: bool = True) -> Span:
        """Record exception as an event and mark span as failed."""
        if not self._check_mutable("record_exception"):
            return self
        self.add_event("exception", {
            "exception.type": type(exc).__name__,
            "exception.message": str(exc),
            "exception.stacktrace": "".join(traceback.format_exception(exc)),
            "exception.escaped": escaped,
        })
        return self.set_status(SpanStatus.ERROR, str(exc) or type(exc).__name__)

    def end(self, end_time: float | None = None) -> Span:
        """End the span and hand it to the processor.

        First call wins. Later calls are ignored (logged at debug) and never
        re-enqueue the span. An explicit end_time earlier than start_time is
        clamped to start_time.
        """
        with self._end_lock:
            if self.end_time is not None:
                log.debug("span already ended", span=self.name, span_id=self.context.span_id)
                return self
            self.end_time = max(end_time if end_time is not None else time.time(), self.start_time)
        if self._on_end is not None:
            self._on_end(self)
        return self

    def to_dict(self) -> JsonDict:
        """Serialize span for export."""
        return {
            "name": self.name,
            "trace_id": self.context.trace_id,
            "span_id": self.context.span_id,
            "parent_id": self.parent_span_id,
            "sampled": self.context.sampled,
            "kind": self.kind.value,
            "scope": self.scope,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": self.duration_ms,
            "status": self.status.value,
            "status_message": self.status_message,
            "attributes": self.attributes,
            "events": [
                {"name": e.name, "timestamp": e.timestamp, "attributes": e.attributes}
                for e in self.events
            ],
            "resource": self.resource,
        }
