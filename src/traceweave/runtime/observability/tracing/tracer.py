"""Tracer for creating and managing spans.

Provides the main API for instrumenting code with traces. `Tracer.start`
is the explicit form: it takes the parent ambient context and returns the
child context together with the new span. `Tracer.span` wraps the same
operation in a context manager that installs the child context for the
block and always ends the span.
"""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import TYPE_CHECKING, Callable, ParamSpec, TypeVar

from traceweave.foundation.errors import Attributes

from .context import SpanContext, TraceContext, attach, detach
from .span import Span, SpanKind, SpanStatus

if TYPE_CHECKING:
    from contextvars import Token
    from types import TracebackType

    from .provider import TracerProvider

P = ParamSpec("P")
T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Tracer:
    """Creates spans for one instrumentation scope.

    Holds no per-request state, so one instance is shared by every request
    and may be used from many threads or tasks at once. Obtain one from
    `TracerProvider.get_tracer`.

    Usage:
        >>> provider = TracerProvider(processor=BatchSpanProcessor(ConsoleExporter()))
        >>> tracer = provider.get_tracer("frontend")
        >>> ctx, span = tracer.start(TraceContext.current(), "custom-span")
        >>> with use_context(ctx):
        ...     fetch()  # client spans become children of custom-span
        >>> span.end()

    Args:
        name: Instrumentation scope recorded on every span
        provider: Owner of sampler, id generator and processor
    """

    name: str
    provider: TracerProvider = field(repr=False)

    def start(
        self,
        ctx: TraceContext | None,
        name: str,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes | None = None,
        start_time: float | None = None,
    ) -> tuple[TraceContext, Span]:
        """Start a span as a child of `ctx` (or a new root when ctx carries no span).

        Returns the derived context and the span. Use the returned context
        for nested work; `ctx` itself is left unchanged.
        """
        ctx = ctx or TraceContext.empty()
        provider = self.provider
        ids = provider.id_generator
        parent = ctx.span_context
        if parent is not None and parent.is_valid:
            trace_id, parent_id, sampled = parent.trace_id, parent.span_id, parent.sampled
        else:
            trace_id, parent_id = ids.new_trace_id(), None
            sampled = provider.sampler.should_sample(trace_id, name)

        span = Span(
            name=name,
            context=SpanContext(trace_id=trace_id, span_id=ids.new_span_id(), sampled=sampled),
            parent_span_id=parent_id,
            kind=kind,
            start_time=start_time if start_time is not None else time.time(),
            attributes=dict(attributes or {}),
            scope=self.name,
            resource=provider.resource,
            _on_end=provider.on_span_end if provider.enabled and sampled else None,
            _strict=provider.strict,
        )
        return ctx.with_span(span), span

    def start_span(
        self,
        name: str,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes | None = None,
    ) -> Span:
        """Start a span under the ambient context (caller must end it). Prefer `span()` for automatic lifecycle."""
        return self.start(TraceContext.current(), name, kind=kind, attributes=attributes)[1]

    def span(
        self,
        name: str,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes | None = None,
        ctx: TraceContext | None = None,
    ) -> SpanScope:
        """Create a span context manager.

        Example:
            >>> with tracer.span("operation-name") as span:
            ...     span.add_event("ciao")
            ...     do_work()
        """
        return SpanScope(self, name, kind, attributes or {}, ctx)


@dataclass(slots=True)
class SpanScope:
    """Context manager for span lifecycle.

    Installs the span as ambient context for the block. An escaping exception,
    cancellation included, is recorded as ERROR; the span is ended either way.
    """

    tracer: Tracer
    name: str
    kind: SpanKind
    attributes: Attributes
    parent: TraceContext | None = None
    _span: Span | None = None
    _token: Token[TraceContext] | None = None

    def __enter__(self) -> Span:
        parent = self.parent if self.parent is not None else TraceContext.current()
        ctx, self._span = self.tracer.start(parent, self.name, kind=self.kind, attributes=self.attributes)
        self._token = attach(ctx)
        return self._span

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None) -> None:
        if self._token is not None:
            detach(self._token)
            self._token = None
        if (span := self._span) is None:
            return
        if exc_val is not None:
            span.record_exception(exc_val)
        elif span.status is SpanStatus.UNSET:
            span.set_status(SpanStatus.OK)
        span.end()

    async def __aenter__(self) -> Span:
        return self.__enter__()

    async def __aexit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


# ─────────────────────────────────────────────────────────────────────────────
# Decorator API
# ─────────────────────────────────────────────────────────────────────────────


def traced(
    tracer: Tracer,
    name: str | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
    capture_args: bool = False,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to trace each invocation of a function.

    Creates a span per call with the function name and, optionally, keyword
    arguments as attributes. Exceptions mark the span as failed.

    Example:
        >>> @traced(tracer, kind=SpanKind.CLIENT)
        ... async def fetch_pokemon(name: str) -> dict:
        ...     ...
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        span_name = name or func.__name__
        build_attrs: Callable[[dict[str, object]], Attributes] = lambda kw: {
            "code.function": func.__qualname__,
            **({f"arg.{k}": _safe_repr(v) for k, v in kw.items()} if capture_args else {}),
        }

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with tracer.span(span_name, kind=kind, attributes=build_attrs(kwargs)):
                return func(*args, **kwargs)

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            async with tracer.span(span_name, kind=kind, attributes=build_attrs(kwargs)):
                return await func(*args, **kwargs)  # type: ignore[misc]

        return async_wrapper if inspect.iscoroutinefunction(func) else wrapper  # type: ignore[return-value]

    return decorator


def _safe_repr(value: object, max_len: int = 100) -> str:
    """Safe string representation with length limit."""
    s = repr(value)
    return f"{s[:max_len]}..." if len(s) > max_len else s
