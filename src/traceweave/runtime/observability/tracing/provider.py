"""TracerProvider: the explicit tracing configuration object.

Built once at process start and handed to whatever needs a tracer. There is
no process-wide provider; shutting one down flushes its processor and stops
its background worker.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from traceweave.foundation.errors import Attributes

from ..logging import get_logger
from .context import IdGenerator, RandomIdGenerator
from .sampling import AlwaysOn, Sampler, sampler_for_rate
from .tracer import Tracer

if TYPE_CHECKING:
    from types import TracebackType

    from traceweave.foundation.config import TraceweaveSettings

    from ..export import Exporter, SpanProcessor
    from .span import Span

log = get_logger("traceweave.provider")


@dataclass(slots=True)
class TracerProvider:
    """Owns the span pipeline shared by every tracer of a process.

    Usage:
        >>> with TracerProvider.from_settings(get_settings()) as provider:
        ...     tracer = provider.get_tracer("frontend")
        ...     with tracer.span("startup"):
        ...         ...
        # leaving the block flushes and stops the processor

    Args:
        processor: Receives ended, sampled spans (None = spans are dropped)
        resource: Attributes describing the service (service.name, ...)
        sampler: Root sampling decision
        id_generator: Trace/span id source
        strict: Raise SpanStateError when an ended span is mutated
        enabled: When False spans still propagate but are never processed
    """

    processor: SpanProcessor | None = None
    resource: Attributes = field(default_factory=lambda: {"service.name": "traceweave"})
    sampler: Sampler = field(default_factory=AlwaysOn)
    id_generator: IdGenerator = field(default_factory=RandomIdGenerator)
    strict: bool = False
    enabled: bool = True
    _tracers: dict[str, Tracer] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _shutdown: bool = field(default=False, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: TraceweaveSettings,
        *,
        exporter: Exporter | None = None,
        service_name: str | None = None,
    ) -> TracerProvider:
        """Build provider, batch processor and exporter from settings.

        An explicit exporter overrides `settings.tracing.exporter`; an explicit
        service_name overrides `settings.tracing.service_name`.
        """
        from ..export import BatchSpanProcessor, create_exporter

        tracing = settings.tracing
        exp = exporter if exporter is not None else create_exporter(tracing.exporter, settings)
        processor = BatchSpanProcessor.from_settings(exp, settings)
        return cls(
            processor=processor,
            resource={"service.name": service_name or tracing.service_name, "service.version": tracing.service_version,
                      "deployment.environment": settings.environment},
            sampler=sampler_for_rate(tracing.sample_rate),
            strict=settings.strict_spans,
            enabled=tracing.enabled,
        )

    @property
    def service_name(self) -> str:
        return str(self.resource.get("service.name", ""))

    def get_tracer(self, name: str) -> Tracer:
        """Get (or create) the tracer for an instrumentation scope."""
        with self._lock:
            if (tracer := self._tracers.get(name)) is None:
                tracer = self._tracers[name] = Tracer(name=name, provider=self)
            return tracer

    def on_span_end(self, span: Span) -> None:
        """Hand an ended span to the processor."""
        if self.processor is not None:
            self.processor.enqueue(span)

    def force_flush(self, timeout: float | None = None) -> bool:
        return self.processor.force_flush(timeout) if self.processor is not None else True

    def shutdown(self, timeout: float | None = None) -> None:
        """Flush and stop the processor. Safe to call more than once."""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
        if self.processor is not None:
            self.processor.shutdown(timeout)
        log.debug("tracer provider shut down", service=self.service_name)

    def __enter__(self) -> TracerProvider:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None) -> None:
        self.shutdown()
