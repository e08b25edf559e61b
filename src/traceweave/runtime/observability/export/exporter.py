"""Span exporters for different observability backends.

Provides pluggable export destinations:
- ConsoleExporter: Pretty-printed spans for development
- JsonExporter: JSON lines for log aggregation
- InMemorySpanExporter: Collected spans for tests
- CompositeExporter: Fan-out to several exporters
- NoOpExporter: Silent export
- OTLPBridge / ZipkinExporter: production backends (see `vendors`)

Exporters are called from the processor's worker thread, never from the
request path.
"""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, TextIO, runtime_checkable

import orjson

from traceweave.foundation.errors import ConfigError

if TYPE_CHECKING:
    from traceweave.foundation.config import TraceweaveSettings

    from ..tracing.span import Span

# Color constants for ConsoleExporter
_SPAN_COLORS = {"reset": "\033[0m", "bold": "\033[1m", "dim": "\033[2m",
                "red": "\033[31m", "green": "\033[32m", "yellow": "\033[33m", "cyan": "\033[36m"}
_SPAN_NO_COLORS = {k: "" for k in _SPAN_COLORS}


class ExportResult(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"


@runtime_checkable
class Exporter(Protocol):
    """Protocol for span exporters.

    Exporters receive batches of ended spans and send them to backends.
    Failures are reported through the return value; the processor counts
    and retries them.
    """

    def export(self, spans: list[Span]) -> ExportResult:
        """Export batch of completed spans."""
        ...

    def shutdown(self) -> None:
        """Release resources. Called once after the final export."""
        ...


@dataclass(slots=True)
class NoOpExporter:
    """Silent exporter for disabled tracing."""

    def export(self, spans: list[Span]) -> ExportResult:
        return ExportResult.SUCCESS

    def shutdown(self) -> None:
        pass


@dataclass(slots=True)
class InMemorySpanExporter:
    """Collects exported spans in memory. Thread-safe; used by tests.

    Example:
        >>> exporter = InMemorySpanExporter()
        >>> provider = TracerProvider(processor=BatchSpanProcessor(exporter))
        >>> ...
        >>> provider.force_flush()
        >>> [s.name for s in exporter.spans]
        ['custom-span']
    """

    spans: list[Span] = field(default_factory=list)
    batches: list[int] = field(default_factory=list)
    is_shutdown: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def export(self, spans: list[Span]) -> ExportResult:
        with self._lock:
            self.spans.extend(spans)
            self.batches.append(len(spans))
        return ExportResult.SUCCESS

    def get_finished_spans(self) -> list[Span]:
        with self._lock:
            return list(self.spans)

    def by_name(self, name: str) -> list[Span]:
        return [s for s in self.get_finished_spans() if s.name == name]

    def clear(self) -> None:
        with self._lock:
            self.spans.clear()
            self.batches.clear()

    def shutdown(self) -> None:
        self.is_shutdown = True


@dataclass(slots=True)
class ConsoleExporter:
    """Pretty-print spans to console for development.

    Args: output (stderr), colors (True if TTY), verbose (False)
    """

    output: TextIO = field(default_factory=lambda: sys.stderr)
    colors: bool = field(default=True)
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.colors and not getattr(self.output, "isatty", lambda: False)():
            self.colors = False

    def export(self, spans: list[Span]) -> ExportResult:
        for s in spans: self._print_span(s)
        return ExportResult.SUCCESS

    def _print_span(self, span: Span) -> None:
        c = _SPAN_COLORS if self.colors else _SPAN_NO_COLORS
        status_sym = {"ok": "✓", "error": "✗", "unset": "○"}.get(span.status.value, "?")
        status_color = {"ok": c["green"], "error": c["red"], "unset": c["dim"]}
        ts = datetime.fromtimestamp(span.start_time, tz=UTC).strftime("%H:%M:%S.%f")[:-3]
        dur = f"{span.duration_ms:.1f}ms" if span.duration_ms is not None else "..."
        indent = "  " if span.parent_span_id else ""

        line = (f"{c['dim']}{ts}{c['reset']} "
                f"{status_color.get(span.status.value, c['dim'])}{status_sym}{c['reset']} "
                f"{indent}{c['bold']}{span.name}{c['reset']} "
                f"{c['cyan']}[{span.kind.value}]{c['reset']} "
                f"{c['yellow']}{dur}{c['reset']} "
                f"{c['dim']}trace={span.context.trace_id} span={span.context.span_id}{c['reset']}")

        if span.status_message:
            line += f" {c['red']}error={span.status_message[:50]}{c['reset']}"

        print(line, file=self.output)

        if self.verbose:
            for k, v in span.attributes.items():
                print(f"    {c['dim']}{k}={v!r}{c['reset']}", file=self.output)
            for e in span.events:
                print(f"    {c['dim']}event {e.name} {e.attributes or ''}{c['reset']}", file=self.output)

    def shutdown(self) -> None:
        self.output.flush()


@dataclass(slots=True)
class JsonExporter:
    """Export spans as JSON lines for log aggregation.

    Each span is a single JSON object per line (JSONL format).
    Suitable for shipping to Elasticsearch, Loki, etc.
    """

    output: TextIO = field(default_factory=lambda: sys.stdout)

    def export(self, spans: list[Span]) -> ExportResult:
        for s in spans:
            print(orjson.dumps(s.to_dict(), default=str).decode(), file=self.output)
        return ExportResult.SUCCESS

    def shutdown(self) -> None:
        self.output.flush()


@dataclass(slots=True)
class CompositeExporter:
    """Fan-out to multiple exporters. Useful for dev console + production backend simultaneously.

    Every child sees every batch; the result is FAILURE if any child fails.
    """

    exporters: list[Exporter] = field(default_factory=list)

    def export(self, spans: list[Span]) -> ExportResult:
        results = [e.export(spans) for e in self.exporters]
        return ExportResult.FAILURE if ExportResult.FAILURE in results else ExportResult.SUCCESS

    def shutdown(self) -> None:
        for e in self.exporters: e.shutdown()


# ─────────────────────────────────────────────────────────────────────────────
# Factory
# ─────────────────────────────────────────────────────────────────────────────


def create_exporter(name: str, settings: TraceweaveSettings) -> Exporter:
    """Create an exporter by name: "console", "json", "otlp", "zipkin", "memory", "none".

    Example:
        >>> exporter = create_exporter("zipkin", get_settings())
    """
    tracing = settings.tracing
    match name:
        case "console":
            return ConsoleExporter(verbose=tracing.verbose)
        case "json":
            return JsonExporter()
        case "otlp":
            from .vendors.otlp import create_otlp_exporter
            return create_otlp_exporter(endpoint=tracing.otlp_endpoint, service_name=tracing.service_name,
                                        insecure=tracing.otlp_insecure, timeout=settings.export.export_timeout)
        case "zipkin":
            from .vendors.zipkin import ZipkinExporter
            return ZipkinExporter(endpoint=tracing.zipkin_endpoint, service_name=tracing.service_name,
                                  timeout=settings.export.export_timeout)
        case "memory":
            return InMemorySpanExporter()
        case "none":
            return NoOpExporter()
        case _:
            raise ConfigError(f"Unknown exporter: {name}. Use 'console', 'json', 'otlp', 'zipkin', 'memory' or 'none'")
