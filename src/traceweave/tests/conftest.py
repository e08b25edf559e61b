"""Shared fixtures: in-memory span pipeline, quiet logging, fresh settings."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from traceweave.foundation.config import clear_settings_cache
from traceweave.runtime.observability.export import BatchSpanProcessor, InMemorySpanExporter
from traceweave.runtime.observability.logging import configure_logging
from traceweave.runtime.observability.tracing import Tracer, TracerProvider


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    """Silence structured logs; DEBUG level still exercises debug-only paths."""
    configure_logging(format="none", level="DEBUG")
    yield
    configure_logging(format="none", level="INFO")


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Each test sees settings from its own environment only."""
    monkeypatch.chdir("/")  # no stray .env
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def processor(exporter: InMemorySpanExporter) -> BatchSpanProcessor:
    """Processor without a worker thread: spans move only on force_flush/shutdown."""
    return BatchSpanProcessor(exporter, max_queue_size=64, max_export_batch_size=64, autostart=False)


@pytest.fixture
def provider(processor: BatchSpanProcessor) -> Iterator[TracerProvider]:
    provider = TracerProvider(processor=processor, resource={"service.name": "test"})
    yield provider
    provider.shutdown(timeout=1.0)


@pytest.fixture
def tracer(provider: TracerProvider) -> Tracer:
    return provider.get_tracer("traceweave.tests")
