"""One-shot sample: a single `custom-span` with an external call, printed to the console."""

from __future__ import annotations

import sys
import time

import httpx

from traceweave.foundation.config import TraceweaveSettings, get_settings
from traceweave.foundation.errors import UpstreamError
from traceweave.instrumentation.http import traced_client
from traceweave.runtime.observability.export import ConsoleExporter, Exporter
from traceweave.runtime.observability.logging import configure_logging, get_logger
from traceweave.runtime.observability.tracing import TracerProvider

log = get_logger("traceweave.sample")


def run(
    settings: TraceweaveSettings | None = None,
    *,
    exporter: Exporter | None = None,
    transport: httpx.BaseTransport | None = None,
) -> int:
    """Emit one trace and flush it. Returns the upstream status code.

    The provider is shut down before returning, so the span is exported
    even when the external call fails (the UpstreamError still propagates).
    """
    settings = settings or get_settings()
    exporter = exporter or ConsoleExporter(verbose=True)
    url = settings.service.external_url
    with TracerProvider.from_settings(settings, exporter=exporter,
                                      service_name=f"{settings.tracing.service_name}-sample") as provider:
        tracer = provider.get_tracer("traceweave.sample")
        with traced_client(tracer, transport=transport, timeout=settings.service.outbound_timeout) as client:
            with tracer.span("custom-span"):
                if (delay := 1.0 * settings.service.work_scale) > 0:
                    time.sleep(delay)
                try:
                    response = client.get(url)
                except httpx.HTTPError as e:
                    raise UpstreamError(f"GET {url} failed: {type(e).__name__}: {e}", url=url) from e
                if not response.is_success:
                    raise UpstreamError(f"GET {url} returned {response.status_code}", url=url,
                                        status=response.status_code)
    return response.status_code


def main() -> None:
    settings = get_settings()
    configure_logging(settings.logging.format, settings.logging.level)
    try:
        status = run(settings)
    except UpstreamError as e:
        log.error("sample failed", code=e.code.value, error=e.message)
        sys.exit(1)
    log.info("sample done", status=status)
