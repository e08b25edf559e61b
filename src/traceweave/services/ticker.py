"""Background ticker producing root `timed-operation` spans.

Each tick starts a new trace (never a descendant of a request span) and makes
one external call inside it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from traceweave.runtime.concurrency import PeriodicTask
from traceweave.runtime.observability.tracing import TraceContext

from .common import fetch

if TYPE_CHECKING:
    from .common import ServiceRuntime


async def timed_operation(runtime: ServiceRuntime) -> None:
    """One tick: root span around an external call."""
    async with runtime.tracer.span("timed-operation", ctx=TraceContext.empty()) as span:
        response = await fetch(runtime.client, runtime.settings.service.external_url)
        span.set_attribute("http.status_code", response.status_code)


def create_ticker(runtime: ServiceRuntime) -> PeriodicTask | None:
    """Ticker for the runtime's settings; None when `ticker_interval` is 0."""
    if (interval := runtime.settings.service.ticker_interval) <= 0:
        return None
    return PeriodicTask(lambda: timed_operation(runtime), interval, name="timed-operation")
