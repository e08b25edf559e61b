"""Secondary example service (default port 8082), called by the frontend's /hello-traced."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import uvicorn
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse, Response

from traceweave.foundation.config import TraceweaveSettings, get_settings
from traceweave.runtime.observability.export import Exporter
from traceweave.runtime.observability.logging import configure_logging
from traceweave.runtime.observability.tracing import TracerProvider, current_span

from .common import ServiceRuntime, build_app, fetch, simulate_work, status_line

if TYPE_CHECKING:
    from starlette.requests import Request


async def hello(request: Request) -> Response:
    rt: ServiceRuntime = request.app.state.runtime
    external, scale = rt.settings.service.external_url, rt.work_scale

    await fetch(rt.client, external)
    await fetch(rt.client, external)

    if (span := current_span()) is not None:
        span.set_attributes({"isTrue": True, "stringAttr": "Ciao"})

    async with rt.tracer.span("custom-span-secondary"):
        await simulate_work(0.010, scale)
        response = await fetch(rt.client, external)
    await simulate_work(0.020, scale)
    return PlainTextResponse(status_line(response))


def create_app(
    settings: TraceweaveSettings | None = None,
    *,
    provider: TracerProvider | None = None,
    exporter: Exporter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Build the secondary app. Arguments as for frontend.create_app."""
    settings = settings or get_settings()
    provider = provider or TracerProvider.from_settings(
        settings, exporter=exporter, service_name=f"{settings.tracing.service_name}-secondary")
    runtime = ServiceRuntime(settings=settings, provider=provider,
                             tracer=provider.get_tracer("traceweave.secondary"), transport=transport)
    return build_app(runtime, [("/hello", hello)])


def main() -> None:
    settings = get_settings()
    configure_logging(settings.logging.format, settings.logging.level)
    uvicorn.run(create_app(settings), host=settings.service.secondary_host, port=settings.service.secondary_port,
                log_level=settings.logging.level.lower())
