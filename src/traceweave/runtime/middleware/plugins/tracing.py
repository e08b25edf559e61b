"""Server-side tracing interceptor for inbound HTTP requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from traceweave.runtime.observability.tracing import SpanKind, SpanStatus, Tracer, extract_context, use_context

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from ..middleware import Handler


def skip_health(request: Request) -> bool:
    """Default skip predicate: health probes are not traced."""
    return request.url.path == "/health"


def route_template(request: Request) -> str:
    """Path template of the matched route (`/items/{id}`), else the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


@dataclass(slots=True)
class ServerTracingInterceptor:
    """Trace each inbound request with a SERVER span.

    Extracts the caller's context from the `traceparent` header (a missing or
    malformed header starts a new root trace), installs the span as ambient
    context for downstream interceptors and the endpoint, and records the
    response status. 5xx responses and escaping exceptions mark the span ERROR.

    Args:
        tracer: Tracer to start server spans with
        skip: Requests for which this returns True pass through untraced

    Example:
        >>> chain = compose([ServerTracingInterceptor(tracer), RecoverInterceptor()], endpoint)
    """

    tracer: Tracer
    skip: Callable[[Request], bool] = field(default=skip_health)

    async def __call__(self, request: Request, next: Handler) -> Response:
        if self.skip(request):
            return await next(request)

        parent = extract_context(request.headers)
        route = route_template(request)
        ctx, span = self.tracer.start(parent, f"{request.method} {route}", kind=SpanKind.SERVER, attributes={
            "http.method": request.method,
            "http.route": route,
            "http.target": request.url.path + (f"?{request.url.query}" if request.url.query else ""),
            "http.scheme": request.url.scheme,
            "net.host.name": request.url.hostname or "",
        })
        if request.client is not None:
            span.set_attribute("net.peer.ip", request.client.host)
        if user_agent := request.headers.get("user-agent"):
            span.set_attribute("http.user_agent", user_agent)

        try:
            with use_context(ctx):
                response = await next(request)
        except BaseException as e:
            span.record_exception(e)
            span.end()
            raise

        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 500:
            span.set_status(SpanStatus.ERROR, f"HTTP {response.status_code}")
        elif span.status is SpanStatus.UNSET:
            span.set_status(SpanStatus.OK)
        span.end()
        return response
