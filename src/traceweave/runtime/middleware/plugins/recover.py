"""Recover interceptor: turn escaping exceptions into structured error responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from starlette.responses import Response

from traceweave.foundation.errors import ErrorInfo, TraceweaveError, UpstreamError, classify_exception
from traceweave.runtime.observability.logging import BoundLogger, get_logger
from traceweave.runtime.observability.tracing import current_span

if TYPE_CHECKING:
    from starlette.requests import Request

    from ..middleware import Handler


@dataclass(slots=True)
class RecoverInterceptor:
    """Catch handler exceptions and respond with a JSON ErrorInfo body.

    UpstreamError maps to 502 (the failure was an outbound call), everything
    else to 500. Exceptions are logged with their classified ErrorCode; the
    ambient span, if any, records the exception.

    Place it inside ServerTracingInterceptor so the server span still sees the
    resulting 5xx status.

    Args:
        log: Logger for recovered exceptions
        status_map: Exception type -> HTTP status, checked in order
    """

    log: BoundLogger = field(default_factory=lambda: get_logger("traceweave.recover"))
    status_map: tuple[tuple[type[BaseException], int], ...] = ((UpstreamError, 502),)

    async def __call__(self, request: Request, next: Handler) -> Response:
        try:
            return await next(request)
        except Exception as e:
            status = status_for(e, self.status_map)
            request_id = getattr(request.state, "request_id", None)
            info = (e.to_info(status=status).model_copy(update={"request_id": request_id})
                    if isinstance(e, TraceweaveError) else ErrorInfo.from_exception(e, status=status, request_id=request_id))
            self.log.error("request failed", path=request.url.path, status=status,
                           code=classify_exception(e).value, error=info.message)
            _record_on_span(e)
            return Response(info.model_dump_json(), status_code=status, media_type="application/json")


def status_for(exc: BaseException, status_map: tuple[tuple[type[BaseException], int], ...]) -> int:
    """First matching status for an exception, 500 when none matches."""
    return next((status for exc_type, status in status_map if isinstance(exc, exc_type)), 500)


def _record_on_span(exc: BaseException) -> None:
    if (span := current_span()) is not None and span.is_recording:
        span.record_exception(exc, escaped=False)
