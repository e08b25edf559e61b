"""Request-id correlation interceptor."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from traceweave.runtime.observability.logging import log_context
from traceweave.runtime.observability.tracing import current_span

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from ..middleware import Handler

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(slots=True)
class CorrelationInterceptor:
    """Propagate a request id through logs, the ambient span and the response.

    Reuses the caller's `X-Request-ID` header or mints one. The id is bound
    into the log context for the request, stored on `request.state.request_id`,
    set as `http.request_id` on the current span and echoed in the response.
    """

    header: str = REQUEST_ID_HEADER

    async def __call__(self, request: Request, next: Handler) -> Response:
        request_id = request.headers.get(self.header) or uuid.uuid4().hex
        request.state.request_id = request_id
        if (span := current_span()) is not None and span.is_recording:
            span.set_attribute("http.request_id", request_id)
        with log_context(request_id=request_id):
            response = await next(request)
        response.headers[self.header] = request_id
        return response
