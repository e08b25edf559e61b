"""grpc.aio interceptors for unary-unary calls.

The client interceptor starts a CLIENT span per call and writes its
`traceparent` into the call metadata; the server interceptor reads it back
from the invocation metadata and runs the handler inside a SERVER span.

Example:
    >>> channel = grpc.aio.insecure_channel("localhost:7070",
    ...                                     interceptors=[ClientTracingInterceptor(tracer)])
    >>> server = grpc.aio.server(interceptors=[ServerTracingInterceptor(tracer)])
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import grpc

from traceweave.runtime.observability.tracing import SpanKind, SpanStatus, TraceContext, extract_context, inject, use_context

if TYPE_CHECKING:
    from traceweave.foundation.errors import Attributes
    from traceweave.runtime.observability.tracing import Span, Tracer

_CODES_BY_NUMBER = {code.value[0]: code for code in grpc.StatusCode}


def _method_name(method: str | bytes) -> str:
    return method.decode() if isinstance(method, bytes) else method


def rpc_attributes(method: str) -> Attributes:
    """Semantic attributes for a full method name like `/greeter.Greeter/SayHello`."""
    service, _, name = method.lstrip("/").partition("/")
    return {"rpc.system": "grpc", "rpc.service": service, "rpc.method": name}


def _set_status(span: Span, code: grpc.StatusCode | None, details: str | None = None) -> None:
    code = code or grpc.StatusCode.OK
    span.set_attribute("rpc.grpc.status_code", code.value[0])
    if code is grpc.StatusCode.OK:
        span.set_status(SpanStatus.OK)
    else:
        span.set_status(SpanStatus.ERROR, details or code.name)


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────


class ClientTracingInterceptor(grpc.aio.UnaryUnaryClientInterceptor):
    """Trace outbound unary calls and propagate context through metadata."""

    def __init__(self, tracer: Tracer) -> None:
        self.tracer = tracer

    async def intercept_unary_unary(self, continuation, client_call_details, request):  # type: ignore[no-untyped-def]
        method = _method_name(client_call_details.method)
        ctx, span = self.tracer.start(TraceContext.current(), method.lstrip("/"), kind=SpanKind.CLIENT,
                                      attributes=rpc_attributes(method))
        metadata = grpc.aio.Metadata(*(client_call_details.metadata or ()))
        inject(ctx, metadata)
        details = grpc.aio.ClientCallDetails(
            method=client_call_details.method,
            timeout=client_call_details.timeout,
            metadata=metadata,
            credentials=client_call_details.credentials,
            wait_for_ready=client_call_details.wait_for_ready,
        )
        try:
            call = await continuation(details, request)
            # code() waits for completion without raising
            code = await call.code()
            _set_status(span, code, await call.details() if code is not grpc.StatusCode.OK else None)
        except BaseException as e:
            span.record_exception(e)
            raise
        finally:
            span.end()
        return call


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


UnaryHandler = Callable[[object, grpc.aio.ServicerContext], Awaitable[object]]


class ServerTracingInterceptor(grpc.aio.ServerInterceptor):
    """Run unary handlers inside a SERVER span continuing the caller's trace."""

    def __init__(self, tracer: Tracer) -> None:
        self.tracer = tracer

    async def intercept_service(self, continuation, handler_call_details):  # type: ignore[no-untyped-def]
        handler = await continuation(handler_call_details)
        if handler is None or handler.unary_unary is None:
            return handler
        method = _method_name(handler_call_details.method)
        metadata = {k: v for k, v in (handler_call_details.invocation_metadata or ()) if isinstance(v, str)}
        return grpc.unary_unary_rpc_method_handler(
            self._wrap(handler.unary_unary, method, metadata),
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )

    def _wrap(self, inner: UnaryHandler, method: str, metadata: dict[str, str]) -> UnaryHandler:
        tracer = self.tracer

        async def traced_handler(request: object, context: grpc.aio.ServicerContext) -> object:
            ctx, span = tracer.start(extract_context(metadata), method.lstrip("/"), kind=SpanKind.SERVER,
                                     attributes=rpc_attributes(method))
            try:
                with use_context(ctx):
                    response = await inner(request, context)
            except BaseException as e:
                code = _context_code(context)
                if code is None or code is grpc.StatusCode.OK:
                    span.record_exception(e)
                    code = grpc.StatusCode.UNKNOWN
                _set_status(span, code, _context_details(context))
                span.end()
                raise
            _set_status(span, _context_code(context))
            span.end()
            return response

        return traced_handler


def _context_code(context: grpc.aio.ServicerContext) -> grpc.StatusCode | None:
    """Status set via set_code()/abort(), normalized to grpc.StatusCode."""
    code = context.code()
    if code is None or isinstance(code, grpc.StatusCode):
        return code
    return _CODES_BY_NUMBER.get(code)


def _context_details(context: grpc.aio.ServicerContext) -> str | None:
    details = context.details()
    return details.decode() if isinstance(details, bytes) else details
