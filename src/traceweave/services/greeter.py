"""Greeter gRPC service (`greeter.Greeter/SayHello`).

Messages are pydantic models carried as JSON (orjson) instead of protobuf,
so the service needs no generated code. The server runs on grpc.aio with
ServerTracingInterceptor; GreeterClient wraps a channel that is expected to
carry ClientTracingInterceptor.

Run standalone:
    $ traceweave-greeter            # listens on 0.0.0.0:7070
"""

from __future__ import annotations

import asyncio

import grpc
import orjson
from pydantic import BaseModel, ConfigDict

from traceweave.foundation.config import TraceweaveSettings, get_settings
from traceweave.foundation.errors import ErrorCode, TraceweaveError
from traceweave.instrumentation.grpc import ClientTracingInterceptor, ServerTracingInterceptor
from traceweave.runtime.observability.logging import configure_logging, get_logger
from traceweave.runtime.observability.tracing import Tracer, TracerProvider

SERVICE = "greeter.Greeter"
SAY_HELLO = f"/{SERVICE}/SayHello"

log = get_logger("traceweave.greeter")


class HelloRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    greeting: str = ""


class HelloResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    reply: str


def _serializer(message: BaseModel) -> bytes:
    return orjson.dumps(message.model_dump())


def _deserializer(model: type[BaseModel]):  # type: ignore[no-untyped-def]
    def decode(data: bytes) -> BaseModel:
        return model.model_validate(orjson.loads(data) if data else {})
    return decode


# ─────────────────────────────────────────────────────────────────────────────
# Server
# ─────────────────────────────────────────────────────────────────────────────


async def say_hello(request: HelloRequest, context: grpc.aio.ServicerContext) -> HelloResponse:
    """Reply `Hello <greeting>`; an empty greeting is INVALID_ARGUMENT."""
    if not request.greeting:
        await context.abort(grpc.StatusCode.INVALID_ARGUMENT, "request missing required field: greeting")
    return HelloResponse(reply=f"Hello {request.greeting}")


def greeter_handler() -> grpc.GenericRpcHandler:
    return grpc.method_handlers_generic_handler(SERVICE, {
        "SayHello": grpc.unary_unary_rpc_method_handler(
            say_hello,
            request_deserializer=_deserializer(HelloRequest),
            response_serializer=_serializer,
        ),
    })


def create_server(tracer: Tracer, address: str) -> tuple[grpc.aio.Server, int]:
    """Build (not start) a traced Greeter server. Returns the server and its bound port."""
    server = grpc.aio.server(interceptors=[ServerTracingInterceptor(tracer)])
    server.add_generic_rpc_handlers((greeter_handler(),))
    port = server.add_insecure_port(address)
    return server, port


async def serve(settings: TraceweaveSettings | None = None) -> None:
    """Run the Greeter until cancelled, then drain spans."""
    settings = settings or get_settings()
    provider = TracerProvider.from_settings(settings, service_name=f"{settings.tracing.service_name}-greeter")
    server, port = create_server(provider.get_tracer("traceweave.greeter"), f"0.0.0.0:{settings.service.grpc_port}")
    await server.start()
    log.info("greeter listening", port=port)
    try:
        await server.wait_for_termination()
    finally:
        await server.stop(grace=5.0)
        await asyncio.to_thread(provider.shutdown)


def main() -> None:
    settings = get_settings()
    configure_logging(settings.logging.format, settings.logging.level)
    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        log.info("greeter stopped")


# ─────────────────────────────────────────────────────────────────────────────
# Client
# ─────────────────────────────────────────────────────────────────────────────


def traced_channel(tracer: Tracer, target: str) -> grpc.aio.Channel:
    """Insecure channel whose unary calls are traced."""
    return grpc.aio.insecure_channel(target, interceptors=[ClientTracingInterceptor(tracer)])


class GreeterClient:
    """Typed stub for `greeter.Greeter` over an existing channel."""

    __slots__ = ("_say_hello",)

    def __init__(self, channel: grpc.aio.Channel) -> None:
        self._say_hello = channel.unary_unary(
            SAY_HELLO,
            request_serializer=_serializer,
            response_deserializer=_deserializer(HelloResponse),
        )

    async def say_hello(self, greeting: str, *, timeout: float | None = None) -> str:
        """Return the reply text. RPC failures raise TraceweaveError with a mapped ErrorCode."""
        try:
            response = await self._say_hello(HelloRequest(greeting=greeting), timeout=timeout)
        except grpc.aio.AioRpcError as e:
            raise TraceweaveError(f"SayHello failed: {e.code().name}: {e.details()}", code=_error_code(e.code())) from e
        return response.reply


def _error_code(status: grpc.StatusCode) -> ErrorCode:
    match status:
        case grpc.StatusCode.INVALID_ARGUMENT: return ErrorCode.INVALID_ARGUMENT
        case grpc.StatusCode.DEADLINE_EXCEEDED: return ErrorCode.TIMEOUT
        case grpc.StatusCode.UNAVAILABLE: return ErrorCode.NETWORK_ERROR
        case _: return ErrorCode.UPSTREAM_ERROR
