"""Client and server instrumentation for httpx and grpc.aio.

HTTP (httpx):
    >>> client = traced_async_client(tracer)  # CLIENT span + traceparent per request

gRPC (grpc.aio):
    >>> channel = grpc.aio.insecure_channel(target, interceptors=[ClientTracingInterceptor(tracer)])
    >>> server = grpc.aio.server(interceptors=[ServerTracingInterceptor(tracer)])
"""

from .grpc import ClientTracingInterceptor, ServerTracingInterceptor, rpc_attributes
from .http import SyncTracingTransport, TracingTransport, traced_async_client, traced_client

__all__ = [
    # HTTP
    "TracingTransport",
    "SyncTracingTransport",
    "traced_async_client",
    "traced_client",
    # gRPC
    "ClientTracingInterceptor",
    "ServerTracingInterceptor",
    "rpc_attributes",
]
