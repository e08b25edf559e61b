"""Request interceptor chain for the example services.

Interceptors wrap endpoints for cross-cutting concerns (tracing, error
recovery, correlation). The chain is an explicit ordered list composed once
at app construction.

Example:
    >>> handler = compose([
    ...     ServerTracingInterceptor(tracer),
    ...     CorrelationInterceptor(),
    ...     RecoverInterceptor(),
    ... ], endpoint)
"""

from .middleware import Handler, Interceptor, compose
from .plugins import (
    REQUEST_ID_HEADER,
    CorrelationInterceptor,
    RecoverInterceptor,
    ServerTracingInterceptor,
    skip_health,
    status_for,
)

__all__ = [
    "Handler",
    "Interceptor",
    "compose",
    "ServerTracingInterceptor",
    "RecoverInterceptor",
    "CorrelationInterceptor",
    "REQUEST_ID_HEADER",
    "skip_health",
    "status_for",
]
