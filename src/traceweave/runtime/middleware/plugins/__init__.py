"""Built-in interceptors: server tracing, error recovery, request-id correlation."""

from .correlation import REQUEST_ID_HEADER, CorrelationInterceptor
from .recover import RecoverInterceptor, status_for
from .tracing import ServerTracingInterceptor, skip_health

__all__ = [
    "ServerTracingInterceptor",
    "skip_health",
    "RecoverInterceptor",
    "status_for",
    "CorrelationInterceptor",
    "REQUEST_ID_HEADER",
]
