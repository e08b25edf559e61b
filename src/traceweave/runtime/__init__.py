"""Runtime - tracing core, export, interceptors, retry and background tasks.

Contains: observability, middleware, retry, concurrency.
"""

from __future__ import annotations

__all__ = [
    # Middleware
    "Interceptor", "Handler", "compose",
    "ServerTracingInterceptor", "RecoverInterceptor", "CorrelationInterceptor",
    # Retry
    "Backoff", "ExponentialBackoff", "ConstantBackoff",
    # Concurrency
    "PeriodicTask", "PeriodicState",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    middleware_attrs = {
        "Interceptor", "Handler", "compose",
        "ServerTracingInterceptor", "RecoverInterceptor", "CorrelationInterceptor",
    }
    if name in middleware_attrs:
        from . import middleware
        return getattr(middleware, name)

    if name in {"Backoff", "ExponentialBackoff", "ConstantBackoff"}:
        from . import retry
        return getattr(retry, name)

    if name in {"PeriodicTask", "PeriodicState"}:
        from . import concurrency
        return getattr(concurrency, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
