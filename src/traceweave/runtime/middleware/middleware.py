"""Core interceptor types and chain composition.

Interceptors follow continuation-passing style: each receives the request
and a `next` function to call downstream. The chain is composed once when
the app is built, so per-request cost is a fixed number of awaits.
"""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from typing import Callable, Protocol, runtime_checkable

from starlette.requests import Request
from starlette.responses import Response

# Type alias for the continuation function (and for endpoints)
Handler = Callable[[Request], Awaitable[Response]]


@runtime_checkable
class Interceptor(Protocol):
    """Protocol for request interceptors.

    Interceptors wrap endpoint execution for cross-cutting concerns.
    Implement `__call__` to run code before and after `next`.

    Example:
        >>> class TimingInterceptor:
        ...     async def __call__(self, request, next):
        ...         start = time.perf_counter()
        ...         response = await next(request)
        ...         response.headers["X-Elapsed"] = f"{time.perf_counter() - start:.3f}"
        ...         return response
    """

    async def __call__(self, request: Request, next: Handler) -> Response:
        """Execute interceptor logic.

        Args:
            request: Incoming request
            next: Continuation to call downstream chain

        Returns:
            Response (possibly modified)
        """
        ...


def compose(interceptors: Sequence[Interceptor], endpoint: Handler) -> Handler:
    """Compose interceptors around an endpoint.

    Args:
        interceptors: Ordered list (first = outermost)
        endpoint: Innermost handler

    Returns:
        Composed async function: request -> response
    """
    chain: Handler = endpoint
    for ic in reversed(interceptors):
        # Capture ic and current chain in closure
        def make_wrapper(i: Interceptor, nxt: Handler) -> Handler:
            async def wrapped(request: Request) -> Response:
                return await i(request, nxt)
            return wrapped
        chain = make_wrapper(ic, chain)
    return chain
