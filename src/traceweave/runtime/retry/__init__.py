"""Retry backoff strategies used by the span export path.

Example:
    >>> from traceweave.runtime.retry import ExponentialBackoff
    >>> backoff = ExponentialBackoff(base=0.5, max_delay=5.0, jitter=False)
    >>> backoff.delay(2)
    2.0
"""

from .backoff import Backoff, ConstantBackoff, ExponentialBackoff, next_delay

__all__ = [
    "Backoff",
    "ExponentialBackoff",
    "ConstantBackoff",
    "next_delay",
]
