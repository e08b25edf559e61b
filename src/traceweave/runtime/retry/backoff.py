"""Delays between span export attempts.

A failed batch is retried a bounded number of times. Each strategy answers
one question: how long to wait before attempt `n + 1`. `next_delay` adds the
processor's constraint that no retry may start past the shutdown deadline.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from traceweave.foundation.config import RetrySettings


@runtime_checkable
class Backoff(Protocol):
    """Delay before the next export attempt (`attempt` counts failures so far, from 0)."""

    def delay(self, attempt: int) -> float: ...


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Doubling delay for an unreachable collector, capped at `max_delay`.

    With jitter the delay is scaled by a random factor in [0.5, 1.5) so that
    several processes restarting together do not hit the collector in step.

    Attributes:
        base: Delay after the first failure
        max_delay: Upper bound before jitter
        multiplier: Growth per failed attempt
        jitter: Randomize each delay
    """

    base: float = 0.5
    max_delay: float = 5.0
    multiplier: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, retry: RetrySettings) -> ExponentialBackoff:
        return cls(base=retry.base_delay, max_delay=retry.max_delay, multiplier=retry.multiplier, jitter=retry.jitter)

    def delay(self, attempt: int) -> float:
        capped = min(self.base * self.multiplier ** attempt, self.max_delay)
        return capped * random.uniform(0.5, 1.5) if self.jitter else capped


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    """Same wait after every failure. `ConstantBackoff(0)` retries immediately."""

    delay_seconds: float = 0.0

    def delay(self, attempt: int) -> float:
        return self.delay_seconds


def next_delay(backoff: Backoff, attempt: int, deadline: float | None = None) -> float | None:
    """Delay before the next attempt, or None when waiting would cross `deadline`.

    `deadline` is a `time.monotonic()` value; None means no deadline.

    Example:
        >>> next_delay(ConstantBackoff(1.0), 0, deadline=time.monotonic() + 0.5) is None
        True
    """
    wait = max(0.0, backoff.delay(attempt))
    if deadline is not None and time.monotonic() + wait >= deadline:
        return None
    return wait
