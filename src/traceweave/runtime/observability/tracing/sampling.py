"""Head samplers for new trace roots.

Child spans always inherit the parent's sampled flag; samplers only decide
for roots. Unsampled spans still propagate context but are never exported.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

_TRACE_ID_LOW_MASK = (1 << 64) - 1


@runtime_checkable
class Sampler(Protocol):
    def should_sample(self, trace_id: str, name: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class AlwaysOn:
    def should_sample(self, trace_id: str, name: str) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class AlwaysOff:
    def should_sample(self, trace_id: str, name: str) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class TraceIdRatio:
    """Deterministic ratio sampler keyed on the low 64 bits of the trace id.

    All services using the same rate make the same decision for a trace.
    """

    rate: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.rate <= 1.0:
            raise ValueError(f"sample rate must be within [0, 1], got {self.rate}")

    def should_sample(self, trace_id: str, name: str) -> bool:
        if self.rate >= 1.0:
            return True
        if self.rate <= 0.0:
            return False
        return (int(trace_id, 16) & _TRACE_ID_LOW_MASK) < int(self.rate * (1 << 64))


def sampler_for_rate(rate: float) -> Sampler:
    """Pick the cheapest sampler for a configured rate."""
    if rate >= 1.0:
        return AlwaysOn()
    if rate <= 0.0:
        return AlwaysOff()
    return TraceIdRatio(rate)
