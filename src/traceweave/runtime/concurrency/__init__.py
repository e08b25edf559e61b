"""Concurrency primitives: owned, cancellable background tasks."""

from .periodic import PeriodicState, PeriodicTask

__all__ = ["PeriodicTask", "PeriodicState"]
