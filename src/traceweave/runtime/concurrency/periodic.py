"""Cancellable periodic task.

Runs an async callable on a fixed interval inside an owned asyncio.Task.
The task's lifetime is explicit: start() in a lifespan/startup hook,
stop() on shutdown. stop() cancels and awaits the task, so no tick is left
running after it returns.

Example:
    >>> ticker = PeriodicTask(emit_timed_operation, interval=60.0, name="ticker")
    >>> ticker.start()
    >>> ...
    >>> await ticker.stop()
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from enum import StrEnum
from typing import Callable

from traceweave.foundation.errors import classify_exception
from traceweave.runtime.observability.logging import get_logger

log = get_logger("traceweave.periodic")


class PeriodicState(StrEnum):
    """Periodic task lifecycle states."""
    PENDING = "pending"  # Not yet started
    RUNNING = "running"  # Ticking
    STOPPED = "stopped"  # Cancelled via stop()


class PeriodicTask:
    """Invoke `func` every `interval` seconds until stopped.

    A tick that raises is logged with its ErrorCode and the loop continues;
    one failed tick never ends the task. Ticks never overlap: the next
    interval starts after the previous tick returns.

    Args:
        func: Zero-argument coroutine function run each tick
        interval: Seconds between ticks (must be positive)
        name: Task name for logs and debugging
        run_immediately: Run the first tick on start instead of after one interval
    """

    __slots__ = ("func", "interval", "name", "run_immediately", "_task", "_ticks", "_failures", "_stopped")

    def __init__(
        self,
        func: Callable[[], Awaitable[object]],
        interval: float,
        *,
        name: str = "periodic",
        run_immediately: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.func = func
        self.interval = interval
        self.name = name
        self.run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self._ticks = 0
        self._failures = 0
        self._stopped = False

    @property
    def state(self) -> PeriodicState:
        if self._stopped:
            return PeriodicState.STOPPED
        return PeriodicState.PENDING if self._task is None else PeriodicState.RUNNING

    @property
    def ticks(self) -> int:
        """Completed ticks, failed ones included."""
        return self._ticks

    @property
    def failures(self) -> int:
        return self._failures

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op if already started or stopped."""
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Idempotent."""
        self._stopped = True
        if (task := self._task) is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Propagate only if our caller was cancelled too
            if (current := asyncio.current_task()) is not None and current.cancelling():
                raise
        log.debug("periodic task stopped", task=self.name, ticks=self._ticks, failures=self._failures)

    async def _run(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            await self._tick()
            await asyncio.sleep(self.interval)

    async def _tick(self) -> None:
        try:
            await self.func()
        except Exception as e:
            self._failures += 1
            log.warning("periodic tick failed", task=self.name, code=classify_exception(e).value,
                        error=f"{type(e).__name__}: {e}")
        finally:
            self._ticks += 1

    async def __aenter__(self) -> PeriodicTask:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()
