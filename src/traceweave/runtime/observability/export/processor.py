"""Batch span processor: decouples span completion from export I/O.

Ended spans go into a bounded in-memory buffer. A background worker thread
owned by the processor drains the buffer in batches when it fills up to the
batch size, when the schedule delay elapses, or on shutdown. The buffer lock
is held only to append or to take a batch; exporting happens outside it, so
request paths never wait on the exporter.

State cycle: IDLE -> BATCHING -> FLUSHING -> IDLE, then STOPPED after shutdown.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from traceweave.foundation.errors import ErrorCode
from traceweave.runtime.retry import Backoff, ExponentialBackoff, next_delay

from ..logging import get_logger
from .exporter import Exporter, ExportResult

if TYPE_CHECKING:
    from traceweave.foundation.config import TraceweaveSettings

    from ..tracing.span import Span

log = get_logger("traceweave.export.processor")


class ProcessorState(StrEnum):
    IDLE = "idle"          # buffer empty
    BATCHING = "batching"  # buffer holds spans awaiting a flush trigger
    FLUSHING = "flushing"  # a batch is being exported
    STOPPED = "stopped"    # shut down, new spans are dropped


@runtime_checkable
class SpanProcessor(Protocol):
    """Receives ended spans from a TracerProvider."""

    def enqueue(self, span: Span) -> None: ...
    def force_flush(self, timeout: float | None = None) -> bool: ...
    def shutdown(self, timeout: float | None = None) -> None: ...


@dataclass(frozen=True, slots=True)
class ProcessorStats:
    """Counters snapshot.

    Attributes:
        enqueued: Spans accepted into the buffer
        exported: Spans in batches the exporter accepted
        dropped: Spans rejected because the buffer was full or the processor stopped
        discarded: Spans abandoned when the shutdown deadline passed
        failed: Spans in batches that still failed after all retries
        export_calls: Exporter invocations, retries included
    """

    enqueued: int = 0
    exported: int = 0
    dropped: int = 0
    discarded: int = 0
    failed: int = 0
    export_calls: int = 0


class BatchSpanProcessor:
    """Buffers ended spans and exports them in batches from a worker thread.

    Example:
        >>> processor = BatchSpanProcessor(ConsoleExporter(), schedule_delay=1.0)
        >>> provider = TracerProvider(processor=processor)
        >>> ...
        >>> provider.shutdown()  # drains within shutdown_timeout

    Args:
        exporter: Destination for batches
        max_queue_size: Buffer capacity; spans arriving when full are dropped
        max_export_batch_size: Spans per export call; a full batch wakes the worker
        schedule_delay: Seconds between time-triggered flushes
        shutdown_timeout: Default drain deadline for shutdown()
        max_retries: Extra export attempts for a failed batch
        backoff: Delay strategy between attempts
        autostart: Start the worker thread immediately (otherwise spans are
            exported only by force_flush/shutdown until start() is called)
    """

    def __init__(
        self,
        exporter: Exporter,
        *,
        max_queue_size: int = 2048,
        max_export_batch_size: int = 512,
        schedule_delay: float = 5.0,
        shutdown_timeout: float = 30.0,
        max_retries: int = 2,
        backoff: Backoff | None = None,
        autostart: bool = True,
    ) -> None:
        if max_queue_size <= 0 or max_export_batch_size <= 0:
            raise ValueError("queue and batch sizes must be positive")
        if max_export_batch_size > max_queue_size:
            raise ValueError("max_export_batch_size must not exceed max_queue_size")
        if schedule_delay <= 0:
            raise ValueError("schedule_delay must be positive")
        self.exporter = exporter
        self.max_queue_size = max_queue_size
        self.max_export_batch_size = max_export_batch_size
        self.schedule_delay = schedule_delay
        self.shutdown_timeout = shutdown_timeout
        self.max_retries = max_retries
        self.backoff: Backoff = backoff or ExponentialBackoff()

        self._queue: deque[Span] = deque()
        self._lock = threading.Lock()
        self._export_lock = threading.Lock()  # one export at a time (worker vs force_flush)
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None
        self._in_flight = 0  # size of the batch handed to the exporter
        self._written_off = False
        self._stopped = False
        self._deadline: float | None = None
        self._counts = {"enqueued": 0, "exported": 0, "dropped": 0, "discarded": 0, "failed": 0, "export_calls": 0}
        if autostart:
            self.start()

    @classmethod
    def from_settings(cls, exporter: Exporter, settings: TraceweaveSettings) -> BatchSpanProcessor:
        export = settings.export
        return cls(
            exporter,
            max_queue_size=export.max_queue_size,
            max_export_batch_size=export.max_export_batch_size,
            schedule_delay=export.schedule_delay,
            shutdown_timeout=export.shutdown_timeout,
            max_retries=export.max_retries,
            backoff=ExponentialBackoff.from_settings(settings.retry),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Producer side
    # ─────────────────────────────────────────────────────────────────────────

    def enqueue(self, span: Span) -> None:
        """Accept an ended span. Never blocks; drops the span when the buffer is full."""
        with self._lock:
            if self._stopped or len(self._queue) >= self.max_queue_size:
                self._counts["dropped"] += 1
                dropped = self._counts["dropped"]
                full = not self._stopped
            else:
                self._queue.append(span)
                self._counts["enqueued"] += 1
                if len(self._queue) >= self.max_export_batch_size:
                    self._wake.set()
                return
        # Log on powers of two so a flood of drops does not flood the log
        if dropped & (dropped - 1) == 0:
            log.warning("span dropped", reason="queue full" if full else "processor stopped",
                        dropped_total=dropped, max_queue_size=self.max_queue_size)

    # ─────────────────────────────────────────────────────────────────────────
    # Introspection
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def stats(self) -> ProcessorStats:
        with self._lock:
            return ProcessorStats(**self._counts)

    @property
    def dropped(self) -> int:
        return self.stats.dropped

    @property
    def state(self) -> ProcessorState:
        with self._lock:
            if self._stopped and not self._queue and not self._in_flight:
                return ProcessorState.STOPPED
            if self._in_flight:
                return ProcessorState.FLUSHING
            return ProcessorState.BATCHING if self._queue else ProcessorState.IDLE

    @property
    def queued(self) -> int:
        with self._lock:
            return len(self._queue)

    # ─────────────────────────────────────────────────────────────────────────
    # Worker
    # ─────────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the background worker (no-op if already running or stopped)."""
        with self._lock:
            if self._worker is not None or self._stopped:
                return
            self._worker = threading.Thread(target=self._run, name="traceweave-span-exporter", daemon=True)
        self._worker.start()

    def _run(self) -> None:
        while not self._stop.is_set():
            self._wake.wait(self.schedule_delay)
            self._wake.clear()
            if self._stop.is_set():
                break
            self._drain(deadline=None)
        # Final drain; shutdown() joins us with its own deadline
        self._drain(deadline=self._deadline)

    def _take_batch(self) -> list[Span]:
        with self._lock:
            n = min(self.max_export_batch_size, len(self._queue))
            batch = [self._queue.popleft() for _ in range(n)]
            self._in_flight = len(batch)
            return batch

    def _drain(self, deadline: float | None) -> bool:
        """Export until the buffer is empty. Returns False if the deadline passed first."""
        wait = -1 if deadline is None else max(0.0, deadline - time.monotonic())
        if not self._export_lock.acquire(timeout=wait):
            return False
        try:
            while True:
                if deadline is not None and time.monotonic() >= deadline:
                    return not self.queued
                if not (batch := self._take_batch()):
                    return True
                try:
                    self._export_batch(batch, deadline)
                finally:
                    with self._lock:
                        self._in_flight, self._written_off = 0, False
        finally:
            self._export_lock.release()

    def _export_batch(self, batch: list[Span], deadline: float | None) -> None:
        """Export with bounded retry. Failures are counted and logged, never raised."""
        error: str | None = None
        for attempt in range(self.max_retries + 1):
            with self._lock:
                self._counts["export_calls"] += 1
            try:
                result = self.exporter.export(batch)
                error = None if result is ExportResult.SUCCESS else "exporter returned failure"
            except Exception as e:  # noqa: BLE001 - export errors never reach the request path
                result, error = ExportResult.FAILURE, f"{type(e).__name__}: {e}"
            if result is ExportResult.SUCCESS:
                self._settle("exported", len(batch))
                return
            if attempt == self.max_retries:
                break
            if (delay := next_delay(self.backoff, attempt, deadline)) is None:
                break
            log.debug("retrying span export", attempt=attempt + 1, delay=round(delay, 3), error=error)
            if delay > 0:
                time.sleep(delay)
        self._settle("failed", len(batch))
        log.warning("span export failed", code=ErrorCode.EXPORT_FAILED.value, spans=len(batch),
                    attempts=attempt + 1, error=error)

    def _settle(self, outcome: str, n: int) -> None:
        """Count a finished batch unless shutdown already counted it as discarded."""
        with self._lock:
            if not self._written_off:
                self._counts[outcome] += n

    # ─────────────────────────────────────────────────────────────────────────
    # Flush & shutdown
    # ─────────────────────────────────────────────────────────────────────────

    def force_flush(self, timeout: float | None = None) -> bool:
        """Synchronously export everything buffered. Returns False if the timeout passed first."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        return self._drain(deadline=deadline)

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop the worker and drain the buffer within `timeout` seconds.

        Spans still buffered when the deadline passes, and a batch the
        exporter has not returned from, are discarded and counted. Returns
        even if the exporter hangs. Idempotent.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            worker = self._worker
        timeout = self.shutdown_timeout if timeout is None else timeout
        self._deadline = deadline = time.monotonic() + timeout
        self._stop.set()
        self._wake.set()
        if worker is None:
            # Never started: drain on a one-off thread so a hung exporter cannot hold us past the deadline
            worker = threading.Thread(target=self._run, name="traceweave-span-drain", daemon=True)
            worker.start()
        worker.join(max(0.0, deadline - time.monotonic()))

        with self._lock:
            discarded = len(self._queue)
            self._queue.clear()
            if self._in_flight and not self._written_off:
                discarded += self._in_flight
                self._written_off = True
            self._counts["discarded"] += discarded
            stats = ProcessorStats(**self._counts)
        if discarded or worker.is_alive():
            log.warning("shutdown deadline passed", discarded=discarded, timeout=timeout)

        # Exporter shutdown only once no export is in flight
        if not worker.is_alive():
            try:
                self.exporter.shutdown()
            except Exception as e:  # noqa: BLE001
                log.warning("exporter shutdown failed", error=str(e))
        log.debug("span processor stopped", exported=stats.exported, dropped=stats.dropped,
                  discarded=stats.discarded, failed=stats.failed)
