"""Parent/child consistency checks over finished spans.

A child ending after its parent is legal (a reporting anomaly, not an
error), so these checks report rather than raise. Tests and debugging
tools use them to assert that instrumentation ends spans in order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from .span import Span


class AnomalyKind(StrEnum):
    TRACE_MISMATCH = "trace_mismatch"          # child's trace id differs from parent's
    STARTED_BEFORE_PARENT = "started_before_parent"
    OUTLIVED_PARENT = "outlived_parent"        # child ended after its parent
    ENDED_BEFORE_START = "ended_before_start"
    MISSING_PARENT = "missing_parent"          # parent id not found in the batch


@dataclass(frozen=True, slots=True)
class TraceAnomaly:
    kind: AnomalyKind
    span_id: str
    name: str
    parent_span_id: str | None = None

    def __str__(self) -> str:
        parent = f" (parent {self.parent_span_id})" if self.parent_span_id else ""
        return f"{self.kind}: {self.name} [{self.span_id}]{parent}"


def check_trace(spans: Iterable[Span], *, require_parents: bool = False) -> list[TraceAnomaly]:
    """Check finished spans for parent/child anomalies.

    Args:
        spans: Ended spans, possibly from several traces
        require_parents: Report spans whose parent is not among `spans`
            (off by default: remote parents live in other processes)

    Example:
        >>> anomalies = check_trace(exporter.spans)
        >>> assert not anomalies, [str(a) for a in anomalies]
    """
    spans = list(spans)
    by_id = {s.context.span_id: s for s in spans}
    anomalies: list[TraceAnomaly] = []

    def report(kind: AnomalyKind, s: Span) -> None:
        anomalies.append(TraceAnomaly(kind, s.context.span_id, s.name, s.parent_span_id))

    for s in spans:
        if s.end_time is not None and s.end_time < s.start_time:
            report(AnomalyKind.ENDED_BEFORE_START, s)
        if s.parent_span_id is None:
            continue
        if (p := by_id.get(s.parent_span_id)) is None:
            if require_parents:
                report(AnomalyKind.MISSING_PARENT, s)
            continue
        if p.context.trace_id != s.context.trace_id:
            report(AnomalyKind.TRACE_MISMATCH, s)
        if s.start_time < p.start_time:
            report(AnomalyKind.STARTED_BEFORE_PARENT, s)
        if p.end_time is not None and (s.end_time is None or s.end_time > p.end_time):
            report(AnomalyKind.OUTLIVED_PARENT, s)
    return anomalies


def children_of(spans: Iterable[Span], parent: Span) -> list[Span]:
    """Direct children of `parent`, ordered by start time."""
    return sorted((s for s in spans if s.parent_span_id == parent.context.span_id), key=lambda s: s.start_time)
