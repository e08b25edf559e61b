"""Zipkin v2 JSON exporter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import orjson

from traceweave.foundation.errors import JsonDict

from ...logging import get_logger
from ..exporter import ExportResult

if TYPE_CHECKING:
    from ...tracing.span import Span

log = get_logger("traceweave.export.zipkin")

_KINDS = {"server": "SERVER", "client": "CLIENT", "producer": "PRODUCER", "consumer": "CONSUMER"}


@dataclass(slots=True)
class ZipkinExporter:
    """Export spans to Zipkin via v2 JSON API.

    Compatible with Zipkin, Jaeger (Zipkin collector), and other
    systems supporting Zipkin v2 format.

    Args:
        endpoint: Zipkin collector endpoint
        service_name: Local service name
        timeout: Request timeout in seconds
        client: Optional preconfigured httpx client (tests pass a MockTransport)
    """

    endpoint: str = "http://localhost:9411/api/v2/spans"
    service_name: str = "traceweave"
    timeout: float = 10.0
    client: httpx.Client | None = None
    _owns_client: bool = field(default=False, repr=False)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client, self._owns_client = httpx.Client(timeout=self.timeout), True

    def export(self, spans: list[Span]) -> ExportResult:
        if not spans:
            return ExportResult.SUCCESS
        assert self.client is not None  # Always set in __post_init__
        payload = orjson.dumps([self._to_zipkin_span(s) for s in spans])
        try:
            resp = self.client.post(self.endpoint, content=payload, headers={"Content-Type": "application/json"})
        except httpx.HTTPError as e:
            log.warning("zipkin export failed", endpoint=self.endpoint, error=str(e), spans=len(spans))
            return ExportResult.FAILURE
        if resp.is_success:
            return ExportResult.SUCCESS
        log.warning("zipkin rejected spans", endpoint=self.endpoint, status=resp.status_code, spans=len(spans))
        return ExportResult.FAILURE

    def _to_zipkin_span(self, span: Span) -> JsonDict:
        zipkin_span: JsonDict = {
            "traceId": span.context.trace_id,
            "id": span.context.span_id,
            "name": span.name,
            "timestamp": int(span.start_time * 1e6),
            "duration": int((span.duration_ms or 0) * 1000),
            "localEndpoint": {"serviceName": str(span.resource.get("service.name", self.service_name))},
            "tags": {k: str(v) for k, v in span.attributes.items()},
            "annotations": [{"timestamp": int(e.timestamp * 1e6), "value": e.name} for e in span.events],
        }
        if kind := _KINDS.get(span.kind.value):
            zipkin_span["kind"] = kind
        if span.parent_span_id:
            zipkin_span["parentId"] = span.parent_span_id
        if span.status.value == "error":
            zipkin_span["tags"]["error"] = span.status_message or "true"
        return zipkin_span

    def shutdown(self) -> None:
        if self._owns_client and self.client is not None:
            self.client.close()
