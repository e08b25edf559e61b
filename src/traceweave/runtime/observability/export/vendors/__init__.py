"""Production exporters: OTLP (OpenTelemetry collector) and Zipkin v2."""

from .otlp import OTLPBridge, create_otlp_exporter
from .zipkin import ZipkinExporter

__all__ = ["OTLPBridge", "create_otlp_exporter", "ZipkinExporter"]
