"""Span export pipeline: batch processor and exporters."""

from .exporter import (
    CompositeExporter,
    ConsoleExporter,
    Exporter,
    ExportResult,
    InMemorySpanExporter,
    JsonExporter,
    NoOpExporter,
    create_exporter,
)
from .processor import BatchSpanProcessor, ProcessorState, ProcessorStats, SpanProcessor

__all__ = [
    # Processor
    "SpanProcessor",
    "BatchSpanProcessor",
    "ProcessorState",
    "ProcessorStats",
    # Exporters
    "Exporter",
    "ExportResult",
    "ConsoleExporter",
    "JsonExporter",
    "InMemorySpanExporter",
    "NoOpExporter",
    "CompositeExporter",
    "create_exporter",
]
