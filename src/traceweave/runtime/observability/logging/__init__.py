"""Structured logging with automatic trace correlation."""

from .logger import (
    BoundLogger,
    ConsoleRenderer,
    JsonRenderer,
    LogEntry,
    LogRenderer,
    NoOpRenderer,
    TracedLogger,
    configure_logging,
    get_logger,
    log_context,
    span_logger,
)

__all__ = [
    "BoundLogger",
    "TracedLogger",
    "LogEntry",
    "LogRenderer",
    "ConsoleRenderer",
    "JsonRenderer",
    "NoOpRenderer",
    "configure_logging",
    "get_logger",
    "log_context",
    "span_logger",
]
