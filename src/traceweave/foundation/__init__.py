"""Foundation layer: errors, type aliases and configuration."""

from .config import TraceweaveSettings, clear_settings_cache, get_settings
from .errors import (
    ConfigError,
    ErrorCode,
    ErrorInfo,
    SpanStateError,
    TraceweaveError,
    UpstreamError,
    classify_exception,
)

__all__ = [
    "TraceweaveSettings",
    "get_settings",
    "clear_settings_cache",
    "ErrorCode",
    "ErrorInfo",
    "TraceweaveError",
    "SpanStateError",
    "UpstreamError",
    "ConfigError",
    "classify_exception",
]
