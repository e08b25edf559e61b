"""Unified error handling for traceweave.

- ErrorCode: Standard error codes
- TraceweaveError and subclasses: SpanStateError, UpstreamError, ConfigError
- ErrorInfo: Structured error body for HTTP responses
- Type aliases for JSON data and span attributes
"""

from .errors import (
    ConfigError,
    ErrorCode,
    ErrorInfo,
    SpanStateError,
    TraceweaveError,
    UpstreamError,
    classify_exception,
)
from .types import Attributes, AttributeValue, JsonDict, JsonMapping, JsonValue

__all__ = [
    # Core errors
    "ErrorCode", "TraceweaveError", "SpanStateError", "UpstreamError", "ConfigError",
    "ErrorInfo", "classify_exception",
    # Types
    "Attributes", "AttributeValue", "JsonDict", "JsonMapping", "JsonValue",
]
