"""Standardized error handling for the tracing core and example services.

Provides error codes, exception types and a structured error body for HTTP
responses. Tracing-path failures are classified here but never raised into
request handling; only service-level errors reach the caller.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(StrEnum):
    """Standard error codes.

    Used for programmatic error handling, log fields and HTTP error bodies.
    """
    INVALID_STATE = "INVALID_STATE"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    EXPORT_FAILED = "EXPORT_FAILED"
    CONFIG_ERROR = "CONFIG_ERROR"
    UNKNOWN = "UNKNOWN"


# Flattened pattern -> code mapping, checked in insertion order
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "connect": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "unavailable": ErrorCode.NETWORK_ERROR,
    "status": ErrorCode.UPSTREAM_ERROR,
    "invalid": ErrorCode.INVALID_ARGUMENT,
    "value": ErrorCode.INVALID_ARGUMENT,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES.keys())


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    """Cached classification by exception signature."""
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.UNKNOWN


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code. Library errors carry their own code; others match on name/message."""
    if isinstance(exc, TraceweaveError):
        return exc.code
    return _classify_cached(f"{type(exc).__name__} {exc}")


class TraceweaveError(Exception):
    """Base exception carrying an ErrorCode."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_info(self, *, status: int = 500) -> ErrorInfo:
        return ErrorInfo(message=self.message, code=self.code, status=status)


class SpanStateError(TraceweaveError):
    """Raised in strict mode when an ended span is mutated."""

    code = ErrorCode.INVALID_STATE


class ConfigError(TraceweaveError):
    """Invalid tracing or service configuration."""

    code = ErrorCode.CONFIG_ERROR


class UpstreamError(TraceweaveError):
    """An outbound call failed: transport error or non-2xx response.

    Attributes:
        url: Target of the failed call
        status: Upstream HTTP status, None for transport errors
    """

    code = ErrorCode.UPSTREAM_ERROR

    def __init__(self, message: str, *, url: str = "", status: int | None = None, code: ErrorCode | None = None) -> None:
        super().__init__(message, code=code)
        self.url = url
        self.status = status


class ErrorInfo(BaseModel):
    """Structured error body returned by the example services.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        status: HTTP status sent with the body
        request_id: Correlation id of the failed request, when known
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "title": "Error Info",
            "examples": [{"message": "GET https://pokeapi.co/api/v2/pokemon/ditto returned 503",
                          "code": "UPSTREAM_ERROR", "status": 502}],
        },
    )

    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    status: Annotated[int, Field(ge=400, le=599)] = 500
    request_id: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, *, status: int = 500, request_id: str | None = None) -> ErrorInfo:
        return cls(message=str(exc) or type(exc).__name__, code=classify_exception(exc),
                   status=status, request_id=request_id)
