"""Tests for environment configuration and error types."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from traceweave.foundation.config import TraceweaveSettings, clear_settings_cache, get_settings
from traceweave.foundation.errors import (
    ConfigError,
    ErrorCode,
    ErrorInfo,
    SpanStateError,
    UpstreamError,
    classify_exception,
)

# ═════════════════════════════════════════════════════════════════════════════
# Settings
# ═════════════════════════════════════════════════════════════════════════════


def test_defaults() -> None:
    settings = TraceweaveSettings()
    assert settings.debug is False
    assert settings.tracing.exporter == "console"
    assert settings.export.max_queue_size == 2048
    assert settings.export.max_export_batch_size == 512
    assert settings.service.port == 8080
    assert settings.service.secondary_url == "http://localhost:8082"
    assert settings.service.grpc_address == "localhost:7070"
    assert settings.strict_spans is False


def test_section_env_prefixes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACEWEAVE_TRACING_SERVICE_NAME", "frontend")
    monkeypatch.setenv("TRACEWEAVE_EXPORT_SCHEDULE_DELAY", "1.5")
    monkeypatch.setenv("TRACEWEAVE_LOG_LEVEL", "debug")
    monkeypatch.setenv("TRACEWEAVE_SERVICE_SECONDARY_HOST", "secondary")
    settings = TraceweaveSettings()
    assert settings.tracing.service_name == "frontend"
    assert settings.export.schedule_delay == 1.5
    assert settings.logging.level == "DEBUG"
    assert settings.service.secondary_url == "http://secondary:8082"


def test_nested_delimiter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACEWEAVE_TRACING__EXPORTER", "zipkin")
    monkeypatch.setenv("TRACEWEAVE_ENVIRONMENT", "PRODUCTION")
    settings = TraceweaveSettings()
    assert settings.tracing.exporter == "zipkin"
    assert settings.environment == "production"


def test_strict_spans(monkeypatch: pytest.MonkeyPatch) -> None:
    assert TraceweaveSettings(debug=True).strict_spans
    monkeypatch.setenv("TRACEWEAVE_TRACING_STRICT", "true")
    assert TraceweaveSettings().strict_spans


@pytest.mark.parametrize("overrides", [
    {"export": {"max_queue_size": 8, "max_export_batch_size": 16}},
    {"export": {"max_queue_size": 0}},
    {"tracing": {"sample_rate": 1.5}},
    {"tracing": {"exporter": "jaeger"}},
    {"service": {"work_scale": -1}},
])
def test_invalid_values(overrides: dict[str, dict[str, object]]) -> None:
    with pytest.raises(ValidationError):
        TraceweaveSettings(**overrides)  # type: ignore[arg-type]


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    assert get_settings() is first
    monkeypatch.setenv("TRACEWEAVE_SERVICE_PORT", "8099")
    assert get_settings().service.port == first.service.port
    clear_settings_cache()
    assert get_settings().service.port == 8099


# ═════════════════════════════════════════════════════════════════════════════
# Errors
# ═════════════════════════════════════════════════════════════════════════════


def test_error_codes() -> None:
    assert SpanStateError("x").code is ErrorCode.INVALID_STATE
    assert ConfigError("x").code is ErrorCode.CONFIG_ERROR
    err = UpstreamError("GET / returned 503", url="http://pokeapi.test/", status=503)
    assert err.code is ErrorCode.UPSTREAM_ERROR
    assert (err.url, err.status) == ("http://pokeapi.test/", 503)
    assert UpstreamError("slow", code=ErrorCode.TIMEOUT).code is ErrorCode.TIMEOUT


@pytest.mark.parametrize(("exc", "code"), [
    (TimeoutError("deadline exceeded"), ErrorCode.TIMEOUT),
    (ConnectionRefusedError("connection refused"), ErrorCode.NETWORK_ERROR),
    (ValueError("invalid value"), ErrorCode.INVALID_ARGUMENT),
    (RuntimeError("something odd"), ErrorCode.UNKNOWN),
    (SpanStateError("ended"), ErrorCode.INVALID_STATE),
])
def test_classify_exception(exc: BaseException, code: ErrorCode) -> None:
    assert classify_exception(exc) is code


def test_error_info() -> None:
    info = UpstreamError("GET / returned 503").to_info(status=502)
    assert info.model_dump() == {"message": "GET / returned 503", "code": ErrorCode.UPSTREAM_ERROR,
                                 "status": 502, "request_id": None}
    generic = ErrorInfo.from_exception(KeyError("pokemon"), request_id="r-1")
    assert generic.status == 500 and generic.request_id == "r-1"
    with pytest.raises(ValidationError):
        ErrorInfo(message="", status=200)
