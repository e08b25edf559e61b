"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from traceweave.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.export.max_queue_size
    2048
    >>> settings.service.port
    8080

    # Or with environment variables:
    # TRACEWEAVE_TRACING_EXPORTER=otlp
    # TRACEWEAVE_SERVICE_SECONDARY_HOST=secondary
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import (
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

ExporterName = Literal["console", "json", "otlp", "zipkin", "memory", "none"]


class TracingSettings(BaseSettings):
    """Tracer provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRACEWEAVE_TRACING_",
        extra="ignore",
    )

    enabled: bool = True
    service_name: str = "traceweave"
    service_version: str = "0.1.0"
    exporter: ExporterName = "console"
    otlp_endpoint: str = Field(default="http://localhost:4317", description="OpenTelemetry collector endpoint")
    otlp_insecure: bool = True
    zipkin_endpoint: str = Field(default="http://localhost:9411/api/v2/spans", description="Zipkin v2 collector")
    sample_rate: Annotated[float, Field(ge=0.0, le=1.0)] = 1.0
    strict: bool = Field(default=False, description="Raise on mutation of ended spans")
    verbose: bool = Field(default=False, description="Print attributes in console exporter")


class ExportSettings(BaseSettings):
    """Batch processor configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRACEWEAVE_EXPORT_",
        extra="ignore",
    )

    max_queue_size: PositiveInt = Field(default=2048, description="Buffered spans before dropping")
    max_export_batch_size: PositiveInt = Field(default=512, description="Spans per export call")
    schedule_delay: PositiveFloat = Field(default=5.0, description="Seconds between periodic flushes")
    export_timeout: PositiveFloat = Field(default=30.0, description="Per-export timeout in seconds")
    shutdown_timeout: PositiveFloat = Field(default=30.0, description="Max seconds to drain on shutdown")
    max_retries: Annotated[int, Field(ge=0, le=5)] = 2

    @model_validator(mode="after")
    def _batch_fits_queue(self) -> ExportSettings:
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError("max_export_batch_size must not exceed max_queue_size")
        return self


class RetrySettings(BaseSettings):
    """Backoff for export retries."""

    model_config = SettingsConfigDict(
        env_prefix="TRACEWEAVE_RETRY_",
        extra="ignore",
    )

    base_delay: PositiveFloat = Field(default=0.5, description="Base delay in seconds")
    max_delay: PositiveFloat = Field(default=5.0, description="Maximum delay in seconds")
    multiplier: PositiveFloat = Field(default=2.0, description="Exponential backoff base")
    jitter: bool = True


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRACEWEAVE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class ServiceSettings(BaseSettings):
    """Example service wiring: listen addresses, upstreams and simulated work."""

    model_config = SettingsConfigDict(
        env_prefix="TRACEWEAVE_SERVICE_",
        extra="ignore",
    )

    host: str = "localhost"
    port: PositiveInt = 8080
    secondary_host: str = "localhost"
    secondary_port: PositiveInt = 8082
    grpc_target: str = "localhost"
    grpc_port: PositiveInt = 7070
    external_url: str = "https://pokeapi.co/api/v2/pokemon/ditto"
    outbound_timeout: PositiveFloat = 10.0
    ticker_interval: NonNegativeFloat = Field(default=60.0, description="Seconds between timed operations, 0 disables")
    work_scale: NonNegativeFloat = Field(default=1.0, description="Multiplier for simulated work sleeps")
    cors: bool = True
    gzip: bool = True

    @computed_field
    @property
    def secondary_url(self) -> str:
        return f"http://{self.secondary_host}:{self.secondary_port}"

    @computed_field
    @property
    def grpc_address(self) -> str:
        return f"{self.grpc_target}:{self.grpc_port}"


class TraceweaveSettings(BaseSettings):
    """Root settings.

    Loads configuration from environment variables with TRACEWEAVE_ prefix.
    Supports nested configuration and .env files.

    Example environment variables:
        TRACEWEAVE_DEBUG=true
        TRACEWEAVE_TRACING_SERVICE_NAME=frontend
        TRACEWEAVE_EXPORT_SCHEDULE_DELAY=1
        TRACEWEAVE_LOG_FORMAT=json
        TRACEWEAVE_SERVICE_PORT=8099
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACEWEAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode (implies strict spans)")
    environment: Literal["development", "staging", "production"] = "development"

    tracing: TracingSettings = Field(default_factory=TracingSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        """Normalize environment name to lowercase."""
        return v.lower() if isinstance(v, str) else v

    @computed_field
    @property
    def strict_spans(self) -> bool:
        """Whether ended-span mutation raises instead of being ignored."""
        return self.debug or self.tracing.strict


@lru_cache(maxsize=1)
def get_settings() -> TraceweaveSettings:
    """Get the process settings instance (cached).

    Services read it once at startup and pass the pieces they need onward.
    """
    return TraceweaveSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
