"""Configuration management using pydantic-settings.

Provides environment-based configuration with type safety and validation.
"""

from .settings import (
    ExporterName,
    ExportSettings,
    LoggingSettings,
    RetrySettings,
    ServiceSettings,
    TraceweaveSettings,
    TracingSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "ExporterName",
    "ExportSettings",
    "LoggingSettings",
    "RetrySettings",
    "ServiceSettings",
    "TraceweaveSettings",
    "TracingSettings",
    "clear_settings_cache",
    "get_settings",
]
