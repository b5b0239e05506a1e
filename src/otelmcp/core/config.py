# src/otelmcp/core/config.py
"""Configuration schema and loading for otel-mcp.

Uses Pydantic for validation with frozen (immutable) models.
Configuration precedence: CLI flags > environment > defaults.

Environment variables:
    OTEL_MCP_PORT         receiver.port
    OTEL_MCP_HOST         receiver.host
    OTEL_MCP_MAX_TRACES   store.max_traces
    OTEL_MCP_MAX_SPANS    store.max_spans
    OTEL_MCP_LOG_LEVEL    logging.level
"""

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_PORT = 4318
DEFAULT_HOST = "localhost"
DEFAULT_MAX_TRACES = 1000
DEFAULT_MAX_SPANS = 10_000

# (section, field) for each supported environment variable
_ENV_VARS: dict[str, tuple[str, str]] = {
    "OTEL_MCP_PORT": ("receiver", "port"),
    "OTEL_MCP_HOST": ("receiver", "host"),
    "OTEL_MCP_MAX_TRACES": ("store", "max_traces"),
    "OTEL_MCP_MAX_SPANS": ("store", "max_spans"),
    "OTEL_MCP_LOG_LEVEL": ("logging", "level"),
}


class StoreConfig(BaseModel):
    """Capacity bounds for the in-memory trace store."""

    model_config = {"frozen": True, "extra": "forbid"}

    max_traces: int = Field(
        default=DEFAULT_MAX_TRACES,
        gt=0,
        description="Maximum number of traces retained before the oldest is evicted",
    )
    max_spans: int = Field(
        default=DEFAULT_MAX_SPANS,
        gt=0,
        description="Maximum number of spans retained across all traces",
    )


class ReceiverConfig(BaseModel):
    """OTLP/HTTP receiver binding."""

    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(
        default=DEFAULT_HOST,
        min_length=1,
        description="Address the receiver binds to",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        gt=0,
        le=65535,
        description="Port the receiver listens on",
    )

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class LoggingConfig(BaseModel):
    """Log output settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )
    json_output: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        """Accept log levels in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


class OtelMcpSettings(BaseModel):
    """Top-level otel-mcp settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    store: StoreConfig = Field(default_factory=StoreConfig)
    receiver: ReceiverConfig = Field(default_factory=ReceiverConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge override into base, recursing into nested sections."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _settings_from_environ(environ: Mapping[str, str]) -> dict[str, Any]:
    sections: dict[str, Any] = {}
    for var, (section, field_name) in _ENV_VARS.items():
        if var in environ:
            sections.setdefault(section, {})[field_name] = environ[var]
    return sections


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> OtelMcpSettings:
    """Load settings from the environment and explicit overrides.

    Args:
        overrides: Nested settings (e.g. ``{"store": {"max_spans": 500}}``)
            that take precedence over the environment. ``None`` leaves are
            ignored so unset CLI flags fall through.
        environ: Environment mapping. Defaults to ``os.environ``.

    Returns:
        Validated, frozen settings.

    Raises:
        pydantic.ValidationError: If any value is invalid (e.g. a port that
            is not an integer in 1..65535).
    """
    env = os.environ if environ is None else environ
    data = _settings_from_environ(env)
    if overrides:
        pruned = {
            section: {k: v for k, v in values.items() if v is not None}
            for section, values in overrides.items()
            if isinstance(values, Mapping)
        }
        data = _deep_merge(data, pruned)
    return OtelMcpSettings.model_validate(data)
