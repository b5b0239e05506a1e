"""Tests for settings models and loading precedence."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from otelmcp.core.config import (
    LoggingConfig,
    OtelMcpSettings,
    ReceiverConfig,
    StoreConfig,
    load_settings,
)


class TestModels:
    def test_defaults(self) -> None:
        settings = OtelMcpSettings()

        assert settings.store.max_traces == 1000
        assert settings.store.max_spans == 10_000
        assert settings.receiver.host == "localhost"
        assert settings.receiver.port == 4318
        assert settings.logging.level == "INFO"

    def test_base_url(self) -> None:
        assert ReceiverConfig(host="127.0.0.1", port=9999).base_url == "http://127.0.0.1:9999"

    def test_frozen(self) -> None:
        config = StoreConfig()
        with pytest.raises(ValidationError):
            config.max_traces = 5  # type: ignore[misc]

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(max_trace=5)  # type: ignore[call-arg]

    @pytest.mark.parametrize("value", [0, -1])
    def test_capacity_must_be_positive(self, value: int) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(max_spans=value)

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_range(self, port: int) -> None:
        with pytest.raises(ValidationError):
            ReceiverConfig(port=port)

    def test_log_level_case_insensitive(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"  # type: ignore[arg-type]

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="TRACE")  # type: ignore[arg-type]


class TestLoadSettings:
    def test_empty_environment_gives_defaults(self) -> None:
        assert load_settings(environ={}) == OtelMcpSettings()

    def test_environment(self) -> None:
        settings = load_settings(
            environ={
                "OTEL_MCP_PORT": "4319",
                "OTEL_MCP_HOST": "0.0.0.0",
                "OTEL_MCP_MAX_TRACES": "50",
                "OTEL_MCP_MAX_SPANS": "500",
                "OTEL_MCP_LOG_LEVEL": "warning",
                "UNRELATED": "ignored",
            }
        )

        assert settings.receiver.port == 4319
        assert settings.receiver.host == "0.0.0.0"
        assert settings.store.max_traces == 50
        assert settings.store.max_spans == 500
        assert settings.logging.level == "WARNING"

    def test_overrides_beat_environment(self) -> None:
        settings = load_settings(
            {"receiver": {"port": 5000}},
            environ={"OTEL_MCP_PORT": "4319", "OTEL_MCP_HOST": "example"},
        )

        assert settings.receiver.port == 5000
        assert settings.receiver.host == "example"

    def test_none_overrides_fall_through(self) -> None:
        settings = load_settings(
            {"receiver": {"port": None, "host": None}, "store": {"max_traces": None}},
            environ={"OTEL_MCP_PORT": "4319"},
        )

        assert settings.receiver.port == 4319
        assert settings.receiver.host == "localhost"
        assert settings.store.max_traces == 1000

    def test_invalid_environment_value(self) -> None:
        with pytest.raises(ValidationError):
            load_settings(environ={"OTEL_MCP_PORT": "not-a-port"})
