# src/otelmcp/core/__init__.py
"""Core infrastructure: configuration and logging."""

from otelmcp.core.config import (
    LoggingConfig,
    OtelMcpSettings,
    ReceiverConfig,
    StoreConfig,
    load_settings,
)
from otelmcp.core.logging import configure_logging, get_logger

__all__ = [
    "LoggingConfig",
    "OtelMcpSettings",
    "ReceiverConfig",
    "StoreConfig",
    "configure_logging",
    "get_logger",
    "load_settings",
]
