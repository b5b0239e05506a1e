# src/otelmcp/__init__.py
"""
otel-mcp: OpenTelemetry trace collector for AI coding agents.

Receives OTLP/JSON traces from locally running applications, keeps a bounded
in-memory working set, and exposes it to agents as MCP tools.
"""

__version__ = "0.3.0"
