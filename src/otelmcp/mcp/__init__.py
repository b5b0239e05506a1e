# src/otelmcp/mcp/__init__.py
"""MCP (Model Context Protocol) server for collected traces.

Provides read-only tools for agents:
- list_traces: Recent traces with duration, span and error counts
- get_trace: Span tree for one trace (full ID or unique prefix)
- query_spans: Spans matching name/service/attribute/expression filters
- get_summary: Storage totals, services and recent errors

Uses lazy imports so importing ``otelmcp.mcp`` does not load the MCP SDK.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp.server import Server

    from otelmcp.mcp.analyzer import ToolRunner


def create_server(runner: ToolRunner) -> Server:
    """Create MCP server (lazy import wrapper)."""
    from otelmcp.mcp.server import create_server as _create_server

    return _create_server(runner)


async def run_server(runner: ToolRunner) -> Any:
    """Run MCP server on stdio (lazy import wrapper)."""
    from otelmcp.mcp.server import run_server as _run_server

    return await _run_server(runner)


__all__ = ["create_server", "run_server"]
