# src/otelmcp/mcp/server.py
"""MCP server exposing collected traces to AI coding agents.

A read-only server with four tools: list_traces, get_trace, query_spans and
get_summary. Tool logic lives in ``mcp.analyzer`` (facade) and
``mcp.analyzers.*``; this file contains only MCP protocol machinery: tool
registration, argument validation, dispatch and the stdio transport.

The server is transport-agnostic about where the data lives: a primary
instance passes a store-backed ``TraceAnalyzer``, a secondary instance a
``RemoteTraceAnalyzer`` that forwards to the primary.
"""

from __future__ import annotations

from typing import Any

import structlog
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool, ToolAnnotations

from otelmcp import __version__
from otelmcp.mcp.analyzer import ToolRunner
from otelmcp.mcp.arguments import validate_tool_args

logger = structlog.get_logger(__name__)

SERVER_NAME = "otel-mcp"

SERVER_INSTRUCTIONS = """OpenTelemetry trace collector for AI coding agents.

Use this server to inspect runtime behavior of applications:
- Find slow operations and performance bottlenecks
- Debug errors and exceptions
- Trace request flows across services
- Analyze database queries and external API calls

The server collects traces from OpenTelemetry-instrumented applications running locally."""

_READ_ONLY = ToolAnnotations(readOnlyHint=True, openWorldHint=False)


def tool_definitions() -> list[Tool]:
    """Tool schemas advertised to MCP clients."""
    return [
        Tool(
            name="list_traces",
            title="List Traces",
            description=(
                "List recent traces from the application. Use this to get an overview of recent requests, "
                "find errors, or identify slow operations. Returns a table of traces with their duration, "
                "span count, and error count."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "service": {"type": "string", "description": "Filter by service name"},
                    "has_errors": {"type": "boolean", "description": "Only traces with errors"},
                    "min_duration_ms": {"type": "number", "description": "Minimum duration in milliseconds"},
                    "since_minutes": {"type": "number", "description": "Only traces from last N minutes (default: 30)"},
                    "since": {"type": "string", "description": "Only traces since this ISO-8601 timestamp (overrides since_minutes)"},
                    "limit": {"type": "integer", "description": "Max results (default: 20, max: 100)"},
                },
            },
            annotations=_READ_ONLY,
        ),
        Tool(
            name="get_trace",
            title="Get Trace Details",
            description=(
                "Get the detailed span tree for a specific trace. Shows the hierarchy of operations, their "
                "timing, and optionally their attributes. Use this to understand the full request flow and "
                "identify where time is spent."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "trace_id": {"type": "string", "description": "Full or prefix trace ID (min 6 chars)"},
                    "show_attributes": {"type": "boolean", "description": "Include span attributes (default: false)"},
                },
                "required": ["trace_id"],
            },
            annotations=_READ_ONLY,
        ),
        Tool(
            name="query_spans",
            title="Query Spans",
            description=(
                "Search for specific spans across all traces. Use this to find patterns like slow database "
                "queries, failed HTTP calls, or specific operations by name. More targeted than list_traces "
                "when looking for specific operation types."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Span name contains (case-insensitive)"},
                    "service": {"type": "string", "description": "Service name"},
                    "min_duration_ms": {"type": "number", "description": "Minimum duration in milliseconds"},
                    "has_error": {"type": "boolean", "description": "Only error spans"},
                    "attribute": {"type": "string", "description": 'Attribute filter: "key=value" or "key" (exists)'},
                    "filter": {
                        "type": "string",
                        "description": 'Filter expression, e.g. "duration > 50 AND http.status_code >= 400"',
                    },
                    "since_minutes": {"type": "number", "description": "Time filter (default: 30)"},
                    "since": {"type": "string", "description": "Only spans since this ISO-8601 timestamp (overrides since_minutes)"},
                    "limit": {"type": "integer", "description": "Max results (default: 50, max: 200)"},
                },
            },
            annotations=_READ_ONLY,
        ),
        Tool(
            name="get_summary",
            title="Get Summary",
            description=(
                "Get an overview of all collected trace data. Shows total traces and spans, list of services, "
                "and recent errors. Good starting point to understand what data is available."
            ),
            inputSchema={"type": "object", "properties": {}},
            annotations=_READ_ONLY,
        ),
    ]


def handle_tool_call(runner: ToolRunner, name: str, arguments: dict[str, Any] | None) -> str:
    """Validate arguments and run one tool, returning the text to send back.

    Invalid arguments are the caller's fault and come back as text. Errors
    raised by the tool itself propagate so they surface as MCP protocol
    errors instead of being hidden in a text result.
    """
    try:
        args = validate_tool_args(name, arguments)
    except (ValueError, TypeError) as e:
        return f"Invalid arguments: {e!s}"
    return runner.run_tool(name, args)


def create_server(runner: ToolRunner) -> Server:
    """Create the MCP server.

    Args:
        runner: Local ``TraceAnalyzer`` or forwarding ``RemoteTraceAnalyzer``.

    Returns:
        Configured MCP Server
    """
    server = Server(SERVER_NAME, version=__version__, instructions=SERVER_INSTRUCTIONS)

    @server.list_tools()  # type: ignore[misc, no-untyped-call, untyped-decorator]  # MCP SDK decorators lack type stubs
    async def list_tools() -> list[Tool]:
        """List available trace tools."""
        return tool_definitions()

    @server.call_tool()  # type: ignore[misc, untyped-decorator]  # MCP SDK decorators lack type stubs
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        return [TextContent(type="text", text=handle_tool_call(runner, name, arguments))]

    return server


async def run_server(runner: ToolRunner) -> None:
    """Run the MCP server on the stdio transport until the client disconnects."""
    server = create_server(runner)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("MCP server ready", transport="stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
