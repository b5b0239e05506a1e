# src/otelmcp/cli.py
"""otel-mcp command line entry point.

Starts one otel-mcp process for an agent session. The first process on a
host/port becomes the primary: it owns the trace store, serves the OTLP/HTTP
receiver and speaks MCP on stdio. Any later process that finds a primary
already answering ``/health`` becomes a secondary and forwards every tool call
to it, so several agent sessions can look at the same traces.

Usage:
    # Defaults: receiver on localhost:4318
    otel-mcp

    # Custom port and capacity
    otel-mcp --port 4319 --max-traces 500

Environment variables (overridden by flags):
    OTEL_MCP_PORT, OTEL_MCP_HOST, OTEL_MCP_MAX_TRACES, OTEL_MCP_MAX_SPANS,
    OTEL_MCP_LOG_LEVEL
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import httpx
import structlog
import typer
import uvicorn
from pydantic import ValidationError

from otelmcp import __version__
from otelmcp.core.config import OtelMcpSettings, load_settings
from otelmcp.core.logging import configure_logging
from otelmcp.mcp import run_server
from otelmcp.mcp.analyzer import RemoteTraceAnalyzer, TraceAnalyzer
from otelmcp.receiver.server import SERVICE_NAME, create_app
from otelmcp.store.trace_store import TraceStore

__all__ = ["app", "detect_primary", "run_primary", "run_secondary"]

logger = structlog.get_logger(__name__)

PROBE_TIMEOUT_SECONDS = 1.0

app = typer.Typer(
    name="otel-mcp",
    help="otel-mcp: OpenTelemetry trace collector for AI coding agents.",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"otel-mcp version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load OTEL_MCP_* variables from a .env file without overriding the environment.

    Raises:
        typer.Exit: If an explicit env_file does not exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)
    return load_dotenv(override=False)


def detect_primary(base_url: str, *, timeout: float = PROBE_TIMEOUT_SECONDS) -> bool:
    """Return True if an otel-mcp primary answers ``/health`` at base_url.

    Anything else listening on the port (or nothing at all) counts as no
    primary. A foreign process holding the port surfaces later as a bind
    failure when this process tries to become the primary.
    """
    try:
        response = httpx.get(f"{base_url}/health", timeout=timeout)
    except httpx.HTTPError:
        return False
    if response.status_code != httpx.codes.OK:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("service") == SERVICE_NAME


async def run_primary(settings: OtelMcpSettings) -> None:
    """Serve the receiver and the MCP stdio server from one event loop.

    Returns when the MCP client disconnects; the receiver is shut down with it.
    """
    store = TraceStore(settings.store)
    analyzer = TraceAnalyzer(store, receiver_url=settings.receiver.base_url)
    receiver_app = create_app(store, analyzer=analyzer)

    server = uvicorn.Server(
        uvicorn.Config(
            receiver_app,
            host=settings.receiver.host,
            port=settings.receiver.port,
            log_config=None,
            log_level=settings.logging.level.lower(),
            access_log=False,
        )
    )
    serve_task = asyncio.create_task(server.serve())

    # Wait for the bind so a port conflict fails before the MCP server starts
    while not server.started:
        if serve_task.done():
            await serve_task
            raise RuntimeError(f"OTLP receiver failed to start on {settings.receiver.base_url}")
        await asyncio.sleep(0.05)

    logger.info(
        "Primary mode: OTLP receiver listening",
        endpoint=f"{settings.receiver.base_url}/v1/traces",
        max_traces=settings.store.max_traces,
        max_spans=settings.store.max_spans,
    )

    try:
        await run_server(analyzer)
    finally:
        logger.info("Shutting down OTLP receiver")
        server.should_exit = True
        await serve_task


async def run_secondary(settings: OtelMcpSettings) -> None:
    """Serve MCP on stdio, forwarding every tool call to the primary."""
    remote = RemoteTraceAnalyzer(settings.receiver.base_url)
    logger.info("Secondary mode: forwarding tool calls to primary", primary=settings.receiver.base_url)
    try:
        await run_server(remote)
    finally:
        remote.close()


@app.command()
def main(
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="OTLP receiver port (default: 4318).", min=1, max=65535),
    ] = None,
    host: Annotated[
        str | None,
        typer.Option("--host", "-h", help="Bind address (default: localhost)."),
    ] = None,
    max_traces: Annotated[
        int | None,
        typer.Option("--max-traces", help="Max traces to keep (default: 1000).", min=1),
    ] = None,
    max_spans: Annotated[
        int | None,
        typer.Option("--max-spans", help="Max total spans (default: 10000).", min=1),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR (default: INFO)."),
    ] = None,
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Output structured JSON logs on stderr."),
    ] = False,
    no_dotenv: Annotated[
        bool,
        typer.Option("--no-dotenv", help="Skip loading .env file."),
    ] = False,
    env_file: Annotated[
        Path | None,
        typer.Option("--env-file", help="Path to .env file (skips automatic search)."),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", "-V", callback=_version_callback, is_eager=True, help="Show version and exit."),
    ] = False,
) -> None:
    """Start otel-mcp as primary, or as secondary if a primary is already running.

    Send OTLP/JSON traces to http://<host>:<port>/v1/traces.
    """
    if not no_dotenv:
        _load_dotenv(env_file=env_file)

    try:
        settings = load_settings(
            {
                "receiver": {"host": host, "port": port},
                "store": {"max_traces": max_traces, "max_spans": max_spans},
                "logging": {"level": log_level, "json_output": json_logs},
            }
        )
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    configure_logging(json_output=settings.logging.json_output, level=settings.logging.level)

    if detect_primary(settings.receiver.base_url):
        asyncio.run(run_secondary(settings))
    else:
        asyncio.run(run_primary(settings))


if __name__ == "__main__":
    app()
