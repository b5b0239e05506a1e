# src/otelmcp/receiver/server.py
"""Starlette ASGI application for the OTLP/HTTP trace receiver.

Endpoints:
    GET  /health               Liveness; identifies this process as otel-mcp
    POST /v1/traces            OTLP/JSON trace export
    POST /api/tools/{name}     Run a tool locally (used by secondary instances)
    POST /admin/clear          Drop all stored traces

Usage:
    from otelmcp.receiver.server import OtlpReceiver
    from otelmcp.store import TraceStore

    store = TraceStore()
    receiver = OtlpReceiver(store)
    # Serve receiver.app with uvicorn, or wrap it in a TestClient
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from otelmcp import __version__
from otelmcp.mcp.analyzer import TraceAnalyzer
from otelmcp.mcp.arguments import TOOL_ARGS, validate_tool_args
from otelmcp.receiver.otlp import decode_export_request
from otelmcp.store.trace_store import TraceStore

logger = structlog.get_logger(__name__)

SERVICE_NAME = "otel-mcp"

# Sentinel distinguishing "body was JSON null" from "body was not JSON"
_INVALID_JSON: Any = object()


class OtlpReceiver:
    """OTLP/HTTP receiver bound to one shared ``TraceStore``.

    Attributes:
        app: The Starlette ASGI application
        store: The store spans are ingested into

    Usage:
        receiver = OtlpReceiver(store, analyzer=TraceAnalyzer(store))
        uvicorn.Server(uvicorn.Config(receiver.app, port=4318))
    """

    def __init__(self, store: TraceStore, *, analyzer: TraceAnalyzer | None = None) -> None:
        self._store = store
        self._analyzer = analyzer if analyzer is not None else TraceAnalyzer(store)
        self._app = self._create_app()

    def _create_app(self) -> Starlette:
        routes = [
            Route("/health", self._health_endpoint, methods=["GET"]),
            Route("/v1/traces", self._traces_endpoint, methods=["POST"]),
            Route("/api/tools/{name}", self._tool_endpoint, methods=["POST"]),
            Route("/admin/clear", self._clear_endpoint, methods=["POST"]),
        ]
        return Starlette(debug=False, routes=routes)

    @property
    def app(self) -> Starlette:
        """Get the Starlette ASGI application."""
        return self._app

    @property
    def store(self) -> TraceStore:
        return self._store

    @property
    def analyzer(self) -> TraceAnalyzer:
        return self._analyzer

    # === Endpoint handlers ===

    async def _health_endpoint(self, request: Request) -> JSONResponse:
        """Handle GET /health."""
        return JSONResponse({"status": "ok", "service": SERVICE_NAME, "version": __version__})

    async def _traces_endpoint(self, request: Request) -> Response:
        """Handle POST /v1/traces.

        Only the JSON encoding is accepted. A body that is valid JSON but not
        shaped like an export request stores nothing and still returns 200,
        matching the collector's partial-success semantics.
        """
        content_type = request.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.warning("Rejected OTLP export", reason="unsupported content type", content_type=content_type)
            return PlainTextResponse("Unsupported content type. Use application/json", status_code=415)

        payload = await self._read_json(request)
        if payload is _INVALID_JSON:
            return PlainTextResponse("Failed to parse OTLP request: body is not valid JSON", status_code=400)

        spans = decode_export_request(payload)
        self._store.ingest(spans)
        return JSONResponse({})

    async def _tool_endpoint(self, request: Request) -> Response:
        """Handle POST /api/tools/{name}: run a tool and return its text."""
        name = request.path_params["name"]
        if name not in TOOL_ARGS:
            return JSONResponse({"error": f"Unknown tool: {name}"}, status_code=404)

        payload = await self._read_json(request)
        if payload is _INVALID_JSON:
            return JSONResponse({"error": "Request body is not valid JSON"}, status_code=400)
        try:
            args = validate_tool_args(name, payload)
        except (ValueError, TypeError) as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        return JSONResponse({"text": self._analyzer.run_tool(name, args)})

    async def _clear_endpoint(self, request: Request) -> JSONResponse:
        """Handle POST /admin/clear."""
        self._store.clear()
        logger.info("Trace store cleared")
        return JSONResponse({"status": "cleared"})

    @staticmethod
    async def _read_json(request: Request) -> Any:
        body = await request.body()
        if not body:
            return None
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError, RecursionError):
            return _INVALID_JSON


def create_app(store: TraceStore, *, analyzer: TraceAnalyzer | None = None) -> Starlette:
    """Create the receiver ASGI application for a store.

    Args:
        store: Shared trace store
        analyzer: Tool facade for /api/tools; defaults to one over ``store``

    Returns:
        Starlette ASGI application
    """
    receiver = OtlpReceiver(store, analyzer=analyzer)
    receiver.app.state.receiver = receiver
    return receiver.app
