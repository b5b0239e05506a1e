# src/otelmcp/mcp/analyzer.py
"""Tool facades: local (store-backed) and remote (forwarding to a primary).

``TraceAnalyzer`` keeps the public tool API and delegates every method to the
appropriate submodule in ``mcp.analyzers``. ``RemoteTraceAnalyzer`` exposes
the same ``run_tool`` entry point but forwards each call to the primary
instance's ``/api/tools/{name}`` endpoint, so a second agent session can
query the traces the first session's receiver collected.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

import httpx
import structlog

from otelmcp.contracts import ForwardingError
from otelmcp.mcp.analyzers import spans, summary, traces
from otelmcp.store.queries import TraceQueryEngine
from otelmcp.store.trace_store import TraceStore

logger = structlog.get_logger(__name__)

DEFAULT_RECEIVER_URL = "http://localhost:4318"


class ToolRunner(Protocol):
    """Anything that can execute a validated tool call and render text."""

    def run_tool(self, name: str, args: dict[str, Any]) -> str: ...


class TraceAnalyzer:
    """Tool implementations over a local ``TraceStore``.

    Args:
        store: The shared store (also written by the receiver).
        receiver_url: Base URL shown in "send traces to" hints.
        clock: Epoch-seconds clock for relative time windows.
    """

    def __init__(
        self,
        store: TraceStore,
        *,
        receiver_url: str = DEFAULT_RECEIVER_URL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._engine = TraceQueryEngine(store, clock=clock)
        self._receiver_url = receiver_url

    @property
    def engine(self) -> TraceQueryEngine:
        return self._engine

    def list_traces(
        self,
        service: str | None = None,
        has_errors: bool = False,
        min_duration_ms: float | None = None,
        since_minutes: float | None = None,
        since: str | None = None,
        limit: int = 20,
    ) -> str:
        return traces.list_traces(
            self._engine,
            service=service,
            has_errors=has_errors,
            min_duration_ms=min_duration_ms,
            since_minutes=since_minutes,
            since=since,
            limit=limit,
            receiver_url=self._receiver_url,
        )

    def get_trace(self, trace_id: str, show_attributes: bool = False) -> str:
        return traces.get_trace(self._engine, trace_id=trace_id, show_attributes=show_attributes)

    def query_spans(
        self,
        name: str | None = None,
        service: str | None = None,
        min_duration_ms: float | None = None,
        has_error: bool = False,
        attribute: str | None = None,
        filter: str | None = None,  # noqa: A002  # tool argument name
        since_minutes: float | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> str:
        return spans.query_spans(
            self._engine,
            name=name,
            service=service,
            min_duration_ms=min_duration_ms,
            has_error=has_error,
            attribute=attribute,
            filter=filter,
            since_minutes=since_minutes,
            since=since,
            limit=limit,
        )

    def get_summary(self) -> str:
        return summary.get_summary(self._engine, receiver_url=self._receiver_url)

    def run_tool(self, name: str, args: dict[str, Any]) -> str:
        """Dispatch a validated tool call.

        Args:
            name: Tool name.
            args: Output of ``validate_tool_args`` for that tool.

        Raises:
            ValueError: Unknown tool.
        """
        if name == "list_traces":
            return self.list_traces(**args)
        if name == "get_trace":
            return self.get_trace(**args)
        if name == "query_spans":
            return self.query_spans(**args)
        if name == "get_summary":
            return self.get_summary()
        raise ValueError(f"Unknown tool: {name}")


class RemoteTraceAnalyzer:
    """Forwards tool calls to a primary otel-mcp instance over HTTP.

    Args:
        base_url: The primary's receiver URL, e.g. ``http://localhost:4318``.
        timeout: Per-request timeout in seconds.
        client: Optional preconfigured client (tests pass one bound to an
            ASGI transport).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client if client is not None else httpx.Client(base_url=self._base_url, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def forward(self, name: str, args: dict[str, Any]) -> str:
        """Run a tool on the primary and return its text.

        Raises:
            ForwardingError: The primary is unreachable or rejected the call.
        """
        try:
            response = self._client.post(f"/api/tools/{name}", json=args)
        except httpx.HTTPError as e:
            raise ForwardingError(f"Primary at {self._base_url} is unreachable: {e}") from e
        if response.status_code != httpx.codes.OK:
            raise ForwardingError(f"Primary rejected '{name}' ({response.status_code}): {response.text}")
        try:
            body = response.json()
        except ValueError as e:
            raise ForwardingError(f"Primary returned a non-JSON response for '{name}'") from e
        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise ForwardingError(f"Primary returned a malformed response for '{name}'")
        return text

    def run_tool(self, name: str, args: dict[str, Any]) -> str:
        """Forward a validated tool call; connection problems become error text."""
        try:
            return self.forward(name, args)
        except ForwardingError as e:
            logger.warning("Tool forwarding failed", tool=name, error=str(e))
            return f"Error: {e}"
