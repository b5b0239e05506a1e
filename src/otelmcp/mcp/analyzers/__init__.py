# src/otelmcp/mcp/analyzers/__init__.py
"""Tool implementations, one submodule per concern.

- traces: list_traces, get_trace
- spans: query_spans
- summary: get_summary
"""
