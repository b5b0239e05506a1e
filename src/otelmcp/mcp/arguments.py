# src/otelmcp/mcp/arguments.py
"""Tool argument validation (Tier 3 boundary).

Tool arguments arrive as arbitrary JSON, either from an MCP client or from a
secondary instance forwarding over HTTP. Types are checked immediately,
defaults applied, and undeclared keys dropped before anything reaches the
query engine. Both the MCP server and the receiver's forwarding endpoint use
``validate_tool_args``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class _ArgSpec:
    """Declarative schema for one tool's arguments."""

    required_str: tuple[str, ...] = ()
    optional_str: tuple[str, ...] = ()  # defaults to None
    optional_bool: tuple[tuple[str, bool], ...] = ()  # (name, default)
    optional_number: tuple[str, ...] = ()  # defaults to None
    optional_int: tuple[tuple[str, int], ...] = ()  # (name, default)


TOOL_ARGS: dict[str, _ArgSpec] = {
    "list_traces": _ArgSpec(
        optional_str=("service", "since"),
        optional_bool=(("has_errors", False),),
        optional_number=("min_duration_ms", "since_minutes"),
        optional_int=(("limit", 20),),
    ),
    "get_trace": _ArgSpec(
        required_str=("trace_id",),
        optional_bool=(("show_attributes", False),),
    ),
    "query_spans": _ArgSpec(
        optional_str=("name", "service", "attribute", "filter", "since"),
        optional_bool=(("has_error", False),),
        optional_number=("min_duration_ms", "since_minutes"),
        optional_int=(("limit", 50),),
    ),
    "get_summary": _ArgSpec(),
}


def validate_tool_args(name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
    """Validate tool arguments and apply defaults.

    Returns a new dict holding exactly the declared fields.

    Raises:
        ValueError: Unknown tool or missing required field.
        TypeError: Field has the wrong type.
    """
    spec = TOOL_ARGS.get(name)
    if spec is None:
        raise ValueError(f"Unknown tool: {name}")
    arguments = arguments or {}
    if not isinstance(arguments, dict):
        raise TypeError(f"'{name}': arguments must be an object, got {type(arguments).__name__}")

    validated: dict[str, Any] = {}

    for fname in spec.required_str:
        if fname not in arguments:
            raise ValueError(f"'{name}' requires '{fname}'")
        val = arguments[fname]
        if not isinstance(val, str):
            raise TypeError(f"'{name}': '{fname}' must be string, got {type(val).__name__}")
        validated[fname] = val

    for fname in spec.optional_str:
        val = arguments.get(fname)
        if val is not None and not isinstance(val, str):
            raise TypeError(f"'{name}': '{fname}' must be string or null, got {type(val).__name__}")
        validated[fname] = val

    for fname, bool_default in spec.optional_bool:
        val = arguments.get(fname)
        if val is None:
            val = bool_default
        if not isinstance(val, bool):
            raise TypeError(f"'{name}': '{fname}' must be boolean, got {type(val).__name__}")
        validated[fname] = val

    for fname in spec.optional_number:
        val = arguments.get(fname)
        if val is not None and (isinstance(val, bool) or not isinstance(val, (int, float))):
            raise TypeError(f"'{name}': '{fname}' must be number or null, got {type(val).__name__}")
        validated[fname] = val

    for fname, int_default in spec.optional_int:
        val = arguments.get(fname)
        if val is None:
            val = int_default
        # JSON has no int/float distinction, so accept integral floats
        if isinstance(val, float) and val.is_integer():
            val = int(val)
        if not isinstance(val, int) or isinstance(val, bool):
            raise TypeError(f"'{name}': '{fname}' must be integer, got {type(val).__name__}")
        validated[fname] = val

    return validated
