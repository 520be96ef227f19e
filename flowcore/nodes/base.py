"""Helpers shared by the built-in node executors."""

import json
from typing import Any

from flowcore.errors import ExecutionError
from flowcore.graph.node import RuntimeContext
from flowcore.graph.templating import extract_value

# Property names searched, in order, when an array expression finds nothing
_ARRAY_KEYS = ("items", "data", "array")


def input_object(input: Any) -> dict[str, Any]:
    """The input if it is a mapping, else an empty dict."""
    return input if isinstance(input, dict) else {}


def payload_object(input: Any) -> dict[str, Any]:
    """A trigger payload as a mapping; a bare value is kept under ``value``."""
    if isinstance(input, dict):
        return input
    return {} if input is None else {"value": input}


def fail(ctx: RuntimeContext, message: str) -> ExecutionError:
    """Build an ExecutionError prefixed with the node's name."""
    return ExecutionError(f"{ctx.node.name}: {message}", node_id=ctx.node.id)


def get_number(config: dict[str, Any], key: str, default: float) -> float:
    value = config.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def parse_json_option(ctx: RuntimeContext, config: dict[str, Any], key: str, default: Any) -> Any:
    """
    Read a config option that may be a structure or its JSON text.

    Raises:
        ExecutionError: If the option is a string holding invalid JSON
    """
    value = config.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise fail(ctx, f"'{key}' must be valid JSON ({e.msg})") from e


def find_array(expression: str | None, input: Any) -> Any:
    """
    Resolve an array expression, falling back to common shapes.

    Tries the expression, then the input itself, then ``items``, ``data``
    and ``array`` properties, then the first list-valued property.
    Returns whatever was found, which may not be a list.
    """
    found = extract_value(expression, input) if expression and expression.strip() else None
    if isinstance(found, list) and found:
        return found
    if isinstance(input, list):
        return input
    obj = input_object(input)
    for key in _ARRAY_KEYS:
        if isinstance(obj.get(key), list):
            return obj[key]
    for value in obj.values():
        if isinstance(value, list):
            return value
    return found if found is not None else input
