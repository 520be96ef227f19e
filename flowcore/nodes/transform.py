"""Data transformation executors: variables, field edits, merging and formatting."""

import logging
import math
from typing import Any

from flowcore.graph.node import RuntimeContext
from flowcore.graph.templating import extract_value, render_template
from flowcore.nodes.base import fail, input_object, parse_json_option

logger = logging.getLogger(__name__)


async def set_variable(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    name = config.get("name")
    if not name:
        raise fail(ctx, "variable name is required")
    value = render_template(config.get("value", ""), input)
    return {name: value, **input_object(input)}


async def set_fields(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """
    Set several fields at once from ``fields`` (an object or its JSON).

    Falls back to ``name``/``value`` when no fields are configured, so the
    ``set`` alias behaves like ``set_variable``.
    """
    fields = parse_json_option(ctx, config, "fields", None)
    if fields is None:
        if config.get("name"):
            return await set_variable(config, input, ctx)
        fields = {}
    if not isinstance(fields, dict):
        raise fail(ctx, "fields must be a JSON object")

    output: dict[str, Any] = {}
    for key, template in fields.items():
        if isinstance(template, str):
            rendered = render_template(template, input)
            output[key] = rendered if "{{" in template else _maybe_number(rendered)
        else:
            output[key] = template

    for key, value in input_object(input).items():
        if key != "fields" and key not in output:
            output[key] = value
    return output


def _maybe_number(text: str) -> Any:
    try:
        number = float(text)
    except ValueError:
        return text
    if not math.isfinite(number):
        return text
    if number.is_integer() and "." not in text and "e" not in text.lower():
        return int(number)
    return number


async def edit_fields(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """Apply ``operations``: a list of {operation: set|delete|rename, field, value}."""
    operations = parse_json_option(ctx, config, "operations", [])
    if not isinstance(operations, list):
        raise fail(ctx, "operations must be a JSON array")

    output = dict(input_object(input))
    for op in operations:
        if not isinstance(op, dict):
            continue
        operation, field, value = op.get("operation"), op.get("field"), op.get("value")
        if operation == "set" and value is not None:
            output[field] = render_template(str(value), input)
        elif operation == "delete":
            output.pop(field, None)
        elif operation == "rename" and value and field in output:
            output[str(value)] = output.pop(field)
        else:
            logger.warning(f"Edit Fields '{ctx.node.name}': unknown operation {operation!r}")

    for old, new in _mappings(ctx, config).items():
        if old in output:
            output[new] = output.pop(old)
    return output


async def rename_keys(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    mappings = _mappings(ctx, config)
    return {mappings.get(key, key): value for key, value in input_object(input).items()}


def _mappings(ctx: RuntimeContext, config: dict[str, Any]) -> dict[str, str]:
    mappings = parse_json_option(ctx, config, "mappings", None)
    if mappings is None:
        mappings = parse_json_option(ctx, config, "fieldMappings", {})
    if not isinstance(mappings, dict):
        raise fail(ctx, "mappings must be a JSON object")
    return {str(k): str(v) for k, v in mappings.items() if v}


async def text_formatter(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    template = config.get("template")
    if not template:
        return input

    # Fan-in of several set_variable outputs: flatten one level for easy access
    flattened = input
    if isinstance(input, dict) and any(isinstance(v, dict) for v in input.values()):
        flattened = {}
        for key, value in input.items():
            if isinstance(value, dict):
                flattened.update(value)
            else:
                flattened[key] = value
    return render_template(template, flattened)


async def json_parser(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    expression = config.get("expression")
    if not expression:
        return input
    return extract_value(expression, input)


async def merge(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """
    Combine a fan-in input ({source_id: output, ...}).

    Modes: merge (object union), append/concat (flat list), key_based
    (objects grouped by ``mergeKey``), wait_all (input unchanged).
    """
    mode = config.get("mode") or "merge"

    if isinstance(input, list):
        if mode in ("append", "concat"):
            return [x for v in input for x in (v if isinstance(v, list) else [v])]
        return input
    if not isinstance(input, dict):
        return input

    if mode == "wait_all":
        return input

    if mode in ("append", "concat"):
        combined: list[Any] = []
        for value in input.values():
            if isinstance(value, list):
                combined.extend(value)
            elif value is not None:
                combined.append(value)
        return combined

    if mode == "key_based":
        merge_key = config.get("mergeKey") or "id"
        grouped: dict[str, dict[str, Any]] = {}
        for source, value in input.items():
            for item in value if isinstance(value, list) else [value]:
                if isinstance(item, dict):
                    group = str(item.get(merge_key) or source)
                    grouped.setdefault(group, {}).update(item)
        return list(grouped.values())

    merged: dict[str, Any] = {}
    for key, value in input.items():
        if value is None:
            continue
        if isinstance(value, dict):
            merged.update(value)
        else:
            merged[key] = value
    return merged


async def split_items(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """Split a delimited string (or pass a list through) into ``items``."""
    expression = config.get("array")
    value = extract_value(expression, input) if expression else input
    if isinstance(value, str):
        delimiter = config.get("delimiter") or ","
        items: list[Any] = [part.strip() for part in value.split(delimiter) if part.strip()]
    elif isinstance(value, list):
        items = value
    else:
        raise fail(ctx, "array expression must resolve to a string or an array")
    return {"items": items, "count": len(items)}


TRANSFORM_EXECUTORS = {
    "set_variable": set_variable,
    "set": set_fields,
    "edit_fields": edit_fields,
    "rename_keys": rename_keys,
    "text_formatter": text_formatter,
    "json_parser": json_parser,
    "merge": merge,
    "merge_data": merge,
    "split_items": split_items,
    "split_out_items": split_items,
}
