"""
Template resolution for node config values.

Config strings may embed ``{{...}}`` placeholders resolved against the
node's input:

    {{input}}          the whole input (JSON text if not already a string)
    {{input.a.b}}      dotted path into the input
    {{a.b}}            same, without the ``input.`` prefix
    {{input.items[0]}} one array-index segment form ``key[N]``

String values that hold JSON are parsed on the way down, so a path can
reach into an HTTP body that arrived as text. Unresolved placeholders are
left verbatim; templating never raises.
"""

import json
import logging
import re
from typing import Any

from flowcore.graph.safe_eval import safe_eval

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_CONDITION_PATH_RE = re.compile(r"\{\{\s*input\.([\w.\[\]]+)\s*\}\}")
_CONDITION_INPUT_RE = re.compile(r"\{\{\s*input\s*\}\}")
_INDEXED_RE = re.compile(r"^(\w*)\[(\d+)\]$")

_MISSING = object()


def _try_parse_json(value: Any) -> Any:
    if isinstance(value, str):
        text = value.strip()
        if text[:1] in ("{", "["):
            try:
                return json.loads(text)
            except ValueError:
                return value
    return value


def _step(value: Any, segment: str) -> Any:
    value = _try_parse_json(value)

    indexed = _INDEXED_RE.match(segment)
    if indexed:
        key, index = indexed.group(1), int(indexed.group(2))
        container = _step(value, key) if key else value
        container = _try_parse_json(container)
        if isinstance(container, list) and index < len(container):
            return container[index]
        return _MISSING

    if isinstance(value, dict):
        return value.get(segment, _MISSING)
    if isinstance(value, list) and segment.isdigit():
        index = int(segment)
        return value[index] if index < len(value) else _MISSING
    return _MISSING


def resolve_path(path: str, data: Any) -> Any:
    """
    Walk a dotted path through ``data``.

    Returns the module-private missing sentinel when any segment fails;
    callers outside this module should use ``extract_value``.
    """
    value = data
    for segment in path.split("."):
        if not segment:
            return _MISSING
        value = _step(value, segment)
        if value is _MISSING:
            return _MISSING
    return value


def to_text(value: Any) -> str:
    """Render a value the way it appears inside a template."""
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def render_template(template: Any, input: Any) -> Any:
    """
    Resolve every ``{{...}}`` placeholder in ``template`` against ``input``.

    Non-string templates are returned unchanged.
    """
    if not isinstance(template, str) or "{{" not in template:
        return template

    def replace(match: re.Match) -> str:
        expression = match.group(1)
        if expression == "input":
            return to_text(input)
        path = expression[len("input.") :] if expression.startswith("input.") else expression
        value = resolve_path(path, input)
        if value is _MISSING:
            logger.debug("Unresolved template path %r", expression)
            return match.group(0)
        return to_text(value)

    return _PLACEHOLDER_RE.sub(replace, template)


def render_config(config: dict[str, Any], input: Any) -> dict[str, Any]:
    """Render templates in every string value of a config, recursing into containers."""
    return {key: _render_value(value, input) for key, value in config.items()}


def _render_value(value: Any, input: Any) -> Any:
    if isinstance(value, str):
        return render_template(value, input)
    if isinstance(value, dict):
        return {k: _render_value(v, input) for k, v in value.items()}
    if isinstance(value, list):
        return [_render_value(v, input) for v in value]
    return value


def extract_value(expression: str | None, input: Any) -> Any:
    """
    Look up a dotted path and return the value itself (not its text).

    Accepts ``items``, ``input.items``, ``{{input.items}}`` and ``$.items``.
    An empty expression (or bare ``input``) returns the input. Missing paths
    return None.
    """
    if not expression:
        return input
    expr = expression.strip()
    if expr.startswith("{{") and expr.endswith("}}"):
        expr = expr[2:-2].strip()
    expr = re.sub(r"^\$\.?", "", expr)
    expr = re.sub(r"^input\.?", "", expr)
    if not expr:
        return input
    value = resolve_path(expr, input)
    return None if value is _MISSING else value


def _condition_literal(match: re.Match, input: Any) -> str:
    if not isinstance(_try_parse_json(input), (dict, list)):
        return "undefined"
    value = resolve_path(match.group(1), input)
    if value is _MISSING:
        return "undefined"
    return json.dumps(value)


def substitute_condition(condition: str, input: Any) -> str:
    """Replace ``{{input.x}}`` with JSON literals and ``{{input}}`` with the input's JSON."""
    substituted = _CONDITION_PATH_RE.sub(lambda m: _condition_literal(m, input), condition)
    return _CONDITION_INPUT_RE.sub(lambda m: json.dumps(input, default=str), substituted)


def evaluate_condition(condition: Any, input: Any, **names: Any) -> bool:
    """
    Evaluate a boolean condition against a node input.

    ``input`` is also bound as a name, so ``input.total > 100`` works
    without placeholders. Extra keyword arguments become names too (the
    filter node binds ``item``). Any failure resolves to False.
    """
    if not isinstance(condition, str):
        logger.warning(f"Non-text condition {condition!r} evaluated as false")
        return False
    if not condition.strip():
        logger.warning("Empty condition evaluated as false")
        return False

    expression = substitute_condition(condition.strip(), input)
    try:
        return bool(safe_eval(expression, {"input": input, **names}))
    except Exception as e:
        logger.warning(f"Condition evaluation failed: {condition!r} ({expression!r}): {e}")
        return False
