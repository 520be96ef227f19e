"""
Flow-control executors: branching, filtering, waiting and error handling.

Branching nodes never choose edges themselves. ``if_else`` reports
``{"condition": bool, "input": ...}`` and ``switch`` reports
``{"matchedCase": ..., "caseLabel": ..., "input": ...}``; the executor
reads those outputs to prune the untaken branches and forwards ``input``
to the taken ones.
"""

import asyncio
import json
import logging
from typing import Any

from flowcore.errors import ExecutionError
from flowcore.graph.node import NodeSpec, RuntimeContext
from flowcore.graph.templating import evaluate_condition, render_template, to_text
from flowcore.nodes.base import fail, find_array, get_number, input_object, parse_json_option

logger = logging.getLogger(__name__)


async def if_else(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    # Unwrap the pass-through shape of an upstream branching node
    actual = input["input"] if isinstance(input, dict) and "input" in input else input
    result = evaluate_condition(config.get("condition"), actual)
    logger.debug(f"If/Else '{ctx.node.name}' condition {config.get('condition')!r} -> {result}")
    return {"condition": result, "input": actual}


async def switch(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    expression = config.get("expression")
    if not isinstance(expression, str) or not expression.strip():
        raise fail(ctx, "expression is required")

    cases = parse_json_option(ctx, config, "cases", [])
    if not isinstance(cases, list):
        raise fail(ctx, 'cases must be a JSON array, e.g. [{"value": "active", "label": "Active"}]')

    match_value = to_text(render_template(expression, input)).strip()
    for case in cases:
        value = case.get("value") if isinstance(case, dict) else case
        if to_text(value) == match_value:
            label = case.get("label") if isinstance(case, dict) else None
            return {"matchedCase": value, "caseLabel": label, "input": input}

    logger.debug(f"Switch '{ctx.node.name}': no case matched {match_value!r}")
    return {"matchedCase": None, "caseLabel": None, "input": input}


async def filter_items(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """Keep the items for which ``condition`` holds; ``item`` is bound per element."""
    condition = config.get("condition")
    if not isinstance(condition, str) or not condition.strip():
        raise fail(ctx, "condition is required")

    items = find_array(config.get("array"), input)
    if not isinstance(items, list):
        raise fail(
            ctx,
            "input must be an array or point 'array' at one "
            '(e.g. "items", "input.items", "{{input.items}}")',
        )
    return [item for item in items if evaluate_condition(condition, input, item=item)]


async def wait(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    duration_ms = get_number(config, "duration", 1000)
    duration_ms = max(0, min(duration_ms, ctx.max_wait_ms))
    await asyncio.sleep(duration_ms / 1000)
    return input


async def loop(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    expression = config.get("array")
    if not isinstance(expression, str) or not expression.strip():
        raise fail(ctx, "array expression is required")

    items = find_array(expression, input)
    if not isinstance(items, list):
        raise fail(ctx, "input must be an array")

    max_iterations = int(get_number(config, "maxIterations", 100))
    results = [
        {"item": item, "index": index, "total": len(items)}
        for index, item in enumerate(items[:max_iterations])
    ]
    return {"items": results, "count": len(results), "total": len(items), **input_object(input)}


async def noop(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    return input


async def stop_and_error(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    message = render_template(
        config.get("errorMessage") or "Workflow stopped by Stop And Error node", input
    )
    error = ExecutionError(message, node_id=ctx.node.id)
    error.code = config.get("errorCode") or "STOPPED"
    raise error


class ErrorHandlerNode:
    """
    Retry wrapper.

    With a child node spec under ``wrapped``:

        {"type": "error_handler",
         "config": {"retries": 2, "retryDelay": 500, "fallbackValue": "{\"ok\": false}",
                    "wrapped": {"type": "http_request", "config": {"url": "..."}}}}

    the child is executed up to ``retries + 1`` times with ``retryDelay``
    milliseconds between attempts. If every attempt fails the fallback value
    is returned, or an ExecutionError raised when there is none.

    Without a child the node passes its input through, annotated with its
    retry settings.
    """

    async def execute(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
        retries = max(0, int(get_number(config, "retries", 3)))
        retry_delay = max(0, get_number(config, "retryDelay", 1000))
        fallback = self._fallback(config)

        wrapped = config.get("wrapped")
        if not isinstance(wrapped, dict) or not wrapped.get("type"):
            return {
                **input_object(input),
                "_error_handler_config": {
                    "retries": retries,
                    "retryDelay": retry_delay,
                    "fallbackValue": fallback,
                },
            }

        child = NodeSpec(
            id=f"{ctx.node.id}.wrapped",
            type=str(wrapped["type"]),
            config=wrapped.get("config") or {},
            label=str(wrapped.get("label") or wrapped["type"]),
        )
        executor = ctx.registry.get(child.type)
        if executor is None:
            raise fail(ctx, f"no executor registered for wrapped type '{child.type}'")

        child_ctx = RuntimeContext(
            node=child,
            registry=ctx.registry,
            credentials=ctx.credentials,
            memory=ctx.memory,
            default_timeout=ctx.default_timeout,
            max_wait_ms=ctx.max_wait_ms,
            run_id=ctx.run_id,
            session_id=ctx.session_id,
        )

        last_error: Exception | None = None
        for attempt in range(retries + 1):
            if attempt:
                await asyncio.sleep(retry_delay / 1000)
            try:
                return await executor.execute(child.config, input, child_ctx)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Error handler '{ctx.node.name}': attempt {attempt + 1}/{retries + 1} "
                    f"of '{child.type}' failed: {e}"
                )

        if fallback is not None:
            logger.info(f"Error handler '{ctx.node.name}': using fallback value")
            return fallback

        message = render_template(config.get("errorMessage") or "An error occurred", input)
        raise ExecutionError(
            f"{ctx.node.name}: {message} ({last_error})", node_id=ctx.node.id
        ) from last_error

    @staticmethod
    def _fallback(config: dict[str, Any]) -> Any:
        raw = config.get("fallbackValue")
        if raw is None:
            return None
        if not isinstance(raw, str):
            return raw
        if raw.strip() in ("", "null"):
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw


LOGIC_EXECUTORS = {
    "if_else": if_else,
    "switch": switch,
    "filter": filter_items,
    "wait": wait,
    "loop": loop,
    "noop": noop,
    "stop_error": stop_and_error,
    "stop_and_error": stop_and_error,
    "error_handler": ErrorHandlerNode(),
}
