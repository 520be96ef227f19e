"""Terminal output executors."""

import logging
from typing import Any

from flowcore.graph.node import RuntimeContext
from flowcore.graph.templating import render_template

logger = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


async def log_output(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """Log a rendered message; an empty message logs the whole input."""
    level = str(config.get("level") or "info").lower()
    message = render_template(config.get("message") or "{{input}}", input)
    logger.log(
        _LEVELS.get(level, logging.INFO),
        message,
        extra={"event": "log_output", "node_id": ctx.node.id, "node_type": ctx.node.type},
    )
    return {"logged": message, "level": level, "input": input}


OUTPUT_EXECUTORS = {
    "log_output": log_output,
}
