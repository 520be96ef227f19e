"""
Trigger executors.

A trigger receives the run's trigger payload and normalizes it into the
shape downstream nodes expect, tagging it with the trigger kind. A list
payload passes through unchanged and a bare value is wrapped as
``{"value": ...}``. Triggers do not wait for schedules or listen for
requests; dispatching the run is the caller's job.
"""

import re
from typing import Any

from flowcore.graph.node import RuntimeContext
from flowcore.nodes.base import fail, payload_object

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


async def manual_trigger(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    if isinstance(input, list):
        return input
    return {"trigger": "manual", **payload_object(input)}


async def webhook_trigger(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    if isinstance(input, list):
        return input
    obj = payload_object(input)
    return {
        "trigger": "webhook",
        "method": obj.get("method") or config.get("method") or "POST",
        "headers": obj.get("headers") or {},
        "query": obj.get("query") or {},
        "body": obj.get("body") or obj,
        **obj,
    }


async def schedule_trigger(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """Report the schedule the run was dispatched for; ``time`` (HH:MM) wins over ``cron``."""
    if isinstance(input, list):
        return input
    time = str(config.get("time") or "")
    match = _TIME_RE.match(time)
    if match:
        hours, minutes = match.groups()
        cron = f"{minutes} {hours} * * *"
    else:
        cron = config.get("cron") or config.get("schedule") or "0 9 * * *"
    return {
        "trigger": "schedule",
        "cron": cron,
        "timezone": config.get("timezone") or "UTC",
        **payload_object(input),
    }


async def chat_trigger(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    obj = payload_object(input)
    message = str(obj.get("message") or "")
    session_id = str(obj.get("session_id") or obj.get("_session_id") or ctx.session_id or "")
    if not message.strip():
        raise fail(ctx, "message is required in the trigger input")
    if not session_id.strip():
        raise fail(ctx, "session_id is required in the trigger input")
    return {
        "trigger": "chat",
        "message": message,
        "session_id": session_id,
        "user_context": obj.get("user_context") or obj.get("metadata") or {},
        **obj,
    }


async def error_trigger(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    obj = payload_object(input)
    return {
        "trigger": "error",
        "failed_node": obj.get("failed_node", "unknown"),
        "error_message": obj.get("error_message", "Unknown error"),
        **obj,
    }


def _tagged(kind: str):
    async def tagged_trigger(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
        if isinstance(input, list):
            return input
        return {"trigger": kind, **payload_object(input)}

    tagged_trigger.__name__ = f"{kind}_trigger"
    return tagged_trigger


TRIGGER_EXECUTORS = {
    "manual_trigger": manual_trigger,
    "webhook": webhook_trigger,
    "schedule": schedule_trigger,
    "chat_trigger": chat_trigger,
    "error_trigger": error_trigger,
    "http_trigger": _tagged("http"),
    "app_trigger": _tagged("app"),
    "polling_trigger": _tagged("polling"),
}
