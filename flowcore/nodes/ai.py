"""
LLM-backed executors.

These are only registered when a provider is supplied:

    registry = NodeRegistry.build(builtin_executors(llm=LiteLLMProvider(model="gpt-4o-mini")))

Conversation history comes from ``ctx.memory`` keyed by the session id in
the input (``session_id`` / ``_session_id``) or the run's session.
"""

import logging
from typing import Any

from flowcore.graph.node import RuntimeContext
from flowcore.graph.templating import render_template, to_text
from flowcore.llm.provider import LLMProvider
from flowcore.nodes.base import fail, get_number, input_object

logger = logging.getLogger(__name__)


def _session_id(input: Any, ctx: RuntimeContext) -> str | None:
    obj = input_object(input)
    return obj.get("session_id") or obj.get("_session_id") or ctx.session_id


class LLMPromptNode:
    """Render ``prompt`` against the input and ask the provider."""

    def __init__(self, provider: LLMProvider):
        self.provider = provider

    async def execute(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
        prompt = config.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise fail(ctx, "prompt is required")

        user_message = render_template(prompt, input)
        if "{{" not in prompt:
            user_message = f"{user_message}\n\nInput:\n{to_text(input)}"

        session_id = _session_id(input, ctx)
        history: list[dict[str, Any]] = []
        if ctx.memory is not None and session_id:
            max_turns = int(get_number(config, "memory", 10))
            history = await ctx.memory.get_history(session_id, max_turns)

        messages = [{"role": m["role"], "content": m["content"]} for m in history]
        messages.append({"role": "user", "content": user_message})

        try:
            response = await self.provider.acomplete(
                messages,
                system=str(config.get("systemPrompt") or ""),
                temperature=get_number(config, "temperature", 0.7),
            )
        except Exception as e:
            raise fail(ctx, f"LLM call failed: {e}") from e

        if ctx.memory is not None and session_id:
            await ctx.memory.append(session_id, "user", user_message)
            await ctx.memory.append(session_id, "assistant", response.content)

        return {"response": response.content, "model": response.model}


async def memory_node(config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
    """Store the input message in, or retrieve history from, conversation memory."""
    if ctx.memory is None:
        raise fail(ctx, "no conversation memory is configured")
    session_id = _session_id(input, ctx)
    if not session_id:
        raise fail(ctx, "session_id is required")

    operation = config.get("operation") or "retrieve"
    if operation == "store":
        obj = input_object(input)
        content = obj.get("message") or obj.get("content") or to_text(input)
        await ctx.memory.append(session_id, str(obj.get("role") or "user"), content)
        return {**obj, "stored": True}

    max_messages = int(get_number(config, "maxMessages", 10))
    history = await ctx.memory.get_history(session_id, max_messages)
    return {**input_object(input), "history": history, "count": len(history)}


def ai_executors(provider: LLMProvider | None) -> dict[str, Any]:
    executors: dict[str, Any] = {"memory": memory_node}
    if provider is not None:
        node = LLMPromptNode(provider)
        for node_type in ("openai_gpt", "anthropic_claude", "google_gemini", "ai_agent"):
            executors[node_type] = node
    return executors
