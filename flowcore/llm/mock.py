"""Scripted LLM provider for tests and offline runs."""

from collections.abc import Iterable
from typing import Any

from flowcore.llm.provider import LLMProvider, LLMResponse


class MockLLMProvider(LLMProvider):
    """
    Returns canned responses in order, repeating the last one.

    Every call is recorded in ``calls`` as {messages, system}.
    """

    def __init__(self, responses: Iterable[str] = ("",), model: str = "mock"):
        self.responses = list(responses) or [""]
        self.model = model
        self.calls: list[dict[str, Any]] = []

    def complete(
        self,
        messages: list[dict[str, Any]],
        system: str = "",
        max_tokens: int = 1024,
        temperature: float | None = None,
    ) -> LLMResponse:
        index = min(len(self.calls), len(self.responses) - 1)
        self.calls.append({"messages": list(messages), "system": system})
        return LLMResponse(content=self.responses[index], model=self.model, stop_reason="stop")
