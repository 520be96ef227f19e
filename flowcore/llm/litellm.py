"""
LiteLLM provider - one interface to OpenAI, Anthropic, Gemini and others.

    provider = LiteLLMProvider(model="claude-haiku-4-5-20251001")
    response = await provider.acomplete([{"role": "user", "content": "hi"}])

API keys are read by LiteLLM from the usual environment variables
(ANTHROPIC_API_KEY, OPENAI_API_KEY, ...) unless passed explicitly.
"""

import logging
from typing import Any

import litellm

from flowcore.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class LiteLLMProvider(LLMProvider):
    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
        **extra_kwargs: Any,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.timeout = timeout
        self.extra_kwargs = extra_kwargs

    def _request_kwargs(
        self,
        messages: list[dict[str, Any]],
        system: str,
        max_tokens: int,
        temperature: float | None,
    ) -> dict[str, Any]:
        full_messages = [{"role": "system", "content": system}] if system else []
        full_messages.extend(messages)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": full_messages,
            "max_tokens": max_tokens,
            **self.extra_kwargs,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.timeout:
            kwargs["timeout"] = self.timeout
        return kwargs

    def _to_response(self, response: Any) -> LLMResponse:
        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content or "",
            model=getattr(response, "model", None) or self.model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            stop_reason=choice.finish_reason or "",
            raw_response=response,
        )

    def complete(
        self,
        messages: list[dict[str, Any]],
        system: str = "",
        max_tokens: int = 1024,
        temperature: float | None = None,
    ) -> LLMResponse:
        response = litellm.completion(
            **self._request_kwargs(messages, system, max_tokens, temperature)
        )
        return self._to_response(response)

    async def acomplete(
        self,
        messages: list[dict[str, Any]],
        system: str = "",
        max_tokens: int = 1024,
        temperature: float | None = None,
    ) -> LLMResponse:
        response = await litellm.acompletion(
            **self._request_kwargs(messages, system, max_tokens, temperature)
        )
        result = self._to_response(response)
        logger.debug(
            f"LLM {result.model}: {result.input_tokens} in / {result.output_tokens} out tokens"
        )
        return result
