"""LLM provider abstraction.

The LiteLLM-backed provider needs the ``llm`` extra and is imported from
``flowcore.llm.litellm`` directly.
"""

from flowcore.llm.mock import MockLLMProvider
from flowcore.llm.provider import LLMProvider, LLMResponse

__all__ = ["LLMProvider", "LLMResponse", "MockLLMProvider"]
