"""
Built-in node executors.

Only the node types the core itself needs ship here: triggers, branching,
data transforms, wait, error handling, log output and generic HTTP. Other
integrations plug in through ``NodeRegistry.build``. ``javascript`` and the
other code-execution types deliberately have no executor.
"""

from typing import Any

from flowcore.llm.provider import LLMProvider
from flowcore.nodes.ai import ai_executors
from flowcore.nodes.http import HTTP_EXECUTORS
from flowcore.nodes.logic import LOGIC_EXECUTORS
from flowcore.nodes.output import OUTPUT_EXECUTORS
from flowcore.nodes.registry import NodeRegistry, default_registry
from flowcore.nodes.transform import TRANSFORM_EXECUTORS
from flowcore.nodes.triggers import TRIGGER_EXECUTORS


def builtin_executors(llm: LLMProvider | None = None) -> dict[str, Any]:
    """Type -> executor map of every built-in node; LLM nodes need a provider."""
    return {
        **TRIGGER_EXECUTORS,
        **LOGIC_EXECUTORS,
        **TRANSFORM_EXECUTORS,
        **OUTPUT_EXECUTORS,
        **HTTP_EXECUTORS,
        **ai_executors(llm),
    }


__all__ = ["NodeRegistry", "builtin_executors", "default_registry"]
