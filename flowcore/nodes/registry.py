"""
Node registry - the type tag -> executor map.

Built once at startup and read-only afterwards, so concurrent runs can
share one registry:

    registry = NodeRegistry.build({
        **builtin_executors(),
        "uppercase": my_uppercase,      # plain async function
        "slack_message": SlackAction(),  # NodeExecutor instance
    })
"""

import inspect
import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from flowcore.graph.node import FunctionExecutor, NodeExecutor

logger = logging.getLogger(__name__)


class NodeRegistry(Mapping[str, NodeExecutor]):
    """Immutable mapping from node type to executor."""

    def __init__(self, executors: Mapping[str, NodeExecutor]):
        self._executors = MappingProxyType(dict(executors))

    @classmethod
    def build(cls, executors: Mapping[str, Any]) -> "NodeRegistry":
        """
        Build a registry, adapting plain async functions.

        Raises:
            TypeError: If a value is neither a NodeExecutor nor an async function
        """
        adapted: dict[str, NodeExecutor] = {}
        for node_type, executor in executors.items():
            if inspect.iscoroutinefunction(executor):
                adapted[node_type] = FunctionExecutor(executor)
            elif isinstance(executor, NodeExecutor):
                adapted[node_type] = executor
            else:
                raise TypeError(
                    f"Executor for '{node_type}' must be a NodeExecutor or an async function, "
                    f"got {type(executor).__name__}"
                )
        logger.debug(f"Built node registry with {len(adapted)} type(s)")
        return cls(adapted)

    def with_executors(self, executors: Mapping[str, Any]) -> "NodeRegistry":
        """A new registry with extra or replacement executors."""
        return NodeRegistry.build({**self._executors, **executors})

    def __getitem__(self, node_type: str) -> NodeExecutor:
        return self._executors[node_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._executors)

    def __len__(self) -> int:
        return len(self._executors)

    def __repr__(self) -> str:
        return f"NodeRegistry({sorted(self._executors)})"


def default_registry() -> NodeRegistry:
    """Registry holding every built-in executor."""
    from flowcore.nodes import builtin_executors

    return NodeRegistry.build(builtin_executors())
