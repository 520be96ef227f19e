"""
Node Protocol - the unit of work in a graph.

A node is pure data: an id, a type tag selecting the executor, a category,
and a config map whose string values may embed ``{{...}}`` templates. What a
node *does* lives in a NodeExecutor registered for its type:

    class Uppercase:
        async def execute(self, config, input, ctx):
            return str(input).upper()

    registry = NodeRegistry.build({"uppercase": Uppercase()})

Executors receive a RuntimeContext giving access to credentials, bounded
conversation memory and the default per-call timeout. That context is the
only seam through which concrete integrations are plugged in.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from flowcore.credentials import CredentialAccessor
    from flowcore.memory import ConversationMemory
    from flowcore.nodes.registry import NodeRegistry


class NodeCategory(StrEnum):
    """Category of a node in a graph."""

    TRIGGER = "trigger"  # Entry point, supplies the run's input
    LOGIC = "logic"  # Branching, flow control, transformation
    DATA = "data"  # Fetches or reshapes data
    OUTPUT = "output"  # Side-effecting destination/action
    AI = "ai"  # LLM-backed


# Editor and schema spellings accepted on load
_CATEGORY_ALIASES = {
    "triggers": NodeCategory.TRIGGER,
    "source": NodeCategory.DATA,
    "action": NodeCategory.OUTPUT,
    "destination": NodeCategory.OUTPUT,
}


class NodeSpec(BaseModel):
    """
    Specification of a node.

    ``id`` and ``type`` default to empty strings so that malformed editor
    output still loads; the validator reports such nodes and the healer
    drops them.
    """

    id: str = ""
    type: str = Field(default="", description="Type tag selecting the executor")
    category: NodeCategory | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    label: str = Field(default="", description="Human-readable name")

    model_config = {"extra": "allow", "frozen": True}

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Any:
        if value is None or isinstance(value, NodeCategory):
            return value
        value = str(value).lower()
        if value in _CATEGORY_ALIASES:
            return _CATEGORY_ALIASES[value]
        if value in NodeCategory._value2member_map_:
            return value
        return None

    @field_validator("config", mode="before")
    @classmethod
    def _default_config(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def name(self) -> str:
        """Label if set, else the id."""
        return self.label or self.id

    @property
    def is_trigger(self) -> bool:
        return self.category == NodeCategory.TRIGGER


@dataclass
class RuntimeContext:
    """
    Everything a node executor may touch besides its config and input.

    One context is built per node dispatch. It is read-only from the
    executor's point of view.
    """

    node: NodeSpec
    registry: NodeRegistry
    credentials: CredentialAccessor
    memory: ConversationMemory | None = None
    default_timeout: float = 30.0
    max_wait_ms: int = 10_000
    run_id: str = ""
    session_id: str | None = None


@runtime_checkable
class NodeExecutor(Protocol):
    """Executes one node type."""

    async def execute(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
        """
        Run the node.

        Args:
            config: The node's config, templates not yet rendered
            input: The resolved input for this node
            ctx: Runtime context (credentials, memory, timeout)

        Returns:
            The node's output, stored for downstream nodes

        Raises:
            ExecutionError: On failure; halts the run at this node
        """
        ...


class FunctionExecutor:
    """Adapts a plain ``async def fn(config, input, ctx)`` into a NodeExecutor."""

    def __init__(self, func: Callable[[dict[str, Any], Any, RuntimeContext], Awaitable[Any]]):
        self.func = func

    async def execute(self, config: dict[str, Any], input: Any, ctx: RuntimeContext) -> Any:
        return await self.func(config, input, ctx)

    def __repr__(self) -> str:
        return f"FunctionExecutor({getattr(self.func, '__name__', self.func)!r})"
