"""
flowcore - validate, heal and execute workflow graphs, and drive
goal-directed agents over their nodes.
"""

from flowcore.agent import AgentLoop, AgentResult, LLMReasoningProvider, ScriptedReasoningProvider
from flowcore.errors import (
    AgentTerminationError,
    ConfigurationError,
    ExecutionError,
    FlowcoreError,
    StructuralError,
)
from flowcore.graph import (
    EdgeSpec,
    ExecutionResult,
    GraphExecutor,
    GraphSpec,
    HealResult,
    NodeSpec,
    ValidationReport,
    heal,
    validate_graph,
)
from flowcore.nodes import NodeRegistry, builtin_executors

__version__ = "0.1.0"

__all__ = [
    "GraphSpec",
    "NodeSpec",
    "EdgeSpec",
    "validate_graph",
    "ValidationReport",
    "heal",
    "HealResult",
    "GraphExecutor",
    "ExecutionResult",
    "NodeRegistry",
    "builtin_executors",
    "AgentLoop",
    "AgentResult",
    "LLMReasoningProvider",
    "ScriptedReasoningProvider",
    "FlowcoreError",
    "StructuralError",
    "ExecutionError",
    "ConfigurationError",
    "AgentTerminationError",
]
