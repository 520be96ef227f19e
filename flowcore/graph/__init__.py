"""Graph structures: Nodes, Edges, Validation, Healing and Execution."""

from flowcore.graph.edge import EdgeSpec, GraphSpec
from flowcore.graph.executor import ExecutionResult, GraphExecutor
from flowcore.graph.healer import GraphHealer, HealResult, heal
from flowcore.graph.node import (
    FunctionExecutor,
    NodeCategory,
    NodeExecutor,
    NodeSpec,
    RuntimeContext,
)
from flowcore.graph.safe_eval import UnsafeExpressionError, safe_eval
from flowcore.graph.schema_registry import NodeSchema, SchemaCategory, get_schema
from flowcore.graph.templating import evaluate_condition, render_template
from flowcore.graph.validator import Finding, Severity, ValidationReport, validate, validate_graph

__all__ = [
    # Node
    "NodeSpec",
    "NodeCategory",
    "NodeExecutor",
    "FunctionExecutor",
    "RuntimeContext",
    # Edge
    "EdgeSpec",
    "GraphSpec",
    # Schema registry
    "NodeSchema",
    "SchemaCategory",
    "get_schema",
    # Validation
    "Finding",
    "Severity",
    "ValidationReport",
    "validate",
    "validate_graph",
    # Healing
    "GraphHealer",
    "HealResult",
    "heal",
    # Expressions
    "safe_eval",
    "UnsafeExpressionError",
    "evaluate_condition",
    "render_template",
    # Executor
    "GraphExecutor",
    "ExecutionResult",
]
