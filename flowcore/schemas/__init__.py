"""Serializable records handed to persistence collaborators."""

from flowcore.schemas.run import (
    AgentIterationSnapshot,
    ExecutionLogEntry,
    NodeStatus,
    RunRecord,
    RunStatus,
)

__all__ = [
    "AgentIterationSnapshot",
    "ExecutionLogEntry",
    "NodeStatus",
    "RunRecord",
    "RunStatus",
]
