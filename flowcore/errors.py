"""
Error taxonomy for flowcore.

- StructuralError: the graph itself is malformed (cycle, unrepairable invariant)
- ExecutionError: a node executor failed; always names the node
- ConfigurationError: missing credential/config discovered while executing a node
- AgentTerminationError: an exception raised while the agent was reasoning or acting

Validation warnings are not exceptions; they are warning-severity findings
returned by the validator.
"""

from typing import Any


class FlowcoreError(Exception):
    """Base class for all flowcore errors."""


class StructuralError(FlowcoreError):
    """The graph violates a structural invariant that could not be repaired."""

    def __init__(self, message: str, findings: list[Any] | None = None):
        super().__init__(message)
        self.findings = findings or []


class ExecutionError(FlowcoreError):
    """A node executor failed. The run stops at this node."""

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.node_id = node_id

    def with_node(self, node_id: str) -> "ExecutionError":
        """Attach the failing node id if the executor did not set one."""
        if self.node_id is None:
            self.node_id = node_id
        return self


class ConfigurationError(ExecutionError):
    """A required credential or config value is missing at execution time."""


class AgentTerminationError(FlowcoreError):
    """Raised inside the agent loop; always converted to a failed termination."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause
