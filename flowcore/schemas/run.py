"""
Run Schema - the record of one graph execution.

A RunRecord is emitted once per run and handed to whatever RunRecorder the
executor was given. Agent sessions emit one AgentIterationSnapshot per
loop pass instead.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, computed_field


class RunStatus(StrEnum):
    """Status of a run."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class NodeStatus(StrEnum):
    """Status of one node within a run."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class ExecutionLogEntry(BaseModel):
    """What happened to one node during a run."""

    node_id: str
    node_label: str = ""
    node_type: str = ""
    status: NodeStatus = NodeStatus.RUNNING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    input: Any = None
    output: Any = None
    error: str | None = None

    @computed_field
    @property
    def duration_ms(self) -> int | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)


class RunRecord(BaseModel):
    """
    A complete execution of a graph.

    ``logs`` lists every node in execution order, including skipped ones.
    """

    run_id: str
    graph_id: str
    status: RunStatus = RunStatus.RUNNING
    final_output: Any = None
    logs: list[ExecutionLogEntry] = Field(default_factory=list)
    error: str | None = None
    failed_node_id: str | None = None
    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @computed_field
    @property
    def nodes_executed(self) -> list[str]:
        return [e.node_id for e in self.logs if e.status != NodeStatus.SKIPPED]


class AgentIterationSnapshot(BaseModel):
    """Incremental agent progress, emitted once per loop pass."""

    session_id: str = ""
    iteration: int
    state: dict[str, Any] = Field(default_factory=dict)
    history: list[dict[str, Any]] = Field(default_factory=list)
    actions_taken: list[dict[str, Any]] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)

    model_config = {"extra": "allow"}
