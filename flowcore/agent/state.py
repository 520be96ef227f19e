"""
Agent state - what one agent session knows and has done.

The loop moves through three states:

    reasoning -> acting -> reasoning -> ... -> terminated

and terminates exactly once, as completed (the provider signalled the goal
is met), stopped (iteration cap reached, or nothing left to do) or failed
(an exception while reasoning or acting).
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class AgentStatus(StrEnum):
    REASONING = "reasoning"
    ACTING = "acting"
    TERMINATED = "terminated"


class TerminationKind(StrEnum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class ReasoningStep:
    """One reasoning pass."""

    iteration: int
    thought: str
    action: str | None = None  # Chosen node's name, None when no action
    action_id: str | None = None
    confidence: float = 0.0
    should_continue: bool = True


@dataclass
class ActionRecord:
    """One executed action."""

    iteration: int
    action: str
    action_id: str
    result: Any = None
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass
class AgentState:
    """Mutable per-session state, updated once per iteration."""

    current_state: dict[str, Any] = field(default_factory=dict)
    iteration: int = 0
    status: AgentStatus = AgentStatus.REASONING
    reasoning_history: list[ReasoningStep] = field(default_factory=list)
    actions_taken: list[ActionRecord] = field(default_factory=list)
    termination: TerminationKind | None = None
    error: str | None = None

    @property
    def terminated(self) -> bool:
        return self.status == AgentStatus.TERMINATED

    def terminate(self, kind: TerminationKind, error: str | None = None) -> None:
        """
        Finalize the session.

        Raises:
            RuntimeError: If the session was already terminated
        """
        if self.terminated:
            raise RuntimeError(f"Agent session already terminated as {self.termination}")
        self.status = AgentStatus.TERMINATED
        self.termination = kind
        self.error = error

    def record_action(self, action: str, action_id: str, result: Any) -> None:
        self.actions_taken.append(
            ActionRecord(iteration=self.iteration, action=action, action_id=action_id, result=result)
        )
        self.current_state = {
            **self.current_state,
            "lastAction": action,
            "lastActionResult": result,
        }

    def history_dicts(self) -> list[dict[str, Any]]:
        return [asdict(step) for step in self.reasoning_history]

    def action_dicts(self) -> list[dict[str, Any]]:
        return [asdict(action) for action in self.actions_taken]


@dataclass
class AgentResult:
    """Final outcome of an agent session."""

    status: TerminationKind
    final_state: dict[str, Any]
    reasoning_history: list[ReasoningStep]
    actions_taken: list[ActionRecord]
    iteration_count: int
    error: str | None = None
    session_id: str = ""

    @property
    def success(self) -> bool:
        return self.status == TerminationKind.COMPLETED

    @classmethod
    def from_state(cls, state: AgentState, session_id: str = "") -> "AgentResult":
        return cls(
            status=state.termination,
            final_state=state.current_state,
            reasoning_history=list(state.reasoning_history),
            actions_taken=list(state.actions_taken),
            iteration_count=state.iteration,
            error=state.error,
            session_id=session_id,
        )
