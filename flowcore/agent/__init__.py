"""Goal-directed agent loop over a graph's nodes."""

from flowcore.agent.loop import AgentLoop, candidate_actions
from flowcore.agent.reasoning import (
    LLMReasoningProvider,
    ReasoningDecision,
    ReasoningProvider,
    ReasoningRequest,
    ScriptedReasoningProvider,
)
from flowcore.agent.state import (
    ActionRecord,
    AgentResult,
    AgentState,
    AgentStatus,
    ReasoningStep,
    TerminationKind,
)

__all__ = [
    "AgentLoop",
    "candidate_actions",
    "LLMReasoningProvider",
    "ScriptedReasoningProvider",
    "ReasoningProvider",
    "ReasoningRequest",
    "ReasoningDecision",
    "AgentState",
    "AgentStatus",
    "AgentResult",
    "ReasoningStep",
    "ActionRecord",
    "TerminationKind",
]
