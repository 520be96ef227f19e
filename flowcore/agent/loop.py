"""
Agent Loop - goal-directed reason/act cycle over a graph's nodes.

Each pass asks a ReasoningProvider what to do next, then executes the chosen
node through the same registry the GraphExecutor uses. The loop ends when the
provider signals the goal is met (completed), when the iteration cap is hit
or the provider has nothing to do (stopped), or on any exception (failed).
A failed session keeps the history gathered up to the failure.
"""

import inspect
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from flowcore.agent.reasoning import ReasoningProvider, ReasoningRequest
from flowcore.agent.state import AgentResult, AgentState, AgentStatus, ReasoningStep, TerminationKind
from flowcore.config import RuntimeConfig
from flowcore.errors import AgentTerminationError
from flowcore.graph.edge import GraphSpec
from flowcore.graph.executor import GraphExecutor
from flowcore.graph.node import NodeSpec
from flowcore.graph.schema_registry import BRANCHING_TYPES
from flowcore.memory import ConversationMemory
from flowcore.observability.logging import trace_context
from flowcore.schemas.run import AgentIterationSnapshot
from flowcore.storage.run_store import RunRecorder

IterationHook = Callable[[AgentIterationSnapshot], Awaitable[None] | None]

NON_ACTION_TYPES = BRANCHING_TYPES | {"memory"}

RESULT_PREVIEW_CHARS = 200


def candidate_actions(graph: GraphSpec) -> list[NodeSpec]:
    """The nodes an agent may act with: no triggers, no pure branching, no memory."""
    return [n for n in graph.nodes if not n.is_trigger and n.type not in NON_ACTION_TYPES]


def _preview(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text[:RESULT_PREVIEW_CHARS]


class AgentLoop:
    """
    Runs agent sessions.

    Example:
        loop = AgentLoop(provider=LLMReasoningProvider(LiteLLMProvider()))
        result = await loop.run("Summarise today's orders", graph)
        print(result.status, result.actions_taken)
    """

    def __init__(
        self,
        provider: ReasoningProvider | None = None,
        executor: GraphExecutor | None = None,
        memory: ConversationMemory | None = None,
        recorder: RunRecorder | None = None,
        config: RuntimeConfig | None = None,
        on_iteration: IterationHook | None = None,
    ):
        """
        Initialize the loop.

        Args:
            provider: Default reasoning provider (run() may override it)
            executor: Dispatches actions; shares its node registry
            memory: Conversation memory; when set each exchange is stored
                and the provider sees only the last memory_max_turns messages
            recorder: Receives one AgentIterationSnapshot per pass
            config: Runtime configuration (iteration cap, memory window)
            on_iteration: Called with the snapshot after every pass
        """
        self.config = config or RuntimeConfig()
        self.provider = provider
        self.memory = memory
        self.executor = executor or GraphExecutor(memory=memory, config=self.config)
        self.recorder = recorder
        self.on_iteration = on_iteration
        self.logger = logging.getLogger(__name__)

    async def run(
        self,
        goal: str,
        graph: GraphSpec | list[NodeSpec],
        max_iterations: int | None = None,
        provider: ReasoningProvider | None = None,
        initial_state: Any = None,
        session_id: str | None = None,
    ) -> AgentResult:
        """
        Run one agent session.

        Args:
            goal: What the agent should achieve
            graph: A graph whose nodes become candidate actions, or the
                candidate actions themselves
            max_iterations: Iteration cap (defaults to config)
            provider: Reasoning provider for this session
            initial_state: Starting working state; non-dicts become {"input": value}
            session_id: Memory and log correlation key (generated if omitted)

        Returns:
            AgentResult; failures are reported here, not raised
        """
        provider = provider or self.provider
        if provider is None:
            raise ValueError("AgentLoop.run needs a reasoning provider")

        session_id = session_id or f"agent_{uuid.uuid4().hex[:12]}"
        cap = self.config.agent_max_iterations if max_iterations is None else max_iterations
        actions = candidate_actions(graph) if isinstance(graph, GraphSpec) else list(graph)

        if initial_state is None:
            initial_state = {}
        elif not isinstance(initial_state, dict):
            initial_state = {"input": initial_state}
        state = AgentState(current_state=dict(initial_state))

        token = trace_context.set({**(trace_context.get() or {}), "session_id": session_id})
        try:
            self.logger.info(f"🤖 Agent session started: {goal}")
            self.logger.info(f"   Actions: {[a.name for a in actions]}, max iterations: {cap}")
            try:
                await self._loop(goal, actions, cap, provider, state, session_id)
            except Exception as e:
                error = AgentTerminationError(str(e), cause=e)
                self.logger.error(f"✗ Agent session failed at iteration {state.iteration}: {error}")
                state.terminate(TerminationKind.FAILED, error=str(error))
            self.logger.info(
                f"🏁 Agent session {state.termination} after {state.iteration} iteration(s)"
            )
        finally:
            trace_context.reset(token)

        return AgentResult.from_state(state, session_id=session_id)

    async def _loop(
        self,
        goal: str,
        actions: list[NodeSpec],
        cap: int,
        provider: ReasoningProvider,
        state: AgentState,
        session_id: str,
    ) -> None:
        if self.memory is not None:
            await self.memory.append(session_id, "user", goal)

        while state.iteration < cap:
            state.iteration += 1
            state.status = AgentStatus.REASONING

            memory_window: list[dict[str, Any]] = []
            if self.memory is not None:
                memory_window = await self.memory.get_history(
                    session_id, self.config.memory_max_turns
                )

            decision = await provider.reason(
                ReasoningRequest(
                    goal=goal,
                    state=state.current_state,
                    history=list(state.reasoning_history),
                    actions=actions,
                    memory=memory_window,
                    iteration=state.iteration,
                )
            )
            action = decision.action
            state.reasoning_history.append(
                ReasoningStep(
                    iteration=state.iteration,
                    thought=decision.thought,
                    action=action.name if action else None,
                    action_id=action.id if action else None,
                    confidence=decision.confidence,
                    should_continue=decision.should_continue,
                )
            )
            self.logger.info(
                f"💭 Iteration {state.iteration}: {decision.thought} "
                f"(action: {action.name if action else None}, confidence: {decision.confidence:.2f})"
            )
            if self.memory is not None:
                await self.memory.append(session_id, "assistant", f"Thought: {decision.thought}")

            if not decision.should_continue:
                await self._emit(state, session_id)
                state.terminate(TerminationKind.COMPLETED)
                return

            if action is None:
                await self._emit(state, session_id)
                state.terminate(TerminationKind.STOPPED)
                return

            state.status = AgentStatus.ACTING
            self.logger.info(f"▶ Acting: {action.name} ({action.type})")
            result = await self.executor.execute_node(
                action, state.current_state, run_id=session_id, session_id=session_id
            )
            state.record_action(action.name, action.id, result)
            if self.memory is not None:
                await self.memory.append(
                    session_id,
                    "assistant",
                    f"Executed action: {action.name}. Result: {_preview(result)}",
                )

            await self._emit(state, session_id)

        self.logger.info(f"⏹ Iteration cap reached ({cap})")
        state.terminate(TerminationKind.STOPPED)

    async def _emit(self, state: AgentState, session_id: str) -> None:
        if self.on_iteration is None and self.recorder is None:
            return
        snapshot = AgentIterationSnapshot(
            session_id=session_id,
            iteration=state.iteration,
            state=state.current_state,
            history=state.history_dicts(),
            actions_taken=state.action_dicts(),
        )
        if self.recorder is not None:
            await self.recorder.record_snapshot(snapshot)
        if self.on_iteration is not None:
            outcome = self.on_iteration(snapshot)
            if inspect.isawaitable(outcome):
                await outcome
