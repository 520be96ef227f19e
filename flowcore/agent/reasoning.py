"""
Reasoning providers - decide the agent's next step.

A provider receives the goal, the working state, the reasoning history so
far and the candidate actions, and answers with a ReasoningDecision. The
agent loop never interprets LLM text itself; that is LLMReasoningProvider's
job.
"""

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from flowcore.agent.state import ReasoningStep
from flowcore.graph.node import NodeSpec
from flowcore.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

REASONING_SYSTEM_PROMPT = (
    "You are a reasoning agent. Think step by step about how to achieve the goal "
    "using the available actions. Be concise and decisive."
)

LONG_HISTORY = 10


@dataclass
class ReasoningRequest:
    """Everything a provider sees on one pass."""

    goal: str
    state: dict[str, Any]
    history: list[ReasoningStep]
    actions: list[NodeSpec]
    memory: list[dict[str, Any]] = field(default_factory=list)
    constraints: list[str] = field(default_factory=list)
    iteration: int = 1


@dataclass
class ReasoningDecision:
    """
    A provider's answer.

    ``should_continue`` False means the goal is met. ``action`` None with
    ``should_continue`` True means the provider has nothing left to do.
    """

    thought: str
    action: NodeSpec | None = None
    confidence: float = 0.5
    should_continue: bool = True


@runtime_checkable
class ReasoningProvider(Protocol):
    async def reason(self, request: ReasoningRequest) -> ReasoningDecision: ...


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, value))


def describe_action(node: NodeSpec) -> str:
    return f"{node.type} node: {node.name}"


def select_action(choice: str, actions: list[NodeSpec]) -> NodeSpec | None:
    """
    Pick the action the provider named: by id, then by fuzzy name match,
    then the first candidate.
    """
    if not actions:
        return None
    choice = choice.strip().strip("[]`'\"").strip()
    for node in actions:
        if node.id == choice:
            return node
    lowered = choice.lower()
    if lowered:
        for node in actions:
            name = node.name.lower()
            if lowered in name or name in lowered:
                return node
    return actions[0]


class LLMReasoningProvider:
    """
    Asks an LLMProvider for the next step.

    The prompt lists the goal, the current state, the previous steps and the
    numbered actions, and asks for four labelled lines:

        - Thought: ...
        - Next Action: <action id>
        - Confidence: 0.0 to 1.0
        - Goal Achieved: true/false
    """

    def __init__(
        self,
        llm: LLMProvider,
        constraints: Iterable[str] = (),
        max_tokens: int = 1024,
        temperature: float | None = 0.7,
    ):
        self.llm = llm
        self.constraints = list(constraints)
        self.max_tokens = max_tokens
        self.temperature = temperature

    def build_prompt(self, request: ReasoningRequest) -> str:
        lines = [
            f"Goal: {request.goal}",
            "",
            "Current State:",
            json.dumps(request.state, indent=2, default=str),
            "",
        ]

        if request.history:
            lines.append("Previous Reasoning Steps:")
            for i, step in enumerate(request.history[-LONG_HISTORY:], start=1):
                line = f"Step {i}: {step.thought}"
                if step.action:
                    line += f" → Action: {step.action}"
                lines.append(line)
            lines.append("")

        lines.append("Available Actions:")
        for i, node in enumerate(request.actions, start=1):
            lines.append(f"{i}. {node.name} (ID: {node.id}): {describe_action(node)}")
        lines.append("")

        constraints = [*self.constraints, *request.constraints]
        if constraints:
            lines.append("Constraints:")
            lines.extend(f"- {c}" for c in constraints)
            lines.append("")

        lines.extend(
            [
                "Based on the goal and current state, what should be the next action?",
                "Respond in this format:",
                "- Thought: [your reasoning]",
                "- Next Action: [action ID]",
                "- Confidence: [0.0 to 1.0]",
                "- Goal Achieved: [true/false]",
            ]
        )
        return "\n".join(lines)

    def parse(self, text: str, actions: list[NodeSpec], history_len: int) -> ReasoningDecision:
        thought_match = re.search(
            r"Thought:\s*(.+?)(?=\n\s*-?\s*Next Action:|\n\s*-?\s*Confidence:|$)",
            text,
            re.IGNORECASE | re.DOTALL,
        )
        thought = thought_match.group(1).strip() if thought_match else text.strip()[:200]

        action_match = re.search(r"Next Action:\s*(.+)", text, re.IGNORECASE)
        action = select_action(action_match.group(1) if action_match else "", actions)

        confidence = 0.5
        confidence_match = re.search(r"Confidence:\s*(-?[0-9]*\.?[0-9]+)", text, re.IGNORECASE)
        if confidence_match:
            confidence = float(confidence_match.group(1))
        confidence = clamp_confidence(confidence)
        if not actions:
            confidence = 0.0
        elif len(actions) == 1:
            confidence = min(confidence, 0.7)
        if history_len > LONG_HISTORY:
            confidence *= 0.9

        achieved_match = re.search(r"Goal Achieved:\s*(true|false|yes|no)", text, re.IGNORECASE)
        goal_achieved = bool(achieved_match) and achieved_match.group(1).lower() in ("true", "yes")

        return ReasoningDecision(
            thought=thought,
            action=action,
            confidence=confidence,
            should_continue=not goal_achieved,
        )

    async def reason(self, request: ReasoningRequest) -> ReasoningDecision:
        messages = [
            {"role": m["role"], "content": m["content"]}
            for m in request.memory
            if m.get("role") in ("user", "assistant")
        ]
        messages.append({"role": "user", "content": self.build_prompt(request)})

        response = await self.llm.acomplete(
            messages=messages,
            system=REASONING_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        logger.debug(f"Reasoning response ({response.model}): {response.content[:200]}")
        return self.parse(response.content, request.actions, len(request.history))


class ScriptedReasoningProvider:
    """
    Replays a fixed list of decisions, for tests and dry runs.

    Each entry is a ReasoningDecision, or a dict
    ``{"thought", "action", "confidence", "should_continue"}`` whose
    ``action`` is a node id or name resolved against the candidates. When the
    script runs out the provider signals the goal is met.
    """

    def __init__(self, script: Iterable[ReasoningDecision | dict[str, Any]]):
        self.script = list(script)
        self.requests: list[ReasoningRequest] = []

    async def reason(self, request: ReasoningRequest) -> ReasoningDecision:
        index = len(self.requests)
        self.requests.append(request)
        if index >= len(self.script):
            return ReasoningDecision(thought="Script exhausted", should_continue=False)

        entry = self.script[index]
        if isinstance(entry, ReasoningDecision):
            return entry

        action = None
        choice = entry.get("action")
        if choice:
            action = select_action(str(choice), request.actions)
        return ReasoningDecision(
            thought=str(entry.get("thought", "")),
            action=action,
            confidence=clamp_confidence(float(entry.get("confidence", 0.5))),
            should_continue=bool(entry.get("should_continue", True)),
        )
