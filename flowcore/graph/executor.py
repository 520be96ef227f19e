"""
Graph Executor - runs a workflow graph once.

The executor:
1. Orders the nodes with Kahn's algorithm (ties by authored position)
2. Resolves each node's input from its active incoming edges
3. Dispatches to the executor registered for the node's type
4. Prunes the branches an if_else/switch did not take
5. Stops at the first failing node and reports it

Nodes of one run execute strictly one after another. All run state lives in
local variables, so one GraphExecutor can serve concurrent runs.
"""

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from flowcore.config import RuntimeConfig
from flowcore.credentials import CredentialAccessor, EnvCredentials
from flowcore.errors import ExecutionError, StructuralError
from flowcore.graph.edge import EdgeSpec, GraphSpec
from flowcore.graph.node import NodeSpec, RuntimeContext
from flowcore.graph.schema_registry import BRANCHING_TYPES, ERROR_HANDLING_TYPES
from flowcore.graph.templating import to_text
from flowcore.memory import ConversationMemory
from flowcore.nodes.registry import NodeRegistry, default_registry
from flowcore.observability.logging import trace_context
from flowcore.schemas.run import ExecutionLogEntry, NodeStatus, RunRecord, RunStatus
from flowcore.storage.run_store import RunRecorder

TRIGGER_KEY = "__trigger__"


@dataclass
class ExecutionResult:
    """Result of executing a graph."""

    status: RunStatus
    final_output: Any = None
    logs: list[ExecutionLogEntry] = field(default_factory=list)
    error: str | None = None
    failed_node_id: str | None = None
    path: list[str] = field(default_factory=list)  # Node IDs dispatched, in order
    run_id: str = ""

    @property
    def success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    def log_for(self, node_id: str) -> ExecutionLogEntry | None:
        return next((e for e in self.logs if e.node_id == node_id), None)

    def to_record(self, graph_id: str, started_at: datetime) -> RunRecord:
        return RunRecord(
            run_id=self.run_id,
            graph_id=graph_id,
            status=self.status,
            final_output=self.final_output,
            logs=self.logs,
            error=self.error,
            failed_node_id=self.failed_node_id,
            started_at=started_at,
            finished_at=datetime.now(),
        )


class GraphExecutor:
    """
    Executes workflow graphs.

    Example:
        executor = GraphExecutor()
        result = await executor.execute(graph, {"x": 5})
        if result.success:
            print(result.final_output)
    """

    def __init__(
        self,
        registry: NodeRegistry | None = None,
        credentials: CredentialAccessor | None = None,
        memory: ConversationMemory | None = None,
        recorder: RunRecorder | None = None,
        config: RuntimeConfig | None = None,
    ):
        """
        Initialize the executor.

        Args:
            registry: Node type -> executor map (defaults to the built-ins)
            credentials: Credential accessor handed to node executors
            memory: Conversation memory handed to node executors
            recorder: Receives the RunRecord once per run
            config: Runtime configuration (timeouts)
        """
        self.registry = registry if registry is not None else default_registry()
        self.credentials = credentials if credentials is not None else EnvCredentials()
        self.memory = memory
        self.recorder = recorder
        self.config = config or RuntimeConfig()
        self.logger = logging.getLogger(__name__)

    def build_context(
        self, node: NodeSpec, run_id: str = "", session_id: str | None = None
    ) -> RuntimeContext:
        return RuntimeContext(
            node=node,
            registry=self.registry,
            credentials=self.credentials,
            memory=self.memory,
            default_timeout=self.config.default_timeout,
            max_wait_ms=self.config.max_wait_ms,
            run_id=run_id,
            session_id=session_id,
        )

    async def execute_node(
        self,
        node: NodeSpec,
        input: Any,
        run_id: str = "",
        session_id: str | None = None,
    ) -> Any:
        """
        Dispatch one node to its registered executor.

        Raises:
            ExecutionError: Naming the node, for a missing executor or any failure
        """
        executor = self.registry.get(node.type)
        if executor is None:
            raise ExecutionError(
                f"No executor registered for node type '{node.type}' (node '{node.name}')",
                node_id=node.id,
            )
        ctx = self.build_context(node, run_id=run_id, session_id=session_id)
        try:
            return await executor.execute(dict(node.config), input, ctx)
        except ExecutionError as e:
            raise e.with_node(node.id)
        except Exception as e:
            raise ExecutionError(f"Node '{node.name}' failed: {e}", node_id=node.id) from e

    async def execute(
        self,
        graph: GraphSpec,
        trigger_input: Any = None,
        run_id: str | None = None,
        session_id: str | None = None,
    ) -> ExecutionResult:
        """
        Execute a graph once.

        Args:
            graph: The graph to execute (not modified)
            trigger_input: Payload handed to the trigger node
            run_id: Correlation id (generated if omitted)
            session_id: Optional session for memory-backed nodes

        Returns:
            ExecutionResult; node failures are reported here, not raised

        Raises:
            StructuralError: If the graph has duplicate ids or a cycle
        """
        run_id = run_id or f"run_{uuid.uuid4().hex[:12]}"
        started_at = datetime.now()

        duplicates = [i for i, c in Counter(n.id for n in graph.nodes).items() if c > 1]
        if duplicates:
            raise StructuralError(f"Duplicate node ids: {', '.join(duplicates)}")
        order = graph.topological_order()

        token = trace_context.set({"run_id": run_id, "graph_id": graph.id})
        try:
            result = await self._run(graph, order, trigger_input, run_id, session_id)
        finally:
            trace_context.reset(token)

        if self.recorder is not None:
            try:
                await self.recorder.record_run(result.to_record(graph.id, started_at))
            except Exception as e:
                self.logger.warning(f"⚠ Failed to record run {run_id}: {e}")

        return result

    async def _run(
        self,
        graph: GraphSpec,
        order: list[NodeSpec],
        trigger_input: Any,
        run_id: str,
        session_id: str | None,
    ) -> ExecutionResult:
        outputs: dict[str, Any] = {TRIGGER_KEY: trigger_input}
        skipped: set[str] = set()
        logs: list[ExecutionLogEntry] = []
        path: list[str] = []
        nodes_by_id = {n.id: n for n in graph.nodes}

        self.logger.info(f"🚀 Starting run {run_id} of graph '{graph.id}' ({len(order)} nodes)")

        for node in order:
            trace_context.set({**(trace_context.get() or {}), "node_id": node.id})
            incoming = [e for e in graph.get_incoming_edges(node.id) if e.source in nodes_by_id]

            if not incoming:
                if node.type in ERROR_HANDLING_TYPES and not node.is_trigger:
                    # An unwired error handler is a marker, not a step
                    self._skip(node, logs, skipped, "not connected")
                    continue
                node_input = trigger_input
            else:
                active = [e for e in incoming if self._edge_active(e, nodes_by_id, outputs, skipped)]
                if not active:
                    self._skip(node, logs, skipped, "branch not taken")
                    continue
                node_input = self._resolve_input(active, nodes_by_id, outputs)

            entry = ExecutionLogEntry(
                node_id=node.id,
                node_label=node.name,
                node_type=node.type,
                status=NodeStatus.RUNNING,
                started_at=datetime.now(),
                input=node_input,
            )
            logs.append(entry)
            path.append(node.id)
            self.logger.info(f"▶ {node.name} ({node.type})")

            try:
                output = await self.execute_node(node, node_input, run_id, session_id)
            except ExecutionError as e:
                entry.status = NodeStatus.FAILED
                entry.finished_at = datetime.now()
                entry.error = str(e)
                self.logger.error(
                    f"✗ {node.name} failed: {e}",
                    extra={"event": "node_failed", "node_type": node.type, "status": "failed"},
                )
                return ExecutionResult(
                    status=RunStatus.FAILED,
                    final_output=self._final_output(logs, trigger_input),
                    logs=logs,
                    error=str(e),
                    failed_node_id=node.id,
                    path=path,
                    run_id=run_id,
                )

            entry.status = NodeStatus.SUCCESS
            entry.finished_at = datetime.now()
            entry.output = output
            outputs[node.id] = output
            self.logger.info(
                f"✓ {node.name}",
                extra={
                    "event": "node_completed",
                    "node_type": node.type,
                    "latency_ms": entry.duration_ms,
                    "status": "success",
                },
            )

        self.logger.info(f"✓ Run {run_id} completed ({len(path)} executed, {len(skipped)} skipped)")
        return ExecutionResult(
            status=RunStatus.SUCCESS,
            final_output=self._final_output(logs, trigger_input),
            logs=logs,
            path=path,
            run_id=run_id,
        )

    def _skip(
        self,
        node: NodeSpec,
        logs: list[ExecutionLogEntry],
        skipped: set[str],
        reason: str,
    ) -> None:
        now = datetime.now()
        logs.append(
            ExecutionLogEntry(
                node_id=node.id,
                node_label=node.name,
                node_type=node.type,
                status=NodeStatus.SKIPPED,
                started_at=now,
                finished_at=now,
            )
        )
        skipped.add(node.id)
        self.logger.info(f"⏭ {node.name} skipped ({reason})")

    @staticmethod
    def _edge_active(
        edge: EdgeSpec,
        nodes_by_id: dict[str, NodeSpec],
        outputs: dict[str, Any],
        skipped: set[str],
    ) -> bool:
        """An edge carries data unless its source was skipped or it leaves an untaken branch."""
        if edge.source in skipped or edge.source not in outputs:
            return False
        source = nodes_by_id[edge.source]
        output = outputs[edge.source]
        if source.type not in BRANCHING_TYPES or edge.source_handle is None:
            return True
        if not isinstance(output, dict):
            return True

        if source.type == "if_else":
            taken = "true" if output.get("condition") else "false"
            return edge.source_handle == taken

        matched = output.get("matchedCase")
        return matched is not None and edge.source_handle == to_text(matched)

    @staticmethod
    def _forward(source: NodeSpec, output: Any) -> Any:
        """Branching nodes forward their pass-through input, not their decision."""
        if source.type in BRANCHING_TYPES and isinstance(output, dict) and "input" in output:
            return output["input"]
        return output

    def _resolve_input(
        self,
        active: list[EdgeSpec],
        nodes_by_id: dict[str, NodeSpec],
        outputs: dict[str, Any],
    ) -> Any:
        if len(active) == 1:
            edge = active[0]
            return self._forward(nodes_by_id[edge.source], outputs[edge.source])
        return {
            e.source: self._forward(nodes_by_id[e.source], outputs[e.source]) for e in active
        }

    @staticmethod
    def _final_output(logs: list[ExecutionLogEntry], trigger_input: Any) -> Any:
        successes = [e for e in logs if e.status == NodeStatus.SUCCESS]
        if successes and successes[-1].output is not None:
            return successes[-1].output
        for entry in reversed(successes):
            if entry.output is not None:
                return entry.output
        return trigger_input
