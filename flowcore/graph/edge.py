"""
Edge Protocol - how nodes connect in a graph.

An edge carries data from ``source`` to ``target``. Edges leaving a
branching node carry a ``source_handle`` naming the branch they belong to:

- if_else: "true" or "false"
- switch:  one of the configured case values

GraphSpec holds the ordered node and edge lists plus the structural queries
the validator, healer and executor share. Node-list order is significant:
it breaks ties in the execution order and decides which trigger the healer
keeps.
"""

from collections import deque
from typing import Any

from pydantic import BaseModel, Field, field_validator

from flowcore.errors import StructuralError
from flowcore.graph.node import NodeSpec


class EdgeSpec(BaseModel):
    """
    Specification for an edge between nodes.

    Examples:
        # Plain data flow
        EdgeSpec(id="e1", source="trigger", target="format")

        # True branch of an if_else node
        EdgeSpec(id="e2", source="check", target="notify", source_handle="true")
    """

    id: str = ""
    source: str = Field(default="", description="Source node ID")
    target: str = Field(default="", description="Target node ID")
    source_handle: str | None = Field(
        default=None,
        alias="sourceHandle",
        description="Branch label: 'true'/'false' for if_else, a case value for switch",
    )
    target_handle: str | None = Field(default=None, alias="targetHandle")

    model_config = {"extra": "allow", "frozen": True, "populate_by_name": True}

    @field_validator("source_handle", "target_handle", mode="before")
    @classmethod
    def _handle_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


class GraphSpec(BaseModel):
    """
    Complete specification of a workflow graph.

        GraphSpec(
            id="notify-on-large-orders",
            nodes=[
                NodeSpec(id="start", type="manual_trigger", category="trigger"),
                NodeSpec(id="check", type="if_else", category="logic",
                         config={"condition": "{{input.total}} > 100"}),
                NodeSpec(id="log", type="log_output", category="output",
                         config={"message": "large order {{input.id}}"}),
            ],
            edges=[
                EdgeSpec(id="e1", source="start", target="check"),
                EdgeSpec(id="e2", source="check", target="log", source_handle="true"),
            ],
        )
    """

    id: str = "graph"
    name: str = ""
    nodes: list[NodeSpec] = Field(default_factory=list)
    edges: list[EdgeSpec] = Field(default_factory=list)

    model_config = {"extra": "allow", "frozen": True}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GraphSpec":
        """
        Load a graph from either the flat shape or the editor's shape.

        The editor nests node fields under ``data``:
            {"id": "n1", "type": "custom", "data": {"type": "webhook", "config": {...}}}

        Non-dict entries are ignored; dict entries always load, even when
        malformed, so that the healer can report dropping them.
        """
        raw_nodes = data.get("nodes") if isinstance(data.get("nodes"), list) else []
        raw_edges = data.get("edges") if isinstance(data.get("edges"), list) else []

        nodes = [_normalize_node(n) for n in raw_nodes if isinstance(n, dict)]
        edges = [EdgeSpec.model_validate(e) for e in raw_edges if isinstance(e, dict)]

        return cls(
            id=str(data.get("id") or "graph"),
            name=str(data.get("name") or ""),
            nodes=nodes,
            edges=edges,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the flat JSON shape (camelCase handles)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> NodeSpec | None:
        """Get a node by ID."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def get_outgoing_edges(self, node_id: str) -> list[EdgeSpec]:
        """Edges leaving a node, in authored order."""
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> list[EdgeSpec]:
        """Edges entering a node, in authored order."""
        return [e for e in self.edges if e.target == node_id]

    def trigger_nodes(self) -> list[NodeSpec]:
        return [n for n in self.nodes if n.is_trigger]

    def detect_fan_in_nodes(self) -> dict[str, list[str]]:
        """Map target node id -> source node ids, for nodes with >1 incoming edge."""
        fan_ins: dict[str, list[str]] = {}
        for node in self.nodes:
            incoming = self.get_incoming_edges(node.id)
            if len(incoming) > 1:
                fan_ins[node.id] = [e.source for e in incoming]
        return fan_ins

    def find_cycle_nodes(self) -> list[str]:
        """
        Node ids left over after Kahn's algorithm drains.

        Empty for an acyclic graph. Edges whose endpoints do not exist are
        ignored.
        """
        _, leftover = self._kahn()
        return leftover

    def topological_order(self) -> list[NodeSpec]:
        """
        Execution order via Kahn's algorithm.

        Ties between simultaneously-ready nodes break by position in the
        authored node list.

        Raises:
            StructuralError: If the graph contains a cycle
        """
        order, leftover = self._kahn()
        if leftover:
            raise StructuralError(
                f"Graph '{self.id}' contains a cycle through nodes: {', '.join(leftover)}"
            )
        return order

    def _kahn(self) -> tuple[list[NodeSpec], list[str]]:
        position = {}
        for index, node in enumerate(self.nodes):
            position.setdefault(node.id, index)

        in_degree = {node_id: 0 for node_id in position}
        adjacency: dict[str, list[str]] = {node_id: [] for node_id in position}
        for edge in self.edges:
            if edge.source in position and edge.target in position:
                adjacency[edge.source].append(edge.target)
                in_degree[edge.target] += 1

        # Ready set kept sorted by authored position
        ready = deque(sorted((n for n, d in in_degree.items() if d == 0), key=position.get))
        order: list[NodeSpec] = []
        while ready:
            node_id = ready.popleft()
            order.append(self.nodes[position[node_id]])
            newly_ready = []
            for neighbor in adjacency[node_id]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    newly_ready.append(neighbor)
            if newly_ready:
                ready = deque(sorted([*ready, *newly_ready], key=position.get))

        leftover = [n for n in position if in_degree[n] > 0]
        leftover.sort(key=position.get)
        return order, leftover


def _normalize_node(raw: dict[str, Any]) -> NodeSpec:
    """Flatten an editor node ({id, data: {...}}) into NodeSpec fields."""
    data = raw.get("data")
    if isinstance(data, dict):
        fields = {
            "id": raw.get("id") or "",
            "type": data.get("type") or "",
            "category": data.get("category"),
            "config": data.get("config"),
            "label": data.get("label") or "",
        }
    else:
        fields = {
            "id": raw.get("id") or "",
            "type": raw.get("type") or "",
            "category": raw.get("category"),
            "config": raw.get("config"),
            "label": raw.get("label") or "",
        }
    fields["id"] = str(fields["id"])
    fields["type"] = str(fields["type"])
    return NodeSpec.model_validate(fields)
