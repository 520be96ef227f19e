"""Graph builders shared by the tests."""

from typing import Any

from flowcore.graph.edge import GraphSpec


def node(node_id: str, node_type: str, category: str | None = None, **config: Any) -> dict:
    raw: dict[str, Any] = {"id": node_id, "type": node_type, "config": config, "label": node_id}
    if category is not None:
        raw["category"] = category
    return raw


def edge(source: str, target: str, handle: str | None = None) -> dict:
    raw: dict[str, Any] = {"id": f"{source}->{target}", "source": source, "target": target}
    if handle is not None:
        raw["sourceHandle"] = handle
    return raw


def graph(nodes: list[dict], edges: list[dict] | None = None, graph_id: str = "g1") -> GraphSpec:
    return GraphSpec.from_dict({"id": graph_id, "nodes": nodes, "edges": edges or []})
