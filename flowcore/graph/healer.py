"""
Graph healer - repairs a candidate graph until it can run.

``heal`` is total: any finite node/edge list, including an empty one,
comes back as a graph with exactly one trigger, at least one terminal
node and no hard validation errors. It never mutates its input and is
idempotent, so healing a healed graph records no further fixes.

Repairs run in a fixed order because later steps assume earlier ones hold:

1. drop malformed nodes, duplicate ids and orphaned edges
2. fill category/config from the schema registry, correct a trigger category
   the schema contradicts, replace unsupported types
3. exactly one trigger (synthesize or drop extras)
4. at least one terminal node (synthesize a log_output)
5. required config properties from defaults or placeholders
6. break cycles, then repair if_else/switch branch handles
7. link isolated nodes into a chain hanging off the trigger
8. add an error_handler safety net
9. re-validate

Every change is recorded as a human-readable fix in application order.
Synthesized ids are derived from the node type and a counter, so identical
input always heals to identical output.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from flowcore.errors import StructuralError
from flowcore.graph.edge import EdgeSpec, GraphSpec
from flowcore.graph.node import NodeCategory, NodeSpec
from flowcore.graph.schema_registry import (
    BRANCHING_TYPES,
    ERROR_HANDLING_TYPES,
    alternative_type,
    default_config_for,
    get_schema,
    is_terminal,
    node_category_for,
    placeholder_value,
    switch_case_values,
    switch_cases,
)
from flowcore.graph.validator import Finding, ValidationReport, is_empty_value, validate

logger = logging.getLogger(__name__)


@dataclass
class HealResult:
    """Outcome of healing a graph."""

    graph: GraphSpec
    fixes: list[str] = field(default_factory=list)
    warnings: list[Finding] = field(default_factory=list)

    @property
    def status(self) -> str:
        """'valid' when nothing needed fixing, else 'auto_healed'."""
        return "auto_healed" if self.fixes else "valid"


def heal(graph: GraphSpec | dict[str, Any]) -> HealResult:
    """
    Repair a graph so that it satisfies every hard validation rule.

    Args:
        graph: A GraphSpec, or a raw dict in either JSON shape

    Returns:
        HealResult with the repaired graph and the fixes applied

    Raises:
        StructuralError: If the graph is still invalid after every repair
    """
    if isinstance(graph, dict):
        graph = GraphSpec.from_dict(graph)
    return GraphHealer(graph).heal()


class GraphHealer:
    """Holds the working copy of one graph while the repair steps run."""

    def __init__(self, graph: GraphSpec):
        self.source = graph
        self.nodes: list[NodeSpec] = list(graph.nodes)
        self.edges: list[EdgeSpec] = list(graph.edges)
        self.fixes: list[str] = []

    def heal(self) -> HealResult:
        self._drop_malformed()
        self._fill_from_schema()
        self._ensure_single_trigger()
        self._ensure_terminal()
        self._repair_required_properties()
        self._break_cycles()
        self._repair_branches()
        self._connect_isolated()
        self._ensure_error_handler()

        healed = GraphSpec(
            id=self.source.id, name=self.source.name, nodes=self.nodes, edges=self.edges
        )
        report = ValidationReport(findings=validate(healed))
        if not report.is_valid:
            raise StructuralError(
                f"Graph '{healed.id}' could not be repaired: "
                + "; ".join(f.message for f in report.errors),
                findings=report.errors,
            )

        if self.fixes:
            logger.info(f"Healed graph '{healed.id}' with {len(self.fixes)} fix(es)")
            for fix in self.fixes:
                logger.debug(f"   fix: {fix}")
        return HealResult(graph=healed, fixes=self.fixes, warnings=report.warnings)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fix(self, message: str) -> None:
        self.fixes.append(message)

    def _node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}

    def _trigger(self) -> NodeSpec | None:
        return next((n for n in self.nodes if n.is_trigger), None)

    def _new_node_id(self, node_type: str) -> str:
        existing = self._node_ids()
        counter = 1
        while f"{node_type}_{counter}" in existing:
            counter += 1
        return f"{node_type}_{counter}"

    def _new_node(self, node_type: str) -> NodeSpec:
        schema = get_schema(node_type)
        return NodeSpec(
            id=self._new_node_id(node_type),
            type=node_type,
            category=node_category_for(schema.category),
            config=default_config_for(node_type),
            label=node_type.replace("_", " ").title(),
        )

    def _connect(self, source: str, target: str, handle: str | None = None) -> EdgeSpec:
        existing = {e.id for e in self.edges}
        base = f"e_{source}_{target}"
        edge_id, counter = base, 2
        while edge_id in existing:
            edge_id = f"{base}_{counter}"
            counter += 1
        edge = EdgeSpec(id=edge_id, source=source, target=target, source_handle=handle)
        self.edges.append(edge)
        return edge

    def _replace_node(self, updated: NodeSpec) -> None:
        self.nodes = [updated if n.id == updated.id else n for n in self.nodes]

    def _remove_edges(self, doomed: list[EdgeSpec]) -> None:
        doomed_ids = {id(e) for e in doomed}
        self.edges = [e for e in self.edges if id(e) not in doomed_ids]

    # ------------------------------------------------------------------
    # Step 1: malformed nodes and orphaned edges
    # ------------------------------------------------------------------

    def _drop_malformed(self) -> None:
        kept: list[NodeSpec] = []
        seen: set[str] = set()
        for index, node in enumerate(self.nodes):
            if not node.id or not node.type:
                missing = "id" if not node.id else "type"
                self._fix(f"Removed malformed node #{index} (missing {missing})")
                continue
            if node.id in seen:
                self._fix(f'Removed duplicate node "{node.id}"')
                continue
            seen.add(node.id)
            kept.append(node)
        self.nodes = kept

        kept_edges = []
        for edge in self.edges:
            if edge.source not in seen or edge.target not in seen:
                self._fix(f"Removed orphaned edge: {edge.id or f'{edge.source}->{edge.target}'}")
                continue
            kept_edges.append(edge)
        self.edges = kept_edges

    # ------------------------------------------------------------------
    # Step 2: schema fill and type replacement
    # ------------------------------------------------------------------

    def _fill_from_schema(self) -> None:
        updated_nodes = []
        for node in self.nodes:
            schema = get_schema(node.type)
            if schema is None:
                alternative = alternative_type(node.type)
                if alternative is None:
                    updated_nodes.append(node)
                    continue
                alt_schema = get_schema(alternative)
                original_type = node.type
                node = node.model_copy(
                    update={
                        "type": alternative,
                        "category": node_category_for(alt_schema.category),
                        "config": {**default_config_for(alternative), **node.config},
                    }
                )
                self._fix(f'Replaced unsupported node type "{original_type}" with "{alternative}"')
                updated_nodes.append(node)
                continue

            schema_category = node_category_for(schema.category)
            if node.is_trigger and schema_category != NodeCategory.TRIGGER:
                self._fix(f'Reset category of "{node.name}" from trigger to {schema_category}')
                node = node.model_copy(update={"category": schema_category})

            updates: dict[str, Any] = {}
            if node.category is None:
                updates["category"] = node_category_for(schema.category)
            if not node.config and schema.default_config:
                updates["config"] = default_config_for(node.type)
            if updates:
                self._fix(f'Filled missing {"/".join(updates)} on "{node.name}"')
                node = node.model_copy(update=updates)
            updated_nodes.append(node)
        self.nodes = updated_nodes

    # ------------------------------------------------------------------
    # Step 3: exactly one trigger
    # ------------------------------------------------------------------

    def _ensure_single_trigger(self) -> None:
        triggers = [n for n in self.nodes if n.is_trigger]
        if not triggers:
            self.nodes.insert(0, self._new_node("manual_trigger"))
            self._fix("Added missing trigger node")
        elif len(triggers) > 1:
            extra = {t.id for t in triggers[1:]}
            self.nodes = [n for n in self.nodes if n.id not in extra]
            self.edges = [e for e in self.edges if e.source not in extra and e.target not in extra]
            self._fix(f"Removed {len(extra)} duplicate trigger node(s), kept first")

        trigger = self._trigger()
        into_trigger = [e for e in self.edges if e.target == trigger.id]
        for edge in into_trigger:
            self._fix(f'Removed edge {edge.id or edge.source} into trigger "{trigger.name}"')
        self._remove_edges(into_trigger)

    # ------------------------------------------------------------------
    # Step 4: at least one terminal node
    # ------------------------------------------------------------------

    def _ensure_terminal(self) -> None:
        if any(is_terminal(n.type, n.category) for n in self.nodes):
            return

        anchor = self._trigger()
        for node in reversed(self.nodes):
            if node.is_trigger or node.type in BRANCHING_TYPES | ERROR_HANDLING_TYPES:
                continue
            anchor = node
            break

        destination = self._new_node("log_output")
        self.nodes.append(destination)
        self._fix("Added missing destination node")
        self._connect(anchor.id, destination.id)
        self._fix(f'Connected destination node to "{anchor.name}"')

    # ------------------------------------------------------------------
    # Step 5: required properties
    # ------------------------------------------------------------------

    def _repair_required_properties(self) -> None:
        updated_nodes = []
        for node in self.nodes:
            schema = get_schema(node.type)
            if schema is None:
                updated_nodes.append(node)
                continue

            config = dict(node.config)
            repaired = []
            for key in schema.required_properties:
                current = config.get(key)
                if not is_empty_value(current):
                    continue
                default = schema.default_config.get(key)
                replacement = default if default is not None else placeholder_value(key)
                if key in config and current == replacement:
                    continue
                config[key] = replacement
                repaired.append(key)

            if repaired:
                self._fix(f'Fixed missing properties in "{node.name}": {", ".join(repaired)}')
                node = node.model_copy(update={"config": config})
            updated_nodes.append(node)
        self.nodes = updated_nodes

    # ------------------------------------------------------------------
    # Step 6: cycles and branch handles
    # ------------------------------------------------------------------

    def _break_cycles(self) -> None:
        """Depth-first from the trigger, then in node order; drop every back edge."""
        outgoing: dict[str, list[EdgeSpec]] = {n.id: [] for n in self.nodes}
        for edge in self.edges:
            outgoing[edge.source].append(edge)

        trigger = self._trigger()
        roots = [trigger.id] + [n.id for n in self.nodes if n.id != trigger.id]
        state: dict[str, int] = {}  # 1 = on stack, 2 = done
        back_edges: list[EdgeSpec] = []

        for root in roots:
            if root in state:
                continue
            state[root] = 1
            stack = [(root, iter(outgoing[root]))]
            while stack:
                node_id, edges = stack[-1]
                edge = next(edges, None)
                if edge is None:
                    state[node_id] = 2
                    stack.pop()
                    continue
                if state.get(edge.target) == 1:
                    back_edges.append(edge)
                elif edge.target not in state:
                    state[edge.target] = 1
                    stack.append((edge.target, iter(outgoing[edge.target])))

        for edge in back_edges:
            self._fix(f"Removed edge {edge.source} -> {edge.target} to break a cycle")
        self._remove_edges(back_edges)

    def _repair_branches(self) -> None:
        for node in list(self.nodes):
            if node.type == "if_else":
                self._repair_if_else(node)
            elif node.type == "switch":
                self._repair_switch(node)

    def _repair_if_else(self, node: NodeSpec) -> None:
        outgoing = [e for e in self.edges if e.source == node.id]
        taken: dict[str, EdgeSpec] = {}
        unlabelled: list[EdgeSpec] = []
        doomed: list[EdgeSpec] = []

        for edge in outgoing:
            if edge.source_handle in ("true", "false"):
                if edge.source_handle in taken:
                    doomed.append(edge)
                    self._fix(
                        f'Removed extra "{edge.source_handle}" edge {edge.id} from "{node.name}"'
                    )
                else:
                    taken[edge.source_handle] = edge
            else:
                unlabelled.append(edge)

        relabelled: dict[int, EdgeSpec] = {}
        for edge in unlabelled:
            free = next((h for h in ("true", "false") if h not in taken), None)
            if free is None:
                doomed.append(edge)
                self._fix(f'Removed unlabelled edge {edge.id} from "{node.name}"')
                continue
            labelled = edge.model_copy(update={"source_handle": free})
            relabelled[id(edge)] = labelled
            taken[free] = labelled
            self._fix(f'Labelled edge {edge.id} as the "{free}" branch of "{node.name}"')

        self.edges = [relabelled.get(id(e), e) for e in self.edges]
        self._remove_edges(doomed)

        if "true" in taken and "false" in taken and taken["true"].target == taken["false"].target:
            self._remove_edges([taken.pop("false")])
            self._fix(f'Removed "false" edge of "{node.name}" that duplicated its "true" edge')

        if "true" not in taken:
            branch = self._new_node("log_output")
            self.nodes.append(branch)
            self._connect(node.id, branch.id, handle="true")
            self._fix(f'Added "true" branch to "{node.name}"')

    def _repair_switch(self, node: NodeSpec) -> None:
        outgoing = [e for e in self.edges if e.source == node.id]
        cases = switch_cases(node.config)
        known = set(switch_case_values(node.config))
        added = []
        doomed = []

        for edge in outgoing:
            if edge.source_handle is None:
                doomed.append(edge)
                self._fix(f'Removed edge {edge.id} without a case from "{node.name}"')
            elif edge.source_handle not in known:
                known.add(edge.source_handle)
                cases.append({"value": edge.source_handle, "label": edge.source_handle})
                added.append(edge.source_handle)

        self._remove_edges(doomed)
        if added:
            self._replace_node(node.model_copy(update={"config": {**node.config, "cases": cases}}))
            self._fix(f'Added case(s) {", ".join(added)} to "{node.name}"')

    # ------------------------------------------------------------------
    # Step 7: connectivity
    # ------------------------------------------------------------------

    def _connect_isolated(self) -> None:
        trigger = self._trigger()
        targets = {e.target for e in self.edges}
        isolated = [
            n
            for n in self.nodes
            if not n.is_trigger and n.type not in ERROR_HANDLING_TYPES and n.id not in targets
        ]
        if not isolated:
            return

        anchor = trigger
        for node in isolated:
            self._connect(anchor.id, node.id)
            if node.type not in BRANCHING_TYPES:
                anchor = node
        self._fix(f"Connected {len(isolated)} isolated node(s)")

    # ------------------------------------------------------------------
    # Step 8: safety net
    # ------------------------------------------------------------------

    def _ensure_error_handler(self) -> None:
        if any(n.type in ERROR_HANDLING_TYPES for n in self.nodes):
            return
        has_work = any(
            not n.is_trigger and not is_terminal(n.type, n.category) for n in self.nodes
        )
        if has_work:
            self.nodes.append(self._new_node("error_handler"))
            self._fix("Added error handler node")
