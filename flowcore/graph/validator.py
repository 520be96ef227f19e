"""
Structural validation for workflow graphs.

``validate`` is pure: it never mutates the graph and returns the same
findings, in the same order, for the same input. Findings are either
errors (the graph cannot run) or warnings (it can, but something looks
wrong). Rules run in a fixed order:

1. duplicate node ids, malformed nodes, dangling edges
2. exactly one trigger
3. at least one terminal node
4. every non-trigger node has an incoming edge (warning)
5. if_else handles
6. switch handles
7. required config properties (warning)
8. an error-handling node exists (warning)
9. no cycles
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum

from flowcore.errors import StructuralError
from flowcore.graph.edge import GraphSpec
from flowcore.graph.node import NodeSpec
from flowcore.graph.schema_registry import (
    ERROR_HANDLING_TYPES,
    get_schema,
    is_terminal,
    switch_case_values,
)

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Finding:
    """One validation finding."""

    severity: Severity
    code: str
    message: str
    node_id: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        return f"[{self.severity}] {self.code}: {self.message}"


@dataclass
class ValidationReport:
    """Findings for one graph, split by severity."""

    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.is_error]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if not f.is_error]

    @property
    def is_valid(self) -> bool:
        """True when there are no error-severity findings."""
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise StructuralError listing every error finding."""
        if self.errors:
            summary = "; ".join(f.message for f in self.errors)
            raise StructuralError(f"Graph is invalid: {summary}", findings=self.errors)


def _error(code: str, message: str, node_id: str | None = None) -> Finding:
    return Finding(Severity.ERROR, code, message, node_id)


def _warning(code: str, message: str, node_id: str | None = None) -> Finding:
    return Finding(Severity.WARNING, code, message, node_id)


def is_empty_value(value: object) -> bool:
    """Missing-property test shared with the healer."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def missing_required_properties(node: NodeSpec) -> list[str]:
    schema = get_schema(node.type)
    if schema is None:
        return []
    return [key for key in schema.required_properties if is_empty_value(node.config.get(key))]


def validate(graph: GraphSpec) -> list[Finding]:
    """
    Check a graph against every structural rule.

    Args:
        graph: The graph to check (not modified)

    Returns:
        Findings in rule order, errors and warnings interleaved
    """
    findings: list[Finding] = []

    findings.extend(_check_identity(graph))
    findings.extend(_check_trigger_count(graph))
    findings.extend(_check_terminal(graph))
    findings.extend(_check_connectivity(graph))
    for node in graph.nodes:
        if node.type == "if_else":
            findings.extend(_check_if_else(graph, node))
        elif node.type == "switch":
            findings.extend(_check_switch(graph, node))
    findings.extend(_check_required_properties(graph))
    findings.extend(_check_error_handling(graph))
    findings.extend(_check_cycles(graph))

    return findings


def validate_graph(graph: GraphSpec) -> ValidationReport:
    """``validate`` wrapped in a ValidationReport."""
    report = ValidationReport(findings=validate(graph))
    if report.errors:
        logger.debug(
            "Graph '%s' has %d error(s), %d warning(s)",
            graph.id,
            len(report.errors),
            len(report.warnings),
        )
    return report


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _check_identity(graph: GraphSpec) -> list[Finding]:
    findings = []
    for index, node in enumerate(graph.nodes):
        if not node.id or not node.type:
            findings.append(
                _error(
                    "malformed_node",
                    f"Node #{index} is missing its {'id' if not node.id else 'type'}",
                    node.id or None,
                )
            )

    counts = Counter(n.id for n in graph.nodes if n.id)
    for node_id, count in counts.items():
        if count > 1:
            findings.append(
                _error("duplicate_node_id", f"Node id '{node_id}' is used {count} times", node_id)
            )

    ids = graph.node_ids()
    for edge in graph.edges:
        if edge.source not in ids:
            findings.append(
                _error("dangling_edge", f"Edge '{edge.id}' references missing source '{edge.source}'")
            )
        if edge.target not in ids:
            findings.append(
                _error("dangling_edge", f"Edge '{edge.id}' references missing target '{edge.target}'")
            )
    return findings


def _check_trigger_count(graph: GraphSpec) -> list[Finding]:
    triggers = graph.trigger_nodes()
    if len(triggers) == 1:
        return []
    if not triggers:
        return [_error("trigger_count", "Graph has no trigger node")]
    names = ", ".join(t.name for t in triggers)
    return [_error("trigger_count", f"Graph has {len(triggers)} trigger nodes ({names}); expected 1")]


def _check_terminal(graph: GraphSpec) -> list[Finding]:
    if any(is_terminal(n.type, n.category) for n in graph.nodes):
        return []
    return [_error("missing_terminal", "Graph has no output/destination node")]


def _check_connectivity(graph: GraphSpec) -> list[Finding]:
    targets = {e.target for e in graph.edges}
    findings = []
    for node in graph.nodes:
        if node.is_trigger or node.type in ERROR_HANDLING_TYPES:
            continue
        if node.id not in targets:
            findings.append(
                _warning("isolated_node", f"Node '{node.name}' has no incoming edge", node.id)
            )
    return findings


def _check_if_else(graph: GraphSpec, node: NodeSpec) -> list[Finding]:
    findings = []
    outgoing = graph.get_outgoing_edges(node.id)
    handles = Counter(e.source_handle for e in outgoing)

    if handles["true"] == 0:
        findings.append(
            _error("if_else_missing_true", f"If/Else '{node.name}' has no 'true' branch", node.id)
        )
    if handles["false"] == 0:
        findings.append(
            _warning("if_else_missing_false", f"If/Else '{node.name}' has no 'false' branch", node.id)
        )

    for handle in ("true", "false"):
        if handles[handle] > 1:
            findings.append(
                _error(
                    "if_else_handles",
                    f"If/Else '{node.name}' has {handles[handle]} '{handle}' edges",
                    node.id,
                )
            )

    invalid = [h for h in handles if h not in ("true", "false")]
    if invalid:
        findings.append(
            _error(
                "if_else_handles",
                f"If/Else '{node.name}' has edges without a true/false handle",
                node.id,
            )
        )

    true_targets = {e.target for e in outgoing if e.source_handle == "true"}
    false_targets = {e.target for e in outgoing if e.source_handle == "false"}
    if true_targets & false_targets:
        findings.append(
            _error(
                "if_else_handles",
                f"If/Else '{node.name}' sends both branches to the same node",
                node.id,
            )
        )
    return findings


def _check_switch(graph: GraphSpec, node: NodeSpec) -> list[Finding]:
    cases = set(switch_case_values(node.config))
    findings = []
    for edge in graph.get_outgoing_edges(node.id):
        if edge.source_handle not in cases:
            findings.append(
                _error(
                    "switch_unknown_case",
                    f"Switch '{node.name}' edge '{edge.id}' uses handle "
                    f"{edge.source_handle!r} which is not a configured case",
                    node.id,
                )
            )
    return findings


def _check_required_properties(graph: GraphSpec) -> list[Finding]:
    findings = []
    for node in graph.nodes:
        for key in missing_required_properties(node):
            findings.append(
                _warning(
                    "missing_property",
                    f"Node '{node.name}' is missing required property '{key}'",
                    node.id,
                )
            )
    return findings


def _check_error_handling(graph: GraphSpec) -> list[Finding]:
    if any(n.type in ERROR_HANDLING_TYPES for n in graph.nodes):
        return []
    return [_warning("no_error_handler", "Graph has no error handling node")]


def _check_cycles(graph: GraphSpec) -> list[Finding]:
    cycle_nodes = graph.find_cycle_nodes()
    if not cycle_nodes:
        return []
    return [
        _error(
            "cycle",
            f"Graph contains a cycle through nodes: {', '.join(cycle_nodes)}",
            cycle_nodes[0],
        )
    ]
