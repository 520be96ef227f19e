"""Tests for graph validation rules."""

import pytest

from flowcore.errors import StructuralError
from flowcore.graph.validator import Severity, validate, validate_graph

from .helpers import edge, graph, node


def codes(findings, severity=None):
    return [f.code for f in findings if severity is None or f.severity == severity]


def test_valid_graph_has_no_errors(branching_graph):
    report = validate_graph(branching_graph)

    assert report.is_valid
    assert codes(report.findings, Severity.ERROR) == []
    # No error handler is only a warning
    assert "no_error_handler" in codes(report.warnings)


def test_validate_is_repeatable(branching_graph):
    assert validate(branching_graph) == validate(branching_graph)


def test_validate_does_not_mutate_graph(branching_graph):
    before = branching_graph.model_dump()
    validate(branching_graph)
    assert branching_graph.model_dump() == before


def test_empty_graph_reports_trigger_and_terminal():
    findings = validate(graph([]))
    assert "trigger_count" in codes(findings, Severity.ERROR)
    assert "missing_terminal" in codes(findings, Severity.ERROR)


def test_multiple_triggers_is_an_error():
    spec = graph(
        [
            node("a", "manual_trigger", "trigger"),
            node("b", "webhook", "trigger", method="POST"),
            node("out", "log_output", "output", message="hi"),
        ],
        [edge("a", "out")],
    )
    findings = validate(spec)
    assert codes(findings, Severity.ERROR) == ["trigger_count"]


def test_malformed_and_duplicate_nodes():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("", "noop"),
            node("t", "noop"),
            node("out", "log_output", "output", message="m"),
        ],
        [edge("t", "out"), edge("t", "ghost")],
    )
    errors = codes(validate(spec), Severity.ERROR)
    assert "malformed_node" in errors
    assert "duplicate_node_id" in errors
    assert "dangling_edge" in errors


def test_isolated_node_is_a_warning_but_error_handler_is_exempt():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("lonely", "noop", "logic"),
            node("handler", "error_handler", "logic"),
            node("out", "log_output", "output", message="m"),
        ],
        [edge("t", "out")],
    )
    isolated = [f for f in validate(spec) if f.code == "isolated_node"]
    assert [f.node_id for f in isolated] == ["lonely"]
    assert isolated[0].severity == Severity.WARNING


def test_if_else_without_true_branch():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("check", "if_else", "logic", condition="true"),
            node("out", "log_output", "output", message="m"),
        ],
        [edge("t", "check"), edge("check", "out", "false")],
    )
    findings = validate(spec)
    assert "if_else_missing_true" in codes(findings, Severity.ERROR)
    assert "if_else_missing_false" not in codes(findings)


def test_if_else_missing_false_is_a_warning():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("check", "if_else", "logic", condition="true"),
            node("out", "log_output", "output", message="m"),
        ],
        [edge("t", "check"), edge("check", "out", "true")],
    )
    findings = validate(spec)
    assert "if_else_missing_false" in codes(findings, Severity.WARNING)
    assert not [f for f in findings if f.is_error]


@pytest.mark.parametrize(
    "edges",
    [
        # Unlabelled edge
        [edge("check", "a", "true"), edge("check", "b")],
        # Two true edges
        [edge("check", "a", "true"), edge("check", "b", "true")],
        # Both branches into the same node
        [edge("check", "a", "true"), edge("check", "a", "false")],
    ],
)
def test_if_else_handle_rules(edges):
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("check", "if_else", "logic", condition="true"),
            node("a", "log_output", "output", message="a"),
            node("b", "log_output", "output", message="b"),
        ],
        [edge("t", "check"), *edges],
    )
    assert "if_else_handles" in codes(validate(spec), Severity.ERROR)


def test_switch_edge_must_match_a_case():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node(
                "route",
                "switch",
                "logic",
                expression="{{input.kind}}",
                cases='[{"value": "a"}, {"value": "b"}]',
            ),
            node("a", "log_output", "output", message="a"),
            node("c", "log_output", "output", message="c"),
        ],
        [edge("t", "route"), edge("route", "a", "a"), edge("route", "c", "c")],
    )
    unknown = [f for f in validate(spec) if f.code == "switch_unknown_case"]
    assert len(unknown) == 1
    assert "'c'" in unknown[0].message


def test_missing_required_property_is_a_warning():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("call", "http_request", "data", method="GET"),
            node("out", "log_output", "output", message="m"),
        ],
        [edge("t", "call"), edge("call", "out")],
    )
    missing = [f for f in validate(spec) if f.code == "missing_property"]
    assert [(f.node_id, f.severity) for f in missing] == [("call", Severity.WARNING)]
    assert "'url'" in missing[0].message


def test_cycle_is_an_error():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("a", "noop", "logic"),
            node("b", "noop", "logic"),
            node("out", "log_output", "output", message="m"),
        ],
        [edge("t", "a"), edge("a", "b"), edge("b", "a"), edge("b", "out")],
    )
    assert "cycle" in codes(validate(spec), Severity.ERROR)


def test_raise_for_errors():
    report = validate_graph(graph([]))
    with pytest.raises(StructuralError) as exc_info:
        report.raise_for_errors()
    assert {f.code for f in exc_info.value.findings} == {"trigger_count", "missing_terminal"}
