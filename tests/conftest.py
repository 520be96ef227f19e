"""Shared fixtures."""

import pytest

from flowcore.graph.edge import GraphSpec
from flowcore.observability.logging import clear_trace_context

from .helpers import edge, graph, node


@pytest.fixture
def branching_graph() -> GraphSpec:
    """trigger -> if_else(x > 1) -true-> big / -false-> small"""
    return graph(
        [
            node("start", "manual_trigger", "trigger"),
            node("check", "if_else", "logic", condition="{{input.x}} > 1"),
            node("big", "log_output", "output", message="big"),
            node("small", "log_output", "output", message="small"),
        ],
        [
            edge("start", "check"),
            edge("check", "big", "true"),
            edge("check", "small", "false"),
        ],
    )


@pytest.fixture(autouse=True)
def _reset_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()
