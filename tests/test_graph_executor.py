"""
Tests for GraphExecutor execution paths.
Ordering, input resolution, branch pruning and failure handling.
"""

import asyncio

import pytest

from flowcore.credentials import StaticCredentials
from flowcore.errors import ExecutionError, StructuralError
from flowcore.graph.executor import GraphExecutor
from flowcore.nodes import NodeRegistry, builtin_executors
from flowcore.schemas.run import NodeStatus, RunStatus

from .helpers import edge, graph, node


# ---- Fake executors ----
async def echo(config, input, ctx):
    return {"from": ctx.node.id, "got": input}


async def constant(config, input, ctx):
    return config.get("value")


async def explode(config, input, ctx):
    raise RuntimeError("boom")


class RecordingRecorder:
    def __init__(self):
        self.runs = []

    async def record_run(self, record):
        self.runs.append(record)

    async def record_snapshot(self, snapshot):
        pass


def make_executor(**extra):
    registry = NodeRegistry.build(
        {**builtin_executors(), "echo": echo, "constant": constant, "explode": explode, **extra}
    )
    return GraphExecutor(registry=registry, credentials=StaticCredentials())


@pytest.mark.asyncio
async def test_branching_runs_only_the_taken_branch(branching_graph):
    result = await make_executor().execute(branching_graph, {"x": 5})

    assert result.status == RunStatus.SUCCESS
    assert result.path == ["start", "check", "big"]
    assert result.log_for("small").status == NodeStatus.SKIPPED
    assert result.final_output["logged"] == "big"


@pytest.mark.asyncio
async def test_false_branch(branching_graph):
    result = await make_executor().execute(branching_graph, {"x": 0})

    assert result.path == ["start", "check", "small"]
    assert result.log_for("big").status == NodeStatus.SKIPPED
    assert result.final_output["logged"] == "small"


@pytest.mark.asyncio
async def test_non_text_condition_takes_false_branch(branching_graph):
    nodes = [
        n.model_copy(update={"config": {"condition": True}}) if n.id == "check" else n
        for n in branching_graph.nodes
    ]
    spec = branching_graph.model_copy(update={"nodes": nodes})

    result = await make_executor().execute(spec, {"x": 5})

    assert result.success
    assert result.path == ["start", "check", "small"]
    assert result.log_for("big").status == NodeStatus.SKIPPED


@pytest.mark.asyncio
async def test_skipping_propagates_downstream():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("check", "if_else", "logic", condition="{{input.go}} === true"),
            node("yes", "echo"),
            node("no", "echo"),
            node("after_no", "echo"),
        ],
        [
            edge("t", "check"),
            edge("check", "yes", "true"),
            edge("check", "no", "false"),
            edge("no", "after_no"),
        ],
    )
    result = await make_executor().execute(spec, {"go": True})

    assert result.path == ["t", "check", "yes"]
    assert result.log_for("after_no").status == NodeStatus.SKIPPED
    # Branch targets receive the if_else's input, not its decision
    assert result.final_output["got"] == {"trigger": "manual", "go": True}


@pytest.mark.asyncio
async def test_switch_routes_by_case():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node(
                "route",
                "switch",
                "logic",
                expression="{{input.kind}}",
                cases=[{"value": "a", "label": "A"}, {"value": "b", "label": "B"}],
            ),
            node("on_a", "echo"),
            node("on_b", "echo"),
        ],
        [edge("t", "route"), edge("route", "on_a", "a"), edge("route", "on_b", "b")],
    )
    result = await make_executor().execute(spec, {"kind": "b"})

    assert result.path == ["t", "route", "on_b"]
    assert result.log_for("on_a").status == NodeStatus.SKIPPED


@pytest.mark.asyncio
async def test_fan_in_receives_outputs_keyed_by_source():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("a", "constant", value="out-a"),
            node("b", "constant", value="out-b"),
            node("join", "echo"),
            node("single", "echo"),
        ],
        [
            edge("t", "a"),
            edge("t", "b"),
            edge("a", "join"),
            edge("b", "join"),
            edge("a", "single"),
        ],
    )
    result = await make_executor().execute(spec, {})

    assert result.log_for("join").output["got"] == {"a": "out-a", "b": "out-b"}
    assert result.log_for("single").output["got"] == "out-a"


@pytest.mark.asyncio
async def test_nodes_without_incoming_edges_get_trigger_input():
    spec = graph([node("t", "manual_trigger", "trigger"), node("loose", "echo")])
    result = await make_executor().execute(spec, {"k": 1})

    assert result.log_for("loose").output["got"] == {"k": 1}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload,expected",
    [
        ([1, 2, 3], [1, 2, 3]),
        (7, {"trigger": "manual", "value": 7}),
        ("hello", {"trigger": "manual", "value": "hello"}),
    ],
)
async def test_non_object_trigger_payload_reaches_downstream(payload, expected):
    spec = graph(
        [node("t", "manual_trigger", "trigger"), node("out", "log_output", "output", message="")],
        [edge("t", "out")],
    )
    result = await make_executor().execute(spec, payload)

    assert result.success
    assert result.log_for("out").input == expected
    assert result.final_output["input"] == expected


@pytest.mark.asyncio
async def test_unwired_error_handler_is_skipped():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("guard", "error_handler", "logic"),
            node("out", "log_output", "output", message="done"),
        ],
        [edge("t", "out")],
    )
    result = await make_executor().execute(spec, {})

    assert result.success
    assert result.log_for("guard").status == NodeStatus.SKIPPED
    assert "guard" not in result.path


@pytest.mark.asyncio
async def test_failure_stops_the_run():
    spec = graph(
        [
            node("t", "manual_trigger", "trigger"),
            node("first", "constant", value="kept"),
            node("bad", "explode"),
            node("never", "echo"),
        ],
        [edge("t", "first"), edge("first", "bad"), edge("bad", "never")],
    )
    result = await make_executor().execute(spec, {})

    assert result.status == RunStatus.FAILED
    assert result.failed_node_id == "bad"
    assert "boom" in result.error
    assert result.path == ["t", "first", "bad"]
    assert result.log_for("bad").status == NodeStatus.FAILED
    assert result.log_for("never") is None
    assert result.final_output == "kept"


@pytest.mark.asyncio
async def test_missing_executor_names_the_type():
    spec = graph([node("t", "manual_trigger", "trigger"), node("x", "slack_message")], [edge("t", "x")])
    result = await make_executor().execute(spec, {})

    assert result.status == RunStatus.FAILED
    assert result.failed_node_id == "x"
    assert "slack_message" in result.error


@pytest.mark.asyncio
async def test_cycle_fails_before_dispatch():
    calls = []

    async def tracking(config, input, ctx):
        calls.append(ctx.node.id)
        return input

    spec = graph(
        [node("t", "tracking"), node("a", "tracking"), node("b", "tracking")],
        [edge("t", "a"), edge("a", "b"), edge("b", "a")],
    )
    with pytest.raises(StructuralError):
        await make_executor(tracking=tracking).execute(spec, {})
    assert calls == []


@pytest.mark.asyncio
async def test_duplicate_ids_fail_before_dispatch():
    spec = graph([node("t", "manual_trigger", "trigger"), node("t", "echo")])
    with pytest.raises(StructuralError, match="Duplicate"):
        await make_executor().execute(spec, {})


@pytest.mark.asyncio
async def test_final_output_falls_back_to_trigger_input():
    async def nothing(config, input, ctx):
        return None

    spec = graph([node("only", "nothing")])
    result = await make_executor(nothing=nothing).execute(spec, {"seed": 1})

    assert result.final_output == {"seed": 1}


@pytest.mark.asyncio
async def test_run_record_is_handed_to_recorder(branching_graph):
    recorder = RecordingRecorder()
    executor = make_executor()
    executor.recorder = recorder

    result = await executor.execute(branching_graph, {"x": 5}, run_id="run-1")

    assert len(recorder.runs) == 1
    record = recorder.runs[0]
    assert record.run_id == "run-1"
    assert record.graph_id == "g1"
    assert record.status == RunStatus.SUCCESS
    assert record.nodes_executed == result.path


@pytest.mark.asyncio
async def test_recorder_failure_does_not_fail_the_run(branching_graph):
    class BrokenRecorder(RecordingRecorder):
        async def record_run(self, record):
            raise OSError("disk full")

    executor = make_executor()
    executor.recorder = BrokenRecorder()

    result = await executor.execute(branching_graph, {"x": 5})
    assert result.success


@pytest.mark.asyncio
async def test_execute_node_wraps_errors():
    spec = graph([node("bad", "explode")])
    with pytest.raises(ExecutionError) as exc_info:
        await make_executor().execute_node(spec.nodes[0], {})
    assert exc_info.value.node_id == "bad"


@pytest.mark.asyncio
async def test_concurrent_runs_do_not_share_state(branching_graph):
    executor = make_executor()
    big, small = await asyncio.gather(
        executor.execute(branching_graph, {"x": 5}),
        executor.execute(branching_graph, {"x": 0}),
    )
    assert big.final_output["logged"] == "big"
    assert small.final_output["logged"] == "small"
    assert big.run_id != small.run_id
