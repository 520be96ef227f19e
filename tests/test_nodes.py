"""Tests for the built-in node executors."""

import json

import httpx
import pytest

from flowcore.credentials import StaticCredentials
from flowcore.errors import ConfigurationError, ExecutionError
from flowcore.graph.node import NodeSpec, RuntimeContext
from flowcore.memory import InMemoryConversationMemory
from flowcore.nodes import NodeRegistry, builtin_executors
from flowcore.nodes import logic as logic_module
from flowcore.nodes.http import HttpRequestNode
from flowcore.nodes.logic import ErrorHandlerNode


def make_ctx(node_type: str, registry: NodeRegistry | None = None, **kwargs) -> RuntimeContext:
    return RuntimeContext(
        node=NodeSpec(id=f"{node_type}_1", type=node_type, label=node_type.title()),
        registry=registry or NodeRegistry.build(builtin_executors()),
        credentials=StaticCredentials(),
        **kwargs,
    )


async def run(node_type: str, config: dict, input, **ctx_kwargs):
    registry = ctx_kwargs.pop("registry", None) or NodeRegistry.build(builtin_executors())
    ctx = make_ctx(node_type, registry=registry, **ctx_kwargs)
    return await registry[node_type].execute(config, input, ctx)


class TestRegistry:
    def test_build_adapts_functions_and_rejects_others(self):
        async def custom(config, input, ctx):
            return "ok"

        registry = NodeRegistry.build({"custom": custom})
        assert "custom" in registry
        assert len(registry) == 1

        with pytest.raises(TypeError):
            NodeRegistry.build({"bad": lambda c, i, x: None})

    def test_registry_is_read_only(self):
        registry = NodeRegistry.build(builtin_executors())
        with pytest.raises(TypeError):
            registry["x"] = None  # type: ignore[index]

    def test_llm_nodes_need_a_provider(self):
        assert "openai_gpt" not in builtin_executors()
        assert "javascript" not in builtin_executors()


class TestTriggers:
    @pytest.mark.asyncio
    async def test_manual_trigger_tags_input(self):
        assert await run("manual_trigger", {}, {"a": 1}) == {"trigger": "manual", "a": 1}

    @pytest.mark.asyncio
    async def test_triggers_keep_lists_and_wrap_bare_values(self):
        assert await run("webhook", {}, ["a", "b"]) == ["a", "b"]
        assert await run("polling_trigger", {}, 3) == {"trigger": "polling", "value": 3}
        assert (await run("schedule", {}, "tick"))["value"] == "tick"
        assert await run("manual_trigger", {}, None) == {"trigger": "manual"}

    @pytest.mark.asyncio
    async def test_schedule_time_becomes_cron(self):
        output = await run("schedule", {"time": "07:30"}, {})
        assert output["cron"] == "30 07 * * *"

    @pytest.mark.asyncio
    async def test_chat_trigger_requires_message(self):
        with pytest.raises(ExecutionError, match="message is required"):
            await run("chat_trigger", {}, {"session_id": "s1"})


class TestBranching:
    @pytest.mark.asyncio
    async def test_if_else_reports_condition_and_input(self):
        output = await run("if_else", {"condition": "{{input.n}} >= 2"}, {"n": 2})
        assert output == {"condition": True, "input": {"n": 2}}

    @pytest.mark.asyncio
    async def test_switch_matches_case(self):
        output = await run(
            "switch",
            {"expression": "{{input.kind}}", "cases": '[{"value": "x", "label": "Ex"}]'},
            {"kind": "x"},
        )
        assert output == {"matchedCase": "x", "caseLabel": "Ex", "input": {"kind": "x"}}

    @pytest.mark.asyncio
    async def test_switch_without_match(self):
        output = await run("switch", {"expression": "{{input.kind}}", "cases": []}, {"kind": "y"})
        assert output["matchedCase"] is None

    @pytest.mark.asyncio
    async def test_switch_requires_expression(self):
        with pytest.raises(ExecutionError, match="expression is required"):
            await run("switch", {"cases": []}, {})

    @pytest.mark.asyncio
    async def test_filter_binds_item(self):
        output = await run(
            "filter",
            {"array": "rows", "condition": "item.score > 1"},
            {"rows": [{"score": 1}, {"score": 3}]},
        )
        assert output == [{"score": 3}]


class TestTransforms:
    @pytest.mark.asyncio
    async def test_set_variable(self):
        output = await run("set_variable", {"name": "greeting", "value": "hi {{input.who}}"}, {"who": "bo"})
        assert output == {"greeting": "hi bo", "who": "bo"}

    @pytest.mark.asyncio
    async def test_set_fields_from_json(self):
        output = await run("set", {"fields": '{"count": "3", "name": "{{input.n}}"}'}, {"n": "x"})
        assert output == {"count": 3, "name": "x", "n": "x"}

    @pytest.mark.asyncio
    async def test_rename_keys(self):
        output = await run("rename_keys", {"mappings": {"a": "b"}}, {"a": 1, "c": 2})
        assert output == {"b": 1, "c": 2}

    @pytest.mark.asyncio
    async def test_text_formatter_flattens_fan_in(self):
        output = await run(
            "text_formatter",
            {"template": "{{first}} {{last}}"},
            {"n1": {"first": "Ada"}, "n2": {"last": "Lovelace"}},
        )
        assert output == "Ada Lovelace"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "mode,expected",
        [
            ("merge", {"a": 1, "b": 2}),
            ("append", [{"a": 1}, {"b": 2}]),
            ("wait_all", {"n1": {"a": 1}, "n2": {"b": 2}}),
        ],
    )
    async def test_merge_modes(self, mode, expected):
        output = await run("merge", {"mode": mode}, {"n1": {"a": 1}, "n2": {"b": 2}})
        assert output == expected

    @pytest.mark.asyncio
    async def test_split_items(self):
        output = await run("split_items", {"array": "tags", "delimiter": ";"}, {"tags": "a; b;"})
        assert output == {"items": ["a", "b"], "count": 2}


class TestWaitAndOutput:
    @pytest.mark.asyncio
    async def test_wait_is_capped(self, monkeypatch):
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        monkeypatch.setattr(logic_module.asyncio, "sleep", fake_sleep)
        output = await run("wait", {"duration": 60_000}, {"a": 1}, max_wait_ms=500)

        assert output == {"a": 1}
        assert slept == [0.5]

    @pytest.mark.asyncio
    async def test_log_output_defaults_to_whole_input(self):
        output = await run("log_output", {"message": ""}, {"a": 1})
        assert output == {"logged": '{"a": 1}', "level": "info", "input": {"a": 1}}

    @pytest.mark.asyncio
    async def test_stop_and_error_raises(self):
        with pytest.raises(ExecutionError, match="halt"):
            await run("stop_and_error", {"errorMessage": "halt {{input.missing}}"}, {})


class TestErrorHandler:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, monkeypatch):
        attempts = []
        slept = []

        async def flaky(config, input, ctx):
            attempts.append(ctx.node.id)
            if len(attempts) < 3:
                raise RuntimeError("not yet")
            return "ok"

        async def fake_sleep(seconds):
            slept.append(seconds)

        monkeypatch.setattr(logic_module.asyncio, "sleep", fake_sleep)
        registry = NodeRegistry.build({**builtin_executors(), "flaky": flaky})
        config = {"retries": 2, "retryDelay": 250, "wrapped": {"type": "flaky"}}

        output = await run("error_handler", config, {}, registry=registry)

        assert output == "ok"
        assert attempts == ["error_handler_1.wrapped"] * 3
        assert slept == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_fallback_after_exhausting_retries(self, monkeypatch):
        async def always_fails(config, input, ctx):
            raise RuntimeError("down")

        async def fake_sleep(seconds):
            pass

        monkeypatch.setattr(logic_module.asyncio, "sleep", fake_sleep)
        registry = NodeRegistry.build({**builtin_executors(), "down": always_fails})
        config = {
            "retries": 1,
            "retryDelay": 0,
            "fallbackValue": '{"ok": false}',
            "wrapped": {"type": "down"},
        }

        assert await run("error_handler", config, {}, registry=registry) == {"ok": False}

        del config["fallbackValue"]
        with pytest.raises(ExecutionError, match="down"):
            await run("error_handler", config, {}, registry=registry)

    @pytest.mark.asyncio
    async def test_without_child_passes_through(self):
        output = await ErrorHandlerNode().execute({"retries": 1}, {"a": 1}, make_ctx("error_handler"))
        assert output["a"] == 1
        assert output["_error_handler_config"]["retries"] == 1


class TestHttpRequest:
    @pytest.mark.asyncio
    async def test_get_parses_json(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 7})

        node = HttpRequestNode(transport=httpx.MockTransport(handler))
        output = await node.execute(
            {"url": "https://api.example.com/items/{{input.id}}", "headers": '{"X-Key": "k"}'},
            {"id": 7},
            make_ctx("http_request"),
        )

        assert output == {"id": 7}
        assert str(seen[0].url) == "https://api.example.com/items/7"
        assert seen[0].method == "GET"
        assert seen[0].headers["X-Key"] == "k"

    @pytest.mark.asyncio
    async def test_post_sends_input_as_body(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, text="created")

        node = HttpRequestNode(default_method="POST", transport=httpx.MockTransport(handler))
        output = await node.execute({"url": "https://hooks.example.com"}, {"a": 1}, make_ctx("http_post"))

        assert bodies == [{"a": 1}]
        assert output == {"text": "created", "status": 201}

    @pytest.mark.asyncio
    async def test_network_error_fails_node(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        node = HttpRequestNode(transport=httpx.MockTransport(handler))
        with pytest.raises(ExecutionError, match="failed"):
            await node.execute({"url": "https://down.example.com"}, {}, make_ctx("http_request"))

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        with pytest.raises(ExecutionError, match="invalid URL"):
            await HttpRequestNode().execute({"url": "ftp://x"}, {}, make_ctx("http_request"))

    @pytest.mark.asyncio
    async def test_credential_becomes_bearer_header(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        ctx = RuntimeContext(
            node=NodeSpec(id="http_1", type="http_request", label="Http"),
            registry=NodeRegistry.build(builtin_executors()),
            credentials=StaticCredentials({"api_token": "s3cret"}),
        )
        node = HttpRequestNode(transport=httpx.MockTransport(handler))
        await node.execute({"url": "https://api.example.com", "credential": "api_token"}, {}, ctx)

        assert seen[0].headers["Authorization"] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_missing_credential(self):
        node = HttpRequestNode(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        with pytest.raises(ConfigurationError, match="api_token"):
            await node.execute(
                {"url": "https://api.example.com", "credential": "api_token"},
                {},
                make_ctx("http_request"),
            )


class TestMemoryNode:
    @pytest.mark.asyncio
    async def test_store_then_retrieve(self):
        memory = InMemoryConversationMemory()
        await run("memory", {"operation": "store"}, {"session_id": "s", "message": "hi"}, memory=memory)
        output = await run("memory", {"operation": "retrieve"}, {"session_id": "s"}, memory=memory)

        assert output["count"] == 1
        assert output["history"][0]["content"] == "hi"
