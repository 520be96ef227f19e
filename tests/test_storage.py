"""Tests for FileRunStore and conversation memory backends."""

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from flowcore.memory import FileConversationMemory, InMemoryConversationMemory
from flowcore.schemas.run import AgentIterationSnapshot, RunRecord, RunStatus
from flowcore.storage import FileRunStore
from flowcore.utils.io import atomic_write


def create_test_record(
    run_id: str = "run_1",
    graph_id: str = "graph_a",
    status: RunStatus = RunStatus.SUCCESS,
    started_at: datetime | None = None,
) -> RunRecord:
    return RunRecord(
        run_id=run_id,
        graph_id=graph_id,
        status=status,
        final_output={"ok": True},
        started_at=started_at or datetime.now(),
    )


class TestFileRunStore:
    @pytest.mark.asyncio
    async def test_record_and_read_run(self, tmp_path: Path):
        store = FileRunStore(tmp_path)
        await store.record_run(create_test_record())

        path = tmp_path / "runs" / "run_1.json"
        assert path.exists()
        assert json.loads(path.read_text())["final_output"] == {"ok": True}

        loaded = await store.read_run("run_1")
        assert loaded.graph_id == "graph_a"
        assert loaded.status == RunStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_read_missing_run(self, tmp_path: Path):
        assert await FileRunStore(tmp_path).read_run("nope") is None

    @pytest.mark.asyncio
    async def test_list_runs_filters_and_orders(self, tmp_path: Path):
        store = FileRunStore(tmp_path)
        now = datetime.now()
        await store.record_run(create_test_record("old", started_at=now - timedelta(minutes=5)))
        await store.record_run(create_test_record("new", started_at=now))
        await store.record_run(create_test_record("other", graph_id="graph_b"))
        await store.record_run(create_test_record("bad", status=RunStatus.FAILED))
        (tmp_path / "runs" / "corrupt.json").write_text("{not json")

        runs = await store.list_runs(graph_id="graph_a", status=RunStatus.SUCCESS)
        assert [r.run_id for r in runs] == ["new", "old"]

        assert [r.run_id for r in await store.list_runs(status="failed")] == ["bad"]
        assert len(await store.list_runs(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_snapshots_round_trip_in_order(self, tmp_path: Path):
        store = FileRunStore(tmp_path)
        for iteration in (2, 1):
            await store.record_snapshot(
                AgentIterationSnapshot(session_id="s1", iteration=iteration, state={"i": iteration})
            )

        snapshots = await store.read_snapshots("s1")
        assert [s.iteration for s in snapshots] == [1, 2]
        assert (tmp_path / "agents" / "s1" / "iteration_0001.json").exists()
        assert await store.read_snapshots("unknown") == []


def test_atomic_write_leaves_no_temp_files(tmp_path: Path):
    target = tmp_path / "out.json"
    with atomic_write(target) as f:
        f.write("{}")

    assert target.read_text() == "{}"
    assert [p.name for p in tmp_path.iterdir()] == ["out.json"]


def test_atomic_write_keeps_original_on_error(tmp_path: Path):
    target = tmp_path / "out.json"
    target.write_text("original")

    with pytest.raises(RuntimeError):
        with atomic_write(target) as f:
            f.write("partial")
            raise RuntimeError("crash")

    assert target.read_text() == "original"


class TestConversationMemory:
    @pytest.mark.asyncio
    async def test_in_memory_returns_last_turns(self):
        memory = InMemoryConversationMemory()
        for i in range(5):
            await memory.append("s", "user", f"m{i}")

        history = await memory.get_history("s", 2)
        assert [m["content"] for m in history] == ["m3", "m4"]
        assert await memory.get_history("s", 0) == []
        assert await memory.get_history("other", 5) == []

    @pytest.mark.asyncio
    async def test_in_memory_max_stored(self):
        memory = InMemoryConversationMemory(max_stored=3)
        for i in range(5):
            await memory.append("s", "assistant", f"m{i}")

        assert [m["content"] for m in await memory.get_history("s", 10)] == ["m2", "m3", "m4"]
        memory.clear("s")
        assert await memory.get_history("s", 10) == []

    @pytest.mark.asyncio
    async def test_file_memory_persists_jsonl(self, tmp_path: Path):
        memory = FileConversationMemory(tmp_path)
        await memory.append("chat/1", "user", "hello")
        await memory.append("chat/1", "assistant", "hi")

        reopened = FileConversationMemory(tmp_path)
        history = await reopened.get_history("chat/1", 10)
        assert [(m["role"], m["content"]) for m in history] == [
            ("user", "hello"),
            ("assistant", "hi"),
        ]
        assert (tmp_path / "chat_1.jsonl").exists()
