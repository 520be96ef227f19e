"""
Run Store - file-backed persistence for run records and agent snapshots.

Layout under ``base_path``:

    runs/{run_id}.json                              one RunRecord per run
    agents/{session_id}/iteration_{NNNN}.json       one snapshot per agent pass
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from flowcore.schemas.run import AgentIterationSnapshot, RunRecord, RunStatus
from flowcore.utils.io import atomic_write

logger = logging.getLogger(__name__)


@runtime_checkable
class RunRecorder(Protocol):
    """Receives the run record once per run and agent snapshots once per pass."""

    async def record_run(self, record: RunRecord) -> None: ...

    async def record_snapshot(self, snapshot: AgentIterationSnapshot) -> None: ...


class FileRunStore:
    """
    Stores run records as JSON files.

    All file I/O happens in a worker thread so the event loop never blocks.
    """

    def __init__(self, base_path: Path):
        """
        Initialize run store.

        Args:
            base_path: Base directory (e.g., ~/.flowcore/runs)
        """
        self.base_path = Path(base_path)
        self.runs_dir = self.base_path / "runs"
        self.agents_dir = self.base_path / "agents"

    def get_run_path(self, run_id: str) -> Path:
        return self.runs_dir / f"{run_id}.json"

    def get_session_path(self, session_id: str) -> Path:
        return self.agents_dir / session_id

    async def record_run(self, record: RunRecord) -> None:
        """Atomically write a run record (temp file + rename)."""

        def _write():
            path = self.get_run_path(record.run_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            with atomic_write(path) as f:
                f.write(record.model_dump_json(indent=2))

        await asyncio.to_thread(_write)
        logger.debug(f"Wrote run record {record.run_id}")

    async def read_run(self, run_id: str) -> RunRecord | None:
        """Read a run record, or None if it does not exist."""

        def _read():
            path = self.get_run_path(run_id)
            if not path.exists():
                return None
            return RunRecord.model_validate_json(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def list_runs(
        self,
        graph_id: str | None = None,
        status: RunStatus | str | None = None,
        limit: int = 100,
    ) -> list[RunRecord]:
        """
        List run records, most recent first.

        Args:
            graph_id: Optional graph filter
            status: Optional status filter
            limit: Maximum number of records to return
        """

        def _scan():
            records = []
            if not self.runs_dir.exists():
                return records

            for path in self.runs_dir.glob("*.json"):
                try:
                    record = RunRecord.model_validate_json(path.read_text(encoding="utf-8"))
                except Exception as e:
                    logger.warning(f"Failed to load {path}: {e}")
                    continue
                if graph_id and record.graph_id != graph_id:
                    continue
                if status and record.status != status:
                    continue
                records.append(record)

            records.sort(key=lambda r: r.started_at, reverse=True)
            return records[:limit]

        return await asyncio.to_thread(_scan)

    async def record_snapshot(self, snapshot: AgentIterationSnapshot) -> None:
        """Write one agent iteration snapshot."""

        def _write():
            session_dir = self.get_session_path(snapshot.session_id or "default")
            session_dir.mkdir(parents=True, exist_ok=True)
            path = session_dir / f"iteration_{snapshot.iteration:04d}.json"
            with atomic_write(path) as f:
                f.write(snapshot.model_dump_json(indent=2))

        await asyncio.to_thread(_write)

    async def read_snapshots(self, session_id: str) -> list[AgentIterationSnapshot]:
        """All snapshots for a session, in iteration order."""

        def _read():
            session_dir = self.get_session_path(session_id)
            if not session_dir.exists():
                return []
            return [
                AgentIterationSnapshot.model_validate_json(p.read_text(encoding="utf-8"))
                for p in sorted(session_dir.glob("iteration_*.json"))
            ]

        return await asyncio.to_thread(_read)
