"""
Conversation memory keyed by session id.

The agent loop appends every reasoning exchange and hands the provider only
the most recent turns, so prompt size stays bounded however long a session
runs. AI node executors reach the same store through ``ctx.memory``.
"""

import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ConversationMemory(Protocol):
    async def get_history(self, session_id: str, max_turns: int) -> list[dict[str, Any]]:
        """The last ``max_turns`` messages of a session, oldest first."""
        ...

    async def append(self, session_id: str, role: str, content: str) -> None: ...


def _message(role: str, content: str) -> dict[str, Any]:
    return {"role": role, "content": content, "timestamp": datetime.now().isoformat()}


def _tail(messages: list[dict[str, Any]], max_turns: int) -> list[dict[str, Any]]:
    if max_turns <= 0:
        return []
    return list(messages[-max_turns:])


class InMemoryConversationMemory:
    """Process-local memory; optionally caps how many messages each session keeps."""

    def __init__(self, max_stored: int | None = None):
        self._sessions: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._max_stored = max_stored

    async def get_history(self, session_id: str, max_turns: int) -> list[dict[str, Any]]:
        return _tail(self._sessions.get(session_id, []), max_turns)

    async def append(self, session_id: str, role: str, content: str) -> None:
        messages = self._sessions[session_id]
        messages.append(_message(role, content))
        if self._max_stored is not None and len(messages) > self._max_stored:
            del messages[: len(messages) - self._max_stored]

    def clear(self, session_id: str | None = None) -> None:
        if session_id is None:
            self._sessions.clear()
        else:
            self._sessions.pop(session_id, None)


class FileConversationMemory:
    """
    One JSONL file per session under ``base_path``.

        {base_path}/{session_id}.jsonl
    """

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def get_session_path(self, session_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in session_id)
        return self.base_path / f"{safe}.jsonl"

    async def get_history(self, session_id: str, max_turns: int) -> list[dict[str, Any]]:
        def _read():
            path = self.get_session_path(session_id)
            if not path.exists():
                return []
            messages = []
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        messages.append(json.loads(line))
                    except json.JSONDecodeError:
                        logger.warning(f"Skipping corrupt memory line in {path}")
            return _tail(messages, max_turns)

        return await asyncio.to_thread(_read)

    async def append(self, session_id: str, role: str, content: str) -> None:
        def _append():
            path = self.get_session_path(session_id)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(_message(role, content)) + "\n")

        await asyncio.to_thread(_append)
