"""Shared flowcore configuration.

Centralises reading of ~/.flowcore/configuration.json so that the executor,
the agent loop and the CLI share one implementation.

Example configuration.json:

    {
      "runtime": {"default_timeout": 30, "max_wait_ms": 10000},
      "agent": {"max_iterations": 10, "memory_max_turns": 10},
      "logging": {"level": "INFO", "format": "auto"},
      "storage": {"runs_path": "~/.flowcore/runs"}
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MEMORY_MAX_TURNS = 10
DEFAULT_MAX_WAIT_MS = 10_000

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

FLOWCORE_CONFIG_FILE = Path.home() / ".flowcore" / "configuration.json"


def get_config_path() -> Path:
    """Return the configuration file path, honouring FLOWCORE_CONFIG."""
    override = os.environ.get("FLOWCORE_CONFIG")
    return Path(override).expanduser() if override else FLOWCORE_CONFIG_FILE


def get_flowcore_config() -> dict[str, Any]:
    """Load configuration.json, returning {} when absent or unreadable."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def _section(name: str) -> dict[str, Any]:
    section = get_flowcore_config().get(name, {})
    return section if isinstance(section, dict) else {}


def get_default_timeout() -> float:
    """Per-call timeout (seconds) handed to node executors."""
    env = os.environ.get("FLOWCORE_DEFAULT_TIMEOUT")
    if env:
        try:
            return float(env)
        except ValueError:
            pass
    return float(_section("runtime").get("default_timeout", DEFAULT_TIMEOUT_SECONDS))


def get_max_wait_ms() -> int:
    """Upper bound for a single ``wait`` node."""
    return int(_section("runtime").get("max_wait_ms", DEFAULT_MAX_WAIT_MS))


def get_agent_max_iterations() -> int:
    return int(_section("agent").get("max_iterations", DEFAULT_MAX_ITERATIONS))


def get_memory_max_turns() -> int:
    return int(_section("agent").get("memory_max_turns", DEFAULT_MEMORY_MAX_TURNS))


def get_log_level() -> str:
    return os.environ.get("FLOWCORE_LOG_LEVEL") or _section("logging").get("level", "INFO")


def get_log_format() -> str:
    return _section("logging").get("format", "auto")


def get_runs_path() -> Path:
    raw = _section("storage").get("runs_path", "~/.flowcore/runs")
    return Path(raw).expanduser()


# ---------------------------------------------------------------------------
# RuntimeConfig
# ---------------------------------------------------------------------------


@dataclass
class RuntimeConfig:
    """Runtime configuration loaded from ~/.flowcore/configuration.json."""

    default_timeout: float = field(default_factory=get_default_timeout)
    max_wait_ms: int = field(default_factory=get_max_wait_ms)
    agent_max_iterations: int = field(default_factory=get_agent_max_iterations)
    memory_max_turns: int = field(default_factory=get_memory_max_turns)
    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
    runs_path: Path = field(default_factory=get_runs_path)
