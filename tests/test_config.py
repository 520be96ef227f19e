"""Tests for configuration, credentials and logging setup."""

import json
import logging
from pathlib import Path

import pytest

from flowcore.config import RuntimeConfig, get_flowcore_config
from flowcore.credentials import EnvCredentials, StaticCredentials
from flowcore.errors import ConfigurationError
from flowcore.observability import get_trace_context, set_trace_context
from flowcore.observability.logging import HumanReadableFormatter, StructuredFormatter


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "configuration.json"
    monkeypatch.setenv("FLOWCORE_CONFIG", str(path))
    monkeypatch.delenv("FLOWCORE_DEFAULT_TIMEOUT", raising=False)
    monkeypatch.delenv("FLOWCORE_LOG_LEVEL", raising=False)
    return path


class TestRuntimeConfig:
    def test_defaults_without_file(self, config_file):
        config = RuntimeConfig()

        assert get_flowcore_config() == {}
        assert config.default_timeout == 30.0
        assert config.agent_max_iterations == 10
        assert config.memory_max_turns == 10
        assert config.max_wait_ms == 10_000

    def test_values_from_file(self, config_file):
        config_file.write_text(
            json.dumps(
                {
                    "runtime": {"default_timeout": 5, "max_wait_ms": 250},
                    "agent": {"max_iterations": 3, "memory_max_turns": 2},
                    "logging": {"level": "DEBUG"},
                    "storage": {"runs_path": "/tmp/flowcore-runs"},
                }
            )
        )
        config = RuntimeConfig()

        assert config.default_timeout == 5.0
        assert config.max_wait_ms == 250
        assert config.agent_max_iterations == 3
        assert config.memory_max_turns == 2
        assert config.log_level == "DEBUG"
        assert config.runs_path == Path("/tmp/flowcore-runs")

    def test_environment_overrides_file(self, config_file, monkeypatch):
        config_file.write_text(json.dumps({"runtime": {"default_timeout": 5}}))
        monkeypatch.setenv("FLOWCORE_DEFAULT_TIMEOUT", "12.5")
        monkeypatch.setenv("FLOWCORE_LOG_LEVEL", "WARNING")

        config = RuntimeConfig()
        assert config.default_timeout == 12.5
        assert config.log_level == "WARNING"

    def test_corrupt_file_is_ignored(self, config_file):
        config_file.write_text("{broken")
        assert get_flowcore_config() == {}
        assert RuntimeConfig().agent_max_iterations == 10


class TestCredentials:
    def test_env_prefers_prefixed_name(self):
        creds = EnvCredentials(
            environ={"FLOWCORE_CRED_SLACK_WEBHOOK": "prefixed", "SLACK_WEBHOOK": "plain"}
        )
        assert creds.get("slack-webhook") == "prefixed"

    def test_env_falls_back_to_plain_name(self):
        creds = EnvCredentials(environ={"RESEND_API_KEY": "key"})
        assert creds.get("resend_api_key") == "key"
        assert creds.get("missing") is None

    def test_require_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="api_token"):
            StaticCredentials({}).require("api_token")

    def test_static_credentials_hide_values_in_repr(self):
        creds = StaticCredentials({"token": "s3cret"})
        assert creds.require("token") == "s3cret"
        assert "s3cret" not in repr(creds)


class TestLogging:
    def record(self, message: str, **extra) -> logging.LogRecord:
        record = logging.LogRecord("flowcore.test", logging.INFO, __file__, 1, message, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_structured_formatter_includes_trace_context(self):
        set_trace_context(run_id="run_abc", node_id="n1")

        entry = json.loads(StructuredFormatter().format(self.record("\033[32mhello\033[0m", event="x")))

        assert entry["message"] == "hello"
        assert entry["run_id"] == "run_abc"
        assert entry["node_id"] == "n1"
        assert entry["event"] == "x"
        assert get_trace_context() == {"run_id": "run_abc", "node_id": "n1"}

    def test_human_formatter_prefixes_context(self):
        set_trace_context(run_id="run_0123456789", session_id="s1")

        line = HumanReadableFormatter().format(self.record("hi"))

        assert "run:23456789" in line
        assert "session:s1" in line
        assert line.endswith("hi")
