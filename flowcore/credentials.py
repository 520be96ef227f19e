"""
Credential access for node executors.

Executors never read the environment directly; they ask the accessor on
their RuntimeContext:

    token = ctx.credentials.require("slack_webhook")

Names are case-insensitive. ``EnvCredentials`` looks up
``FLOWCORE_CRED_<NAME>`` first, then ``<NAME>``:

    FLOWCORE_CRED_SLACK_WEBHOOK=https://hooks.slack.com/...

Values are held as pydantic ``SecretStr`` so they never show up in reprs
or log lines.
"""

import os
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from pydantic import SecretStr

from flowcore.errors import ConfigurationError

ENV_PREFIX = "FLOWCORE_CRED_"


@runtime_checkable
class CredentialAccessor(Protocol):
    def get(self, name: str) -> str | None: ...

    def require(self, name: str) -> str: ...


class _BaseCredentials:
    def get(self, name: str) -> str | None:
        raise NotImplementedError

    def require(self, name: str) -> str:
        """
        Get a credential or fail the node.

        Raises:
            ConfigurationError: If the credential is missing or empty
        """
        value = self.get(name)
        if not value:
            raise ConfigurationError(f"Missing required credential '{name}'")
        return value


class EnvCredentials(_BaseCredentials):
    """Credentials from environment variables."""

    def __init__(self, environ: Mapping[str, str] | None = None, prefix: str = ENV_PREFIX):
        self._environ = environ if environ is not None else os.environ
        self._prefix = prefix

    def get(self, name: str) -> str | None:
        key = _env_key(name)
        for candidate in (f"{self._prefix}{key}", key):
            value = self._environ.get(candidate)
            if value:
                return value
        return None


class StaticCredentials(_BaseCredentials):
    """Fixed in-memory credentials, mostly for tests."""

    def __init__(self, values: Mapping[str, str] | None = None):
        self._values = {_env_key(k): SecretStr(v) for k, v in (values or {}).items()}

    def get(self, name: str) -> str | None:
        secret = self._values.get(_env_key(name))
        return secret.get_secret_value() if secret is not None else None

    def __repr__(self) -> str:
        return f"StaticCredentials({sorted(self._values)})"


def _env_key(name: str) -> str:
    return "".join(c if c.isalnum() else "_" for c in name).upper()
