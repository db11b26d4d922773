"""Config source protocol, the default file/env implementation, and an
in-memory implementation for tests."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol, runtime_checkable

from ._types import ConfigError, Environment


@runtime_checkable
class ConfigSource(Protocol):
    """Abstraction over where raw config comes from.

    ``get_env`` reads one process environment variable; ``load`` returns the
    raw (still encrypted) config document for an environment.
    """

    def get_env(self, key: str) -> str | None:
        ...

    def load(self, environment: Environment) -> Mapping[str, Any]:
        ...


class DefaultConfigSource:
    """Reads ``os.environ`` and ``<config_dir>/<environment>.json``.

    When *config_dir* is not given it is taken from ``INSTANT_CONFIG_DIR`` at
    load time, falling back to ``resources/config``.
    """

    def __init__(self, config_dir: str | os.PathLike[str] | None = None) -> None:
        self._config_dir = config_dir

    def get_env(self, key: str) -> str | None:
        return os.environ.get(key)

    def config_path(self, environment: Environment) -> Path:
        base = self._config_dir or self.get_env("INSTANT_CONFIG_DIR") or "resources/config"
        return Path(base) / f"{environment.value}.json"

    def load(self, environment: Environment) -> Mapping[str, Any]:
        path = self.config_path(environment)
        try:
            with path.open(encoding="utf-8") as fh:
                document = json.load(fh)
        except FileNotFoundError:
            raise ConfigError(f"Config document not found: {path}") from None
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Could not read config document {path}: {exc}") from exc

        if not isinstance(document, dict):
            raise ConfigError(f"Config document {path} must be a JSON object")
        return document


class FakeConfigSource:
    """Dict-backed config source for tests.

    Counts ``load`` calls so tests can assert that the document was read once.

    >>> src = FakeConfigSource(env={"TEST": "true"}, documents={"test": {"a": 1}})
    >>> src.get_env("TEST")
    'true'
    """

    def __init__(
        self,
        env: dict[str, str] | None = None,
        documents: Mapping[Environment | str, Mapping[str, Any]] | None = None,
    ) -> None:
        self._env: dict[str, str] = dict(env or {})
        self._documents: dict[Environment, Mapping[str, Any]] = {
            Environment.coerce(name): doc for name, doc in (documents or {}).items()
        }
        self._lock = threading.Lock()
        self.load_count = 0
        self.loaded: list[Environment] = []

    # -- Protocol methods ---------------------------------------------------

    def get_env(self, key: str) -> str | None:
        return self._env.get(key)

    def load(self, environment: Environment) -> Mapping[str, Any]:
        with self._lock:
            self.load_count += 1
            self.loaded.append(environment)
        return self._documents.get(environment, {})

    # -- Mutation helpers for test setup ------------------------------------

    def set_env(self, key: str, value: str) -> None:
        self._env[key] = value

    def unset_env(self, key: str) -> None:
        self._env.pop(key, None)

    def set_document(self, environment: Environment | str, document: Mapping[str, Any]) -> None:
        self._documents[Environment.coerce(environment)] = document
