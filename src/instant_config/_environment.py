"""Environment detection.

Resolution order:
1. An active ``override_environment`` scope in the current context
2. ``PRODUCTION=true``
3. ``TEST=true``
4. ``development``
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from ._repository import ConfigSource
from ._types import Environment

PRODUCTION_FLAG = "PRODUCTION"
TEST_FLAG = "TEST"
_TRUE = "true"

_override: ContextVar[Environment | None] = ContextVar("instant_config_environment", default=None)


def current_override() -> Environment | None:
    """Return the environment bound by the innermost active override, if any."""
    return _override.get()


@contextmanager
def override_environment(environment: Environment | str) -> Iterator[Environment]:
    """Bind *environment* for the current context until the block exits.

    The binding lives in a ``ContextVar``, so other threads and tasks keep
    resolving from the process environment::

        with override_environment("production"):
            assert resolve(source) is Environment.PRODUCTION
    """
    env = Environment.coerce(environment)
    token = _override.set(env)
    try:
        yield env
    finally:
        _override.reset(token)


def resolve(source: ConfigSource) -> Environment:
    """Return the environment that applies to the current call."""
    bound = _override.get()
    if bound is not None:
        return bound
    if source.get_env(PRODUCTION_FLAG) == _TRUE:
        return Environment.PRODUCTION
    if source.get_env(TEST_FLAG) == _TRUE:
        return Environment.TEST
    return Environment.DEVELOPMENT
