"""Precedence helpers used by the derived accessors.

An accessor lists its sources in order (environment variable, snapshot
value, hardcoded default) and :func:`first_present` returns the first one
that answers.
"""

from __future__ import annotations

from typing import Any

from ._repository import ConfigSource
from ._types import _Undefined


def _absent(value: Any) -> bool:
    return value is None or isinstance(value, _Undefined)


def first_present(*candidates: Any) -> Any:
    """Return the first candidate that is neither ``None`` nor ``UNDEFINED``.

    Callables are invoked lazily, so later sources are not touched once an
    earlier one answers.
    """
    for candidate in candidates:
        value = candidate() if callable(candidate) else candidate
        if not _absent(value):
            return value
    return None


def env_integer(source: ConfigSource, name: str) -> int | None:
    raw = source.get_env(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}") from None
