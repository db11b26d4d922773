"""Foundation types for instant_config.

Provides the environment enum, the sentinel for missing values, the error
hierarchy, and the ``SecretValue`` wrapper.
"""

from __future__ import annotations

import hmac
from enum import Enum
from typing import Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema, core_schema

# ---------------------------------------------------------------------------
# Sentinel
# ---------------------------------------------------------------------------


class _Undefined:
    """Sentinel for missing config values (distinct from ``None``)."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


class Environment(str, Enum):
    PRODUCTION = "production"
    TEST = "test"
    DEVELOPMENT = "development"

    @classmethod
    def coerce(cls, value: Environment | str) -> Environment:
        """Accept an ``Environment`` or one of its names/short aliases."""
        if isinstance(value, Environment):
            return value
        lowered = str(value).strip().lower()
        aliased = _ENVIRONMENT_ALIASES.get(lowered, lowered)
        try:
            return cls(aliased)
        except ValueError:
            raise ValueError(
                f"{value!r} is not a valid environment. "
                f"Must be one of {[e.value for e in cls]}"
            ) from None

    @property
    def is_production(self) -> bool:
        return self is Environment.PRODUCTION

    def __str__(self) -> str:
        return self.value


_ENVIRONMENT_ALIASES = {"prod": "production", "dev": "development"}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Base exception for config-related errors."""


class KeyInitError(ConfigError):
    """Hybrid key material is missing, malformed or unreadable."""


class DecryptionError(ConfigError):
    """A secret could not be decrypted.

    ``key`` is the dotted path of the offending entry when known. The message
    never includes ciphertext or plaintext.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        if key:
            message = f"{message} (key '{key}')"
        super().__init__(message)


class InvalidConnectionStringError(ConfigError):
    """A database connection string uses an unsupported scheme or is malformed."""

    def __init__(self, message: str, url: str = "") -> None:
        self.url = url
        super().__init__(message)


class InstanceIdentityError(ConfigError):
    """The cloud instance identity could not be determined."""


# ---------------------------------------------------------------------------
# SecretValue
# ---------------------------------------------------------------------------

_MASK = "***"


class SecretValue:
    """Holds one decrypted plaintext so it is redacted in ``repr`` / ``str``.

    Access the real value via ``.secret_value`` or :func:`secret_value`.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str | None) -> None:
        object.__setattr__(self, "_value", value or "")

    @property
    def secret_value(self) -> str:
        return self._value  # type: ignore[return-value]

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("SecretValue is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("SecretValue is immutable")

    # -- redaction ----------------------------------------------------------

    def __repr__(self) -> str:
        return f"SecretValue('{_MASK}')"

    def __str__(self) -> str:
        return _MASK

    def __format__(self, format_spec: str) -> str:
        return format(_MASK, format_spec)

    def __reduce__(self) -> Any:
        raise TypeError("SecretValue cannot be pickled")

    # -- comparison ---------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretValue):
            return hmac.compare_digest(self._value.encode("utf-8"), other._value.encode("utf-8"))  # type: ignore[union-attr]
        return NotImplemented

    def __hash__(self) -> int:
        return hash((SecretValue, self._value))

    def __bool__(self) -> bool:
        return bool(self._value.strip())  # type: ignore[union-attr]

    # -- Pydantic v2 integration --------------------------------------------

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        source_type: Any,
        handler: GetCoreSchemaHandler,
    ) -> CoreSchema:
        def _validate(value: Any) -> SecretValue:
            if isinstance(value, SecretValue):
                return value
            if value is None or isinstance(value, str):
                return SecretValue(value)
            raise ValueError("SecretValue expects a string")

        def _serialize(value: SecretValue, _info: Any) -> str:
            return _MASK

        return core_schema.no_info_plain_validator_function(
            _validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                _serialize,
                info_arg=True,
            ),
            metadata={"pydantic_js_functions": []},
        )


def wrap(plaintext: str | None) -> SecretValue:
    """Wrap *plaintext* so it never renders through ``str`` / ``repr``."""
    return SecretValue(plaintext)


def secret_value(secret: SecretValue | None) -> str:
    """Return the plaintext held by *secret*, or ``""`` when it is absent."""
    if secret is None:
        return ""
    return secret.secret_value
