"""Turn a raw config document into an immutable ``ConfigSnapshot``.

Secrets are tagged in the document as::

    {"stripe_secret": {"$encrypted": "AQEA...", "$optional": false}}

Every tagged entry is decrypted and wrapped in a ``SecretValue``; everything
else is copied through and frozen.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping

from ._types import UNDEFINED, DecryptionError, SecretValue, _Undefined

logger = logging.getLogger(__name__)

ENCRYPTED_TAG = "$encrypted"
OPTIONAL_TAG = "$optional"


class ConfigSnapshot(Mapping[str, Any]):
    """Read-only, fully resolved configuration.

    Nested mappings are ``MappingProxyType`` views and lists are tuples, so
    nothing reachable from a snapshot can be mutated.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]) -> None:
        object.__setattr__(self, "_data", MappingProxyType(dict(data)))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ConfigSnapshot is immutable")

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def lookup(self, key: str) -> Any:
        """Return the value at a dot-separated *key*, or ``UNDEFINED``."""
        if key in self._data:
            return self._data[key]
        current: Any = self._data
        for segment in key.split("."):
            if not isinstance(current, Mapping):
                return UNDEFINED
            current = current.get(segment, UNDEFINED)
            if isinstance(current, _Undefined):
                return UNDEFINED
        return current

    def secret(self, key: str) -> SecretValue | None:
        """Return the ``SecretValue`` at *key*, or ``None`` if absent."""
        value = self.lookup(key)
        if isinstance(value, SecretValue):
            return value
        if isinstance(value, _Undefined) or value is None:
            return None
        raise TypeError(f"Configuration key '{key}' is not an encrypted secret")

    def secret_keys(self) -> list[str]:
        """Dotted paths of every secret in the snapshot."""
        return [path for path, value in _walk(self._data, "") if isinstance(value, SecretValue)]

    def __repr__(self) -> str:
        return f"ConfigSnapshot({dict(self._data)!r})"


def _walk(data: Mapping[str, Any], prefix: str) -> Iterator[tuple[str, Any]]:
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, Mapping):
            yield from _walk(value, f"{path}.")
        else:
            yield path, value


def is_encrypted(value: Any) -> bool:
    return isinstance(value, Mapping) and ENCRYPTED_TAG in value


def decrypted_config(
    obfuscate: Callable[[Any], str],
    get_decrypt_primitive: Callable[[], Any],
    decrypt: Callable[[Any, str], str],
    is_production: bool,
    raw: Mapping[str, Any],
) -> ConfigSnapshot:
    """Decrypt every tagged secret in *raw* and freeze the result.

    A present ciphertext that fails to decrypt is always fatal. An empty
    placeholder is allowed only outside production, and only when the entry
    is marked ``"$optional": true``.
    """
    if not isinstance(raw, Mapping):
        raise TypeError("Config document must be a mapping")

    primitive: Any = None

    def _primitive() -> Any:
        nonlocal primitive
        if primitive is None:
            primitive = get_decrypt_primitive()
        return primitive

    def _secret(path: str, entry: Mapping[str, Any]) -> SecretValue:
        ciphertext = entry.get(ENCRYPTED_TAG)
        optional = bool(entry.get(OPTIONAL_TAG, False))

        if ciphertext is None or (isinstance(ciphertext, str) and not ciphertext.strip()):
            if optional and not is_production:
                logger.debug("Optional secret %s has no ciphertext; leaving it blank", path)
                return SecretValue("")
            raise DecryptionError("Secret has no ciphertext", key=path)

        if not isinstance(ciphertext, str):
            raise DecryptionError("Ciphertext must be a string", key=path)

        try:
            plaintext = decrypt(_primitive(), ciphertext)
        except DecryptionError as exc:
            raise DecryptionError(str(exc), key=path) from exc

        if is_production and not plaintext.strip():
            logger.warning("Secret %s decrypted to a blank value; treating it as disabled", path)
        logger.debug("Decrypted secret %s -> %s", path, obfuscate(plaintext))
        return SecretValue(plaintext)

    def _resolve(value: Any, path: str) -> Any:
        if is_encrypted(value):
            return _secret(path, value)
        if isinstance(value, Mapping):
            return MappingProxyType(
                {str(k): _resolve(v, f"{path}.{k}" if path else str(k)) for k, v in value.items()}
            )
        if isinstance(value, (list, tuple)):
            return tuple(_resolve(v, f"{path}[{i}]") for i, v in enumerate(value))
        return value

    resolved = {str(key): _resolve(value, str(key)) for key, value in raw.items()}
    return ConfigSnapshot(resolved)
