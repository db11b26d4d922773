"""Test utilities for instant_config."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from ._crypto import HybridCrypto, HybridKeyset, encrypt
from ._environment import override_environment
from ._repository import FakeConfigSource
from ._resolution import ENCRYPTED_TAG, OPTIONAL_TAG
from ._service import ConfigService, current_service, set_service
from ._types import Environment

__all__ = ["encrypted_entry", "override_environment", "override_service"]


def encrypted_entry(keyset: HybridKeyset, plaintext: str, optional: bool = False) -> dict[str, Any]:
    """Build a tagged secret entry for a config document."""
    entry: dict[str, Any] = {ENCRYPTED_TAG: encrypt(keyset.public_key, plaintext)}
    if optional:
        entry[OPTIONAL_TAG] = True
    return entry


@contextmanager
def override_service(
    *,
    env: dict[str, str] | None = None,
    documents: Mapping[Environment | str, Mapping[str, Any]] | None = None,
    keyset: HybridKeyset | None = None,
    instance_id: str = "i-0123456789abcdef0",
    hostname: str = "test-host",
) -> Iterator[ConfigService]:
    """Temporarily replace the module-level service with one backed by fakes.

    Usage::

        with override_service(env={"TEST": "true"}, documents={"test": {...}}) as svc:
            assert get_service() is svc
            svc.source.set_env("PORT", "9000")  # mutate inside context
    """

    class _StaticInstance:
        def current_instance_id(self) -> str:
            return instance_id

    previous = current_service()
    source = FakeConfigSource(env=env, documents=documents)
    service = ConfigService(
        source,
        crypto=HybridCrypto(keyset=keyset) if keyset is not None else None,
        instance_identity=_StaticInstance(),
        hostname_lookup=lambda: hostname,
    )
    set_service(service)
    try:
        yield service
    finally:
        set_service(previous)
