"""Bootstrap settings: where the hybrid key lives and how long to wait for
the instance metadata service.

Declared as a typed group and filled from ``INSTANT_*`` environment
variables::

    settings = BootstrapSettings.load(source)
    settings.private_key       # INSTANT_HYBRID_PRIVATE_KEY, SecretValue
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ._repository import ConfigSource
from ._types import UNDEFINED, SecretValue, _Undefined


class BootstrapSettings(BaseModel):
    """Settings read before the config document itself can be loaded."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    class Meta:
        env_prefix: str = "INSTANT"
        aliases: dict[str, str] = {
            "private_key": "INSTANT_HYBRID_PRIVATE_KEY",
            "private_key_file": "INSTANT_HYBRID_PRIVATE_KEY_FILE",
        }

    private_key: Optional[SecretValue] = None
    private_key_file: Optional[str] = None
    imds_timeout: float = 2.0

    @classmethod
    def load(cls, source: ConfigSource) -> "BootstrapSettings":
        """Build settings from *source*'s environment.

        Resolution per field:
        1. Explicit alias in ``Meta.aliases``
        2. ``{ENV_PREFIX}_{FIELD_NAME}`` uppercased
        3. Omit, so the field default applies
        """
        meta = cls.Meta
        env_prefix = getattr(meta, "env_prefix", "")
        aliases = getattr(meta, "aliases", {})

        raw_data: dict[str, Any] = {}
        for field_name in cls.model_fields:
            env_key = aliases.get(field_name) or f"{env_prefix}_{field_name}".upper()
            value: Any = source.get_env(env_key)
            if value is None or value == "":
                value = UNDEFINED

            if not isinstance(value, _Undefined):
                raw_data[field_name] = value

        return cls.model_validate(raw_data)
