"""``ConfigService``: the process-wide configuration snapshot and its accessors.

The snapshot is computed lazily on first access, exactly once, and then
shared by every caller::

    service = get_service()
    service.init()                      # fail fast at startup
    service.database_config()           # PostgresConnection / JdbcConnection
    service.stripe_success_url()        # environment keyed
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping
from uuid import UUID

from . import _environment
from ._connection import ConnectionDescriptor, application_name, parse_connection_string
from ._crypto import HybridCrypto
from ._identity import Ec2InstanceIdentity, InstanceIdentity, ProcessIdentity
from ._memo import Memoized
from ._reader import env_integer, first_present
from ._repository import ConfigSource, DefaultConfigSource
from ._resolution import ConfigSnapshot, decrypted_config
from ._settings import BootstrapSettings
from ._types import Environment, SecretValue, secret_value

logger = logging.getLogger(__name__)

DecryptHook = Callable[..., ConfigSnapshot]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DISCORD_SIGNUPS_CHANNEL_ID = "1235663275144908832"
DISCORD_TEAMS_CHANNEL_ID = "1196584090552512592"
DISCORD_DEBUG_CHANNEL_ID = "1235659966627582014"
DISCORD_ERRORS_CHANNEL_ID = "1235713531018612896"

TEST_PRO_SUBSCRIPTION = "price_1P4ocVL5BwOwpxgU8Fe6oRWy"
PROD_PRO_SUBSCRIPTION = "price_1P4nokL5BwOwpxgUpWoidzdL"

DEFAULT_DATABASE_URL = "jdbc:postgresql://localhost:5432/instant"
DEFAULT_HONEYCOMB_ENDPOINT = "https://api.honeycomb.io:443"
DEFAULT_SERVER_PORT = 8888
DEFAULT_DEBUG_PORT = 6005

# (production, everything else)
_BILLING_URL = ("https://instantdb.com/dash?t=billing", "http://localhost:3000/dash?t=billing")
_SERVER_ORIGIN = ("https://api.instantdb.com", "http://localhost:8888")
_DASHBOARD_ORIGIN = ("https://instantdb.com", "http://localhost:3000")
_CONNECTION_POOL_SIZE = (400, 20)
_DEBUG_BIND_ADDRESS = ("0.0.0.0", None)
_PRO_SUBSCRIPTION = (PROD_PRO_SUBSCRIPTION, TEST_PRO_SUBSCRIPTION)


def _by_environment(env: Environment, table: tuple[Any, Any]) -> Any:
    return table[0] if env.is_production else table[1]


class ConfigService:
    """Owns the memoized snapshot, process identity and derived accessors."""

    def __init__(
        self,
        source: ConfigSource | None = None,
        *,
        crypto: HybridCrypto | None = None,
        instance_identity: InstanceIdentity | None = None,
        decrypt_hook: DecryptHook = decrypted_config,
        hostname_lookup: Callable[[], str] | None = None,
    ) -> None:
        self.source: ConfigSource = source or DefaultConfigSource()
        self.settings = BootstrapSettings.load(self.source)
        self._crypto = crypto
        self._decrypt_hook = decrypt_hook
        self._snapshot: Memoized[ConfigSnapshot] = Memoized(self._compute_snapshot, name="snapshot")

        identity_kwargs: dict[str, Any] = {}
        if hostname_lookup is not None:
            identity_kwargs["hostname_lookup"] = hostname_lookup
        self.identity = ProcessIdentity(
            self.environment,
            instance_identity or Ec2InstanceIdentity(timeout=self.settings.imds_timeout),
            **identity_kwargs,
        )

    # -- environment ---------------------------------------------------------

    def environment(self, env: Environment | str | None = None) -> Environment:
        """Return *env* if given, else the environment resolved for this call."""
        if env is not None:
            return Environment.coerce(env)
        return _environment.resolve(self.source)

    def is_production(self, env: Environment | str | None = None) -> bool:
        return self.environment(env).is_production

    # -- snapshot ------------------------------------------------------------

    @property
    def crypto(self) -> HybridCrypto | None:
        return self._crypto

    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot.get()

    def init(self) -> ConfigSnapshot:
        """Resolve the snapshot now so invalid config fails before serving traffic.

        In production the process identity is resolved too, so a missing
        cloud instance id is also reported at startup.
        """
        snapshot = self.snapshot()
        if self.is_production():
            self.process_id()
        return snapshot

    def _compute_snapshot(self) -> ConfigSnapshot:
        env = self.environment()
        if self._crypto is None:
            self._crypto = HybridCrypto(self.settings, is_production=env.is_production)
        crypto = self._crypto

        # The keyset may be needed to decrypt the document.
        crypto.init_hybrid()

        raw: Mapping[str, Any] = self.source.load(env)
        snapshot = self._decrypt_hook(
            crypto.obfuscate,
            crypto.get_decrypt_primitive,
            crypto.decrypt,
            env.is_production,
            raw,
        )
        logger.info(
            "Resolved %s configuration: %d keys, %d secrets",
            env.value,
            len(snapshot),
            len(snapshot.secret_keys()),
        )
        return snapshot

    def _secret(self, key: str) -> str | None:
        secret: SecretValue | None = self.snapshot().secret(key)
        return None if secret is None else secret_value(secret)

    def _enabled(self, key: str) -> bool:
        return bool((self._secret(key) or "").strip())

    # -- identity ------------------------------------------------------------

    def hostname(self) -> str:
        return self.identity.hostname()

    def process_id(self) -> str:
        return self.identity.process_id()

    def application_name(self) -> str:
        return application_name(self.hostname(), self.process_id())

    # -- plain values --------------------------------------------------------

    def instant_config_app_id(self) -> Any:
        return first_present(lambda: self.snapshot().lookup("instant_config_app_id"))

    def google_oauth_client(self) -> Any:
        return first_present(lambda: self.snapshot().lookup("google_oauth_client"))

    def instant_on_instant_app_id(self) -> UUID | None:
        raw = self.source.get_env("INSTANT_ON_INSTANT_APP_ID")
        if not raw:
            return None
        try:
            return UUID(raw)
        except ValueError:
            logger.warning("INSTANT_ON_INSTANT_APP_ID is not a valid UUID: %r", raw)
            return None

    # -- secrets -------------------------------------------------------------

    def s3_storage_access_key(self) -> str | None:
        return self._secret("s3_storage_access_key")

    def s3_storage_secret_key(self) -> str | None:
        return self._secret("s3_storage_secret_key")

    def postmark_token(self) -> str | None:
        return self._secret("postmark_token")

    def postmark_account_token(self) -> str | None:
        return self._secret("postmark_account_token")

    def postmark_send_enabled(self) -> bool:
        return self._enabled("postmark_token")

    def postmark_admin_enabled(self) -> bool:
        return self._enabled("postmark_account_token")

    def secret_discord_token(self) -> str | None:
        return self._secret("secret_discord_token")

    def discord_enabled(self) -> bool:
        return self._enabled("secret_discord_token")

    def honeycomb_api_key(self) -> str | None:
        return self._secret("honeycomb_api_key")

    def stripe_secret(self) -> str | None:
        # STRIPE_API_KEY lets CI inject a key without a config document.
        return first_present(
            lambda: self.source.get_env("STRIPE_API_KEY"),
            lambda: self._secret("stripe_secret"),
        )

    def stripe_webhook_secret(self) -> str | None:
        return self._secret("stripe_webhook_secret")

    # -- databases -----------------------------------------------------------

    def database_url(self) -> str:
        return first_present(
            lambda: self.source.get_env("DATABASE_URL"),
            lambda: self._secret("database_url"),
            DEFAULT_DATABASE_URL,
        )

    def next_database_url(self) -> str | None:
        return first_present(
            lambda: self.source.get_env("NEXT_DATABASE_URL"),
            lambda: self._secret("next_database_url"),
        )

    def database_config(self) -> ConnectionDescriptor:
        """Descriptor for the primary database.

        Raises ``InvalidConnectionStringError`` for an unsupported URL.
        """
        return parse_connection_string(self.database_url(), self.application_name()).unwrap()

    def next_database_config(self) -> ConnectionDescriptor | None:
        url = self.next_database_url()
        if not url:
            return None
        return parse_connection_string(url, self.application_name()).unwrap()

    # -- environment tables --------------------------------------------------

    def stripe_success_url(self, env: Environment | str | None = None) -> str:
        return _by_environment(self.environment(env), _BILLING_URL)

    def stripe_cancel_url(self, env: Environment | str | None = None) -> str:
        return _by_environment(self.environment(env), _BILLING_URL)

    def stripe_pro_subscription(self, env: Environment | str | None = None) -> str:
        return _by_environment(self.environment(env), _PRO_SUBSCRIPTION)

    def server_origin(self, env: Environment | str | None = None) -> str:
        return _by_environment(self.environment(env), _SERVER_ORIGIN)

    def dashboard_origin(self, env: Environment | str | None = None) -> str:
        return _by_environment(self.environment(env), _DASHBOARD_ORIGIN)

    def connection_pool_size(self, env: Environment | str | None = None) -> int:
        return _by_environment(self.environment(env), _CONNECTION_POOL_SIZE)

    # -- network -------------------------------------------------------------

    def honeycomb_endpoint(self) -> str:
        return first_present(
            lambda: self.source.get_env("HONEYCOMB_ENDPOINT"),
            DEFAULT_HONEYCOMB_ENDPOINT,
        )

    def server_port(self) -> int:
        return first_present(
            lambda: env_integer(self.source, "PORT"),
            lambda: env_integer(self.source, "BEANSTALK_PORT"),
            DEFAULT_SERVER_PORT,
        )

    def debug_port(self) -> int:
        return first_present(lambda: env_integer(self.source, "NREPL_PORT"), DEFAULT_DEBUG_PORT)

    def debug_bind_address(self, env: Environment | str | None = None) -> str | None:
        return first_present(
            lambda: self.source.get_env("NREPL_BIND_ADDRESS"),
            lambda: _by_environment(self.environment(env), _DEBUG_BIND_ADDRESS),
        )

    def __repr__(self) -> str:
        return f"<ConfigService source={type(self.source).__name__} snapshot={self._snapshot!r}>"


# ---------------------------------------------------------------------------
# Module-level service management
# ---------------------------------------------------------------------------

_active_service: ConfigService | None = None
_default_service: Memoized[ConfigService] = Memoized(ConfigService, name="default_service")


def set_service(service: ConfigService | None) -> None:
    """Set the module-level config service."""
    global _active_service
    _active_service = service


def get_service() -> ConfigService:
    """Return the module-level service, creating the default one on first use."""
    if _active_service is not None:
        return _active_service
    return _default_service.get()


def current_service() -> ConfigService | None:
    """Return the explicitly set module-level service (may be ``None``)."""
    return _active_service


def init() -> ConfigSnapshot:
    return get_service().init()


def snapshot() -> ConfigSnapshot:
    return get_service().snapshot()


def get_env() -> Environment:
    return get_service().environment()
