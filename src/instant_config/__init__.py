"""Encrypted, environment-aware runtime configuration for the Instant backend.

Resolves env-var overrides, hybrid-encrypted secrets and per-environment
defaults into one immutable snapshot, computed once per process.
"""

from ._connection import (
    ConnectionDescriptor,
    Err,
    JdbcConnection,
    Ok,
    PostgresConnection,
    parse_connection_string,
)
from ._crypto import DecryptPrimitive, HybridCrypto, HybridKeyset, decrypt, encrypt, obfuscate
from ._environment import override_environment, resolve
from ._identity import Ec2InstanceIdentity, InstanceIdentity, ProcessIdentity
from ._memo import Memoized
from ._repository import ConfigSource, DefaultConfigSource, FakeConfigSource
from ._resolution import ConfigSnapshot, decrypted_config
from ._service import ConfigService, get_env, get_service, init, set_service, snapshot
from ._settings import BootstrapSettings
from ._types import (
    ConfigError,
    DecryptionError,
    Environment,
    InstanceIdentityError,
    InvalidConnectionStringError,
    KeyInitError,
    SecretValue,
    secret_value,
    wrap,
)
from ._version import __version__

__all__ = [
    "__version__",
    # Core
    "ConfigService",
    "ConfigSnapshot",
    "get_service",
    "set_service",
    "init",
    "snapshot",
    "get_env",
    "decrypted_config",
    "Memoized",
    # Environment
    "Environment",
    "resolve",
    "override_environment",
    # Secrets
    "SecretValue",
    "wrap",
    "secret_value",
    "HybridCrypto",
    "HybridKeyset",
    "DecryptPrimitive",
    "decrypt",
    "encrypt",
    "obfuscate",
    # Sources
    "ConfigSource",
    "DefaultConfigSource",
    "FakeConfigSource",
    "BootstrapSettings",
    # Identity
    "ProcessIdentity",
    "InstanceIdentity",
    "Ec2InstanceIdentity",
    # Connections
    "parse_connection_string",
    "ConnectionDescriptor",
    "JdbcConnection",
    "PostgresConnection",
    "Ok",
    "Err",
    # Errors
    "ConfigError",
    "KeyInitError",
    "DecryptionError",
    "InvalidConnectionStringError",
    "InstanceIdentityError",
]
