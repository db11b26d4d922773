"""``instant-config`` command group: validate config and manage secrets."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Mapping

import click
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .._crypto import HybridKeyset, encrypt, obfuscate
from .._environment import override_environment
from .._service import ConfigService, get_service
from .._types import ConfigError, Environment, SecretValue

_ENV_CHOICES = [e.value for e in Environment] + ["prod", "dev"]


def _render(value: Any) -> str:
    if isinstance(value, SecretValue):
        return f"<secret {obfuscate(value)}>"
    if isinstance(value, Mapping):
        return "{" + ", ".join(f"{k}: {_render(v)}" for k, v in value.items()) + "}"
    return repr(value)


def check_command(service: ConfigService, env: str | None = None) -> None:
    """Resolve the snapshot for *env* and print a redacted summary.

    Args:
        service: Service to resolve
        env: Environment to force; defaults to the detected one
    """
    if env is not None:
        with override_environment(env):
            _check(service)
    else:
        _check(service)


def _check(service: ConfigService) -> None:
    environment = service.environment()
    snapshot = service.init()
    click.echo(f"environment: {environment.value}")
    for key in sorted(snapshot):
        click.echo(f"  {key} = {_render(snapshot[key])}")


@click.group("instant-config")
def cli():
    """Instant configuration commands."""
    pass


@cli.command("check")
@click.option(
    "--env",
    "env",
    type=click.Choice(_ENV_CHOICES, case_sensitive=False),
    default=None,
    help="Environment to resolve (default: detected from PRODUCTION / TEST).",
)
def check_cli(env: str | None) -> None:
    """Load and decrypt the config document, failing on any invalid secret.

    Examples:\n
        instant-config check\n
        instant-config check --env production\n
    """
    try:
        check_command(get_service(), env=env)
    except ConfigError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    except Exception as e:
        click.secho(f"Unexpected error: {e}", fg="red", err=True)
        sys.exit(1)


@cli.command("keygen")
@click.option("--public-out", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Also write the public key PEM to this file.")
def keygen_cli(public_out: Path | None) -> None:
    """Print a new hybrid private key PEM."""
    keyset = HybridKeyset.generate()
    if public_out is not None:
        public_out.write_text(keyset.public_pem(), encoding="utf-8")
    click.echo(keyset.private_pem(), nl=False)


@cli.command("encrypt")
@click.option("--public-key", "public_key_path", required=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="PEM file holding the hybrid public key.")
@click.option("--optional", is_flag=True, default=False,
              help="Print a tagged entry marked optional.")
@click.argument("value")
def encrypt_cli(public_key_path: Path, optional: bool, value: str) -> None:
    """Encrypt VALUE for a config document.

    Examples:\n
        instant-config encrypt --public-key hybrid.pub "sk_live_..."\n
    """
    try:
        public_key = serialization.load_pem_public_key(public_key_path.read_bytes())
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    if not isinstance(public_key, rsa.RSAPublicKey):
        click.secho("Error: public key must be an RSA key", fg="red", err=True)
        sys.exit(1)

    blob = encrypt(public_key, value)
    if optional:
        click.echo(f'{{"$encrypted": "{blob}", "$optional": true}}')
    else:
        click.echo(blob)
