"""Host and process identity labels."""

from __future__ import annotations

import logging
import socket
from typing import Callable, Protocol, runtime_checkable

import httpx

from ._crypto import random_hex
from ._memo import Memoized
from ._types import Environment, InstanceIdentityError

logger = logging.getLogger(__name__)

UNKNOWN_HOSTNAME = "unknown"

IMDS_BASE_URL = "http://169.254.169.254"
_IMDS_TOKEN_TTL = "21600"


@runtime_checkable
class InstanceIdentity(Protocol):
    """Looks up the id of the cloud instance this process runs on."""

    def current_instance_id(self) -> str:
        ...


class Ec2InstanceIdentity:
    """Reads the instance id from the EC2 metadata service (IMDSv2)."""

    def __init__(
        self,
        base_url: str = IMDS_BASE_URL,
        timeout: float = 2.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def current_instance_id(self) -> str:
        try:
            with httpx.Client(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                token = client.put(
                    "/latest/api/token",
                    headers={"X-aws-ec2-metadata-token-ttl-seconds": _IMDS_TOKEN_TTL},
                )
                token.raise_for_status()
                response = client.get(
                    "/latest/meta-data/instance-id",
                    headers={"X-aws-ec2-metadata-token": token.text},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise InstanceIdentityError(
                f"Could not read instance id from the metadata service: {exc}"
            ) from exc

        instance_id = response.text.strip()
        if not instance_id:
            raise InstanceIdentityError("Metadata service returned an empty instance id")
        return instance_id


def lookup_hostname() -> str:
    """Best-effort local host name; ``"unknown"`` if the lookup fails."""
    try:
        name = socket.gethostname()
    except OSError:
        logger.exception("Error getting hostname")
        return UNKNOWN_HOSTNAME
    if not name:
        logger.error("Error getting hostname: empty result")
        return UNKNOWN_HOSTNAME
    return name


def compose_process_id(environment: Environment, unique_part: str, suffix: str) -> str:
    label = "_".join([environment.value, unique_part, suffix])
    return label.replace("-", "_")


class ProcessIdentity:
    """Memoized hostname and process id for one process.

    In production the process id embeds the cloud instance id; elsewhere a
    random token stands in for it.
    """

    def __init__(
        self,
        environment: Callable[[], Environment],
        instance_identity: InstanceIdentity,
        *,
        hostname_lookup: Callable[[], str] = lookup_hostname,
        token: Callable[[int], str] = random_hex,
    ) -> None:
        self._environment = environment
        self._instance_identity = instance_identity
        self._token = token
        self._hostname: Memoized[str] = Memoized(hostname_lookup, name="hostname")
        self._process_id: Memoized[str] = Memoized(self._compute_process_id, name="process_id")

    def hostname(self) -> str:
        return self._hostname.get()

    def process_id(self) -> str:
        return self._process_id.get()

    def _compute_process_id(self) -> str:
        env = self._environment()
        if env.is_production:
            try:
                unique_part = self._instance_identity.current_instance_id()
            except InstanceIdentityError:
                raise
            except Exception as exc:
                raise InstanceIdentityError(f"Instance identity lookup failed: {exc}") from exc
        else:
            unique_part = self._token(8)
        return compose_process_id(env, unique_part, self._token(8))
