"""Hybrid (envelope) encryption for secrets stored in config documents.

A blob is the urlsafe base64 encoding of::

    version (1 byte, 0x01)
    wrapped key length (2 bytes, big endian)
    RSA-OAEP-SHA256 wrapped AES-256 key
    nonce (12 bytes)
    AES-GCM ciphertext + tag

Decrypting unwraps the AES key with the private key, then opens the payload.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import secrets
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ._memo import Memoized
from ._settings import BootstrapSettings
from ._types import DecryptionError, KeyInitError, SecretValue, secret_value

logger = logging.getLogger(__name__)

BLOB_VERSION = 1
ASSOCIATED_DATA = b"instant-config:v1"
_NONCE_SIZE = 12
_KEY_SIZE = 32
_HEADER = struct.Struct(">BH")

_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


@dataclass(frozen=True)
class HybridKeyset:
    """Private key material for envelope decryption."""

    private_key: rsa.RSAPrivateKey

    @property
    def public_key(self) -> rsa.RSAPublicKey:
        return self.private_key.public_key()

    @classmethod
    def from_pem(cls, pem: str | bytes) -> "HybridKeyset":
        if isinstance(pem, str):
            pem = pem.encode("utf-8")
        try:
            key = serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise KeyInitError(f"Hybrid private key is malformed: {exc}") from exc
        if not isinstance(key, rsa.RSAPrivateKey):
            raise KeyInitError("Hybrid private key must be an RSA key")
        return cls(key)

    @classmethod
    def generate(cls, key_size: int = 3072) -> "HybridKeyset":
        return cls(rsa.generate_private_key(public_exponent=65537, key_size=key_size))

    def private_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    def public_pem(self) -> str:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def __repr__(self) -> str:
        return f"HybridKeyset(rsa-{self.private_key.key_size})"


@dataclass(frozen=True)
class DecryptPrimitive:
    """Runtime decryption handle derived from a keyset."""

    private_key: rsa.RSAPrivateKey

    def __repr__(self) -> str:
        return "DecryptPrimitive()"


# ---------------------------------------------------------------------------
# Stateless helpers
# ---------------------------------------------------------------------------


def random_hex(n_bytes: int = 8) -> str:
    return secrets.token_hex(n_bytes)


def obfuscate(value: object) -> str:
    """Fixed-length, one-way token for *value*, safe to log."""
    if value is None:
        return "****"
    if isinstance(value, SecretValue):
        text = secret_value(value)
    else:
        text = value if isinstance(value, str) else repr(value)
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"****{digest[:8]}"


def _b64decode(blob: str) -> bytes:
    padded = blob.strip() + "=" * (-len(blob.strip()) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def encrypt(public_key: rsa.RSAPublicKey, plaintext: str) -> str:
    """Seal *plaintext* for the holder of the matching private key."""
    data_key = AESGCM.generate_key(bit_length=_KEY_SIZE * 8)
    nonce = secrets.token_bytes(_NONCE_SIZE)
    sealed = AESGCM(data_key).encrypt(nonce, plaintext.encode("utf-8"), ASSOCIATED_DATA)
    wrapped = public_key.encrypt(data_key, _OAEP)
    payload = _HEADER.pack(BLOB_VERSION, len(wrapped)) + wrapped + nonce + sealed
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")


def decrypt(primitive: DecryptPrimitive, blob: str) -> str:
    """Open a blob produced by :func:`encrypt`.

    Raises ``DecryptionError`` on any malformed input, wrong key or failed
    integrity check.
    """
    if not isinstance(blob, str) or not blob.strip():
        raise DecryptionError("Ciphertext is empty")

    try:
        payload = _b64decode(blob)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("Ciphertext is not valid base64") from exc

    if len(payload) < _HEADER.size:
        raise DecryptionError("Ciphertext is truncated")
    version, wrapped_len = _HEADER.unpack_from(payload)
    if version != BLOB_VERSION:
        raise DecryptionError(f"Unsupported ciphertext version {version}")

    start = _HEADER.size
    wrapped = payload[start : start + wrapped_len]
    nonce = payload[start + wrapped_len : start + wrapped_len + _NONCE_SIZE]
    sealed = payload[start + wrapped_len + _NONCE_SIZE :]
    if len(wrapped) != wrapped_len or len(nonce) != _NONCE_SIZE or not sealed:
        raise DecryptionError("Ciphertext is truncated")

    try:
        data_key = primitive.private_key.decrypt(wrapped, _OAEP)
    except ValueError as exc:
        raise DecryptionError("Could not unwrap data key; wrong key or corrupt ciphertext") from exc
    if len(data_key) != _KEY_SIZE:
        raise DecryptionError("Unwrapped data key has the wrong size")

    try:
        plaintext = AESGCM(data_key).decrypt(nonce, sealed, ASSOCIATED_DATA)
    except InvalidTag as exc:
        raise DecryptionError("Ciphertext failed the integrity check") from exc

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted payload is not valid UTF-8") from exc


# ---------------------------------------------------------------------------
# Keyset owner
# ---------------------------------------------------------------------------


class HybridCrypto:
    """Owns the process keyset and exposes the decryption primitives.

    ``init_hybrid`` is idempotent: the key is loaded on the first call and
    every later call returns the same keyset (or re-raises the same
    ``KeyInitError``).
    """

    def __init__(
        self,
        settings: BootstrapSettings | None = None,
        *,
        keyset: HybridKeyset | None = None,
        is_production: bool = False,
    ) -> None:
        self._settings = settings or BootstrapSettings()
        self._is_production = is_production
        if keyset is not None:
            self._keyset: Memoized[HybridKeyset] = Memoized(lambda: keyset, name="keyset")
        else:
            self._keyset = Memoized(self._load_keyset, name="keyset")

    @property
    def initialized(self) -> bool:
        return self._keyset.settled and not self._keyset.failed

    @property
    def keyset(self) -> Optional[HybridKeyset]:
        return self._keyset.get() if self.initialized else None

    def init_hybrid(self) -> HybridKeyset:
        return self._keyset.get()

    def get_decrypt_primitive(self, keyset: HybridKeyset | None = None) -> DecryptPrimitive:
        if keyset is None:
            if not self.initialized:
                raise KeyInitError("Hybrid keyset is not initialized; call init_hybrid() first")
            keyset = self._keyset.get()
        return DecryptPrimitive(keyset.private_key)

    decrypt = staticmethod(decrypt)
    encrypt = staticmethod(encrypt)
    obfuscate = staticmethod(obfuscate)

    def _load_keyset(self) -> HybridKeyset:
        settings = self._settings

        if settings.private_key:
            return HybridKeyset.from_pem(settings.private_key.secret_value)

        if settings.private_key_file:
            path = Path(settings.private_key_file)
            try:
                pem = path.read_bytes()
            except OSError as exc:
                raise KeyInitError(f"Could not read hybrid private key {path}: {exc}") from exc
            return HybridKeyset.from_pem(pem)

        if self._is_production:
            raise KeyInitError(
                "No hybrid private key configured. Set INSTANT_HYBRID_PRIVATE_KEY "
                "or INSTANT_HYBRID_PRIVATE_KEY_FILE."
            )

        logger.warning(
            "No hybrid private key configured; using an ephemeral key. "
            "Encrypted secrets in the config document will not decrypt."
        )
        return HybridKeyset.generate(key_size=2048)
