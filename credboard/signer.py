"""Deterministic Schnorr-variant signatures used to issue credentials.

Signing draws no randomness. The per-message nonce is a hash of the signer's
key prefix and the message, so signing the same message twice with the same
key yields byte-identical signatures. Distinct credentials therefore require
distinct messages.

Derivation, with ``prefix`` the first ``TRUNCATION_BYTES`` of the secret key
and ``H`` the persistent hash::

    nonce    = H(prefix || message)
    msg_hash = H(message || nonce)
    k        = truncate(H(prefix || msg_hash))
    R        = k * G
    c        = truncate(H(R.x || pk.x || msg_hash))
    s        = k + c * sk
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Dict, Protocol

from .constants import N, NONCE_BYTES, SECRET_KEY_BYTES, TRUNCATION_BYTES, USER_HASH_BYTES
from .crypto import (
    CurvePoint,
    field_to_bytes,
    mul_generator,
    persistent_hash,
    require_length,
    truncate_to_scalar,
)
from .errors import InvalidKey, SignatureInvalid


class SecretKeyProvider(Protocol):
    """Supplies the local party's 32-byte secret key on demand."""

    def __call__(self) -> bytes: ...


class StaticSecretKeyProvider:
    """Provider backed by a key held in memory."""

    def __init__(self, secret: bytes) -> None:
        self._secret = require_length(secret, SECRET_KEY_BYTES, "secret key")

    def __call__(self) -> bytes:
        return self._secret


@dataclass(frozen=True)
class Signature:
    """Authority signature embedded in a credential."""

    pk: CurvePoint
    R: CurvePoint
    s: int
    nonce: bytes

    def to_dict(self) -> Dict[str, object]:
        return {
            "pk": self.pk.to_dict(),
            "R": self.R.to_dict(),
            "s": hex(self.s),
            "nonce": self.nonce.hex(),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Signature":
        return Signature(
            pk=CurvePoint.from_dict(data["pk"]),  # type: ignore[arg-type]
            R=CurvePoint.from_dict(data["R"]),  # type: ignore[arg-type]
            s=int(data["s"], 16),  # type: ignore[arg-type]
            nonce=require_length(bytes.fromhex(data["nonce"]), NONCE_BYTES, "nonce"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class KeyPair:
    secret: bytes
    public: CurvePoint

    @staticmethod
    def from_secret(secret: bytes) -> "KeyPair":
        return KeyPair(secret=bytes(secret), public=derive_public_key(secret))


def secret_scalar(secret: bytes) -> int:
    """Return the signing scalar carried by the leading bytes of ``secret``."""

    secret = require_length(secret, SECRET_KEY_BYTES, "secret key")
    if not any(secret):
        raise InvalidKey("private key cannot be zero")
    scalar = truncate_to_scalar(secret)
    if scalar == 0:
        raise InvalidKey(f"first {TRUNCATION_BYTES} bytes of the private key cannot be zero")
    return scalar


def derive_public_key(secret: bytes) -> CurvePoint:
    return mul_generator(secret_scalar(secret))


def generate_secret_key() -> bytes:
    """Generate a fresh secret key with a non-zero signing scalar."""

    while True:
        candidate = secrets.token_bytes(SECRET_KEY_BYTES)
        if truncate_to_scalar(candidate):
            return candidate


def message_hash(message: bytes, nonce: bytes) -> bytes:
    return persistent_hash(message, nonce)


def challenge_hash(r_x: int, pk_x: int, msg_hash: bytes) -> bytes:
    return persistent_hash(field_to_bytes(r_x), field_to_bytes(pk_x), msg_hash)


def sign(secret: bytes, message: bytes) -> Signature:
    """Sign a 32-byte message deterministically."""

    sk = secret_scalar(secret)
    message = require_length(message, USER_HASH_BYTES, "message")
    prefix = bytes(secret[:TRUNCATION_BYTES])
    pk = mul_generator(sk)

    nonce = persistent_hash(prefix, message)
    msg_hash = message_hash(message, nonce)

    k = truncate_to_scalar(persistent_hash(prefix, msg_hash))
    if k == 0:
        raise SignatureInvalid("nonce cannot be zero")
    R = mul_generator(k)

    c = truncate_to_scalar(challenge_hash(R.x, pk.x, msg_hash))
    if c == 0:
        raise SignatureInvalid("challenge cannot be zero")

    s = (k + c * sk) % N
    return Signature(pk=pk, R=R, s=s, nonce=nonce)


class DeterministicSigner:
    """Signer that fetches its key from a provider for every operation."""

    def __init__(self, provider: SecretKeyProvider) -> None:
        self._provider = provider

    def public_key(self) -> CurvePoint:
        return derive_public_key(self._provider())

    def sign(self, message: bytes) -> Signature:
        return sign(self._provider(), message)


__all__ = [
    "DeterministicSigner",
    "KeyPair",
    "SecretKeyProvider",
    "Signature",
    "StaticSecretKeyProvider",
    "challenge_hash",
    "derive_public_key",
    "generate_secret_key",
    "message_hash",
    "secret_scalar",
    "sign",
]
