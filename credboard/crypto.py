"""Group arithmetic and hashing primitives for the credential signature scheme.

Point addition and scalar multiplication on secp256k1 are delegated to
``coincurve`` (libsecp256k1). Points cross that boundary as affine
coordinates, and ``(0, 0)`` stands in for the point at infinity, which
coincurve cannot represent.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict

from coincurve import PrivateKey, PublicKey

from .constants import A, B, FIELD_BYTES, GX, GY, N, P, TRUNCATION_BYTES
from .errors import InvalidInput, InvalidPointError


@dataclass(frozen=True)
class CurvePoint:
    """Affine point on the curve. ``(0, 0)`` stands for the point at infinity."""

    x: int
    y: int

    def is_identity(self) -> bool:
        return self.x == 0 and self.y == 0

    def to_dict(self) -> Dict[str, str]:
        return {"x": hex(self.x), "y": hex(self.y)}

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "CurvePoint":
        return CurvePoint(x=int(data["x"], 16), y=int(data["y"], 16))


IDENTITY = CurvePoint(0, 0)
GENERATOR = CurvePoint(GX, GY)


def is_on_curve(point: CurvePoint) -> bool:
    if point.is_identity():
        return True
    if not (0 <= point.x < P and 0 <= point.y < P):
        return False
    return (point.y * point.y - pow(point.x, 3, P) - A * point.x - B) % P == 0


def _require_on_curve(point: CurvePoint) -> None:
    if not is_on_curve(point):
        raise InvalidPointError(f"point ({hex(point.x)}, {hex(point.y)}) is not on the curve")


def _to_public_key(point: CurvePoint) -> PublicKey:
    return PublicKey.from_point(point.x, point.y)


def _from_public_key(public_key: PublicKey) -> CurvePoint:
    x, y = public_key.point()
    return CurvePoint(x, y)


def point_add(a: CurvePoint, b: CurvePoint) -> CurvePoint:
    """Add two curve points."""

    _require_on_curve(a)
    _require_on_curve(b)
    if a.is_identity():
        return b
    if b.is_identity():
        return a
    # same x on the curve with a different y is the negation
    if a.x == b.x and a.y != b.y:
        return IDENTITY
    return _from_public_key(PublicKey.combine_keys([_to_public_key(a), _to_public_key(b)]))


def point_mul(point: CurvePoint, scalar: int) -> CurvePoint:
    """Multiply a point by a scalar, reduced modulo the group order."""

    _require_on_curve(point)
    scalar %= N
    if scalar == 0 or point.is_identity():
        return IDENTITY
    return _from_public_key(_to_public_key(point).multiply(scalar.to_bytes(FIELD_BYTES, "big")))


def mul_generator(scalar: int) -> CurvePoint:
    scalar %= N
    if scalar == 0:
        return IDENTITY
    return _from_public_key(PrivateKey.from_int(scalar).public_key)


def persistent_hash(*parts: bytes) -> bytes:
    """SHA-256 over the concatenation of ``parts``."""

    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(part)
    return hasher.digest()


def truncate_to_scalar(data: bytes) -> int:
    """Interpret the leading ``TRUNCATION_BYTES`` of ``data`` as a scalar."""

    if len(data) < TRUNCATION_BYTES:
        raise ValueError(f"need at least {TRUNCATION_BYTES} bytes, got {len(data)}")
    return int.from_bytes(data[:TRUNCATION_BYTES], "big")


def field_to_bytes(value: int) -> bytes:
    return value.to_bytes(FIELD_BYTES, "big")


def require_length(value: bytes, length: int, name: str) -> bytes:
    """Check that ``value`` is a byte string of exactly ``length`` bytes."""

    if not isinstance(value, (bytes, bytearray)) or len(value) != length:
        raise InvalidInput(f"{name} must be exactly {length} bytes")
    return bytes(value)


__all__ = [
    "CurvePoint",
    "GENERATOR",
    "IDENTITY",
    "field_to_bytes",
    "is_on_curve",
    "mul_generator",
    "persistent_hash",
    "point_add",
    "point_mul",
    "require_length",
    "truncate_to_scalar",
]
