"""Validation of authority credentials and the replay-protection commit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict

from .constants import MAX_LIVELINESS, N, TRUNCATION_BYTES, USER_HASH_BYTES
from .crypto import (
    CurvePoint,
    is_on_curve,
    mul_generator,
    point_add,
    point_mul,
    require_length,
    truncate_to_scalar,
)
from .errors import (
    CredentialError,
    CredentialReused,
    InsufficientLiveliness,
    InvalidInput,
    NonceReused,
    PublicKeyMismatch,
    SignatureInvalid,
)
from .signer import Signature, challenge_hash, message_hash

if TYPE_CHECKING:  # pragma: no cover
    from .ledger import LedgerState


@dataclass(frozen=True)
class Credential:
    """One-time authorization binding a user identity to a liveliness score."""

    user_hash: bytes
    liveliness: int
    authority_signature: Signature

    def __post_init__(self) -> None:
        require_length(self.user_hash, USER_HASH_BYTES, "user hash")
        if not 0 <= self.liveliness <= MAX_LIVELINESS:
            raise InvalidInput(f"liveliness must lie between 0 and {MAX_LIVELINESS}")

    def to_dict(self) -> Dict[str, object]:
        return {
            "user_hash": self.user_hash.hex(),
            "liveliness": self.liveliness,
            "authority_signature": self.authority_signature.to_dict(),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Credential":
        return Credential(
            user_hash=bytes.fromhex(data["user_hash"]),  # type: ignore[arg-type]
            liveliness=int(data["liveliness"]),  # type: ignore[arg-type]
            authority_signature=Signature.from_dict(data["authority_signature"]),  # type: ignore[arg-type]
        )


class CredentialVerifier:
    """Checks credentials against an authority key and liveliness threshold."""

    def __init__(self, authority_pk: CurvePoint, min_liveliness: int) -> None:
        self.authority_pk = authority_pk
        self.min_liveliness = min_liveliness

    def check(self, credential: Credential) -> None:
        """Raise the first reason ``credential`` is not acceptable.

        Replay state is not consulted here; see :func:`verify_credential`.
        """

        if credential.liveliness <= self.min_liveliness:
            raise InsufficientLiveliness(
                f"liveliness {credential.liveliness} does not exceed {self.min_liveliness}"
            )

        signature = credential.authority_signature
        if signature.pk != self.authority_pk:
            raise PublicKeyMismatch()

        msg_hash = message_hash(credential.user_hash, signature.nonce)

        if signature.R.x == 0:
            raise SignatureInvalid("R.x cannot be zero")
        if self.authority_pk.x == 0:
            raise SignatureInvalid("authority_pk.x cannot be zero")

        digest = challenge_hash(signature.R.x, self.authority_pk.x, msg_hash)
        if not any(digest[:TRUNCATION_BYTES]):
            raise SignatureInvalid("challenge bytes cannot be zero")
        c = truncate_to_scalar(digest)
        if c == 0:
            raise SignatureInvalid("challenge cannot be zero")

        if not is_on_curve(signature.R) or not is_on_curve(signature.pk):
            raise SignatureInvalid("signature point is not on the curve")
        if not 0 <= signature.s < N:
            raise SignatureInvalid("s lies outside the scalar field")

        lhs = mul_generator(signature.s)
        rhs = point_add(signature.R, point_mul(signature.pk, c))
        if lhs != rhs:
            raise SignatureInvalid()

    def is_valid(self, credential: Credential) -> bool:
        try:
            self.check(credential)
        except CredentialError:
            return False
        return True


def verify_credential(state: "LedgerState", credential: Credential) -> None:
    """Validate ``credential`` against ``state`` and consume it.

    The nonce and the user hash are only recorded once every check has
    passed, so a rejected credential leaves ``state`` untouched.
    """

    verifier = CredentialVerifier(state.authority_pk, state.params.min_liveliness)
    verifier.check(credential)

    nonce = credential.authority_signature.nonce
    if nonce in state.used_nonces:
        raise NonceReused()
    if credential.user_hash in state.used_credentials:
        raise CredentialReused()

    state.used_nonces.add(nonce)
    state.used_credentials.add(credential.user_hash)


__all__ = ["Credential", "CredentialVerifier", "verify_credential"]
