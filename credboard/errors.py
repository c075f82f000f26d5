"""Typed rejections raised by the credential and ledger layers.

Every rejection carries a stable ``code`` so that the HTTP service and the
command line front end can report the reason without parsing messages.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "CredentialError",
    "InvalidKey",
    "InvalidInput",
    "NotAuthority",
    "InsufficientLiveliness",
    "SignatureInvalid",
    "PublicKeyMismatch",
    "NonceReused",
    "CredentialReused",
    "AlreadyVoted",
    "AlreadyExecuted",
    "InvalidPointError",
]


class CredentialError(ValueError):
    """Base class for every rejected credential or ledger operation."""

    code = "CREDENTIAL_ERROR"
    default_message = "operation rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(f"[{self.code}] {self.message}")

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidKey(CredentialError):
    code = "INVALID_KEY"
    default_message = "private key cannot be zero"


class InvalidInput(CredentialError):
    code = "INVALID_INPUT"
    default_message = "malformed input"


class NotAuthority(CredentialError):
    code = "NOT_AUTHORITY"
    default_message = "only authority can perform this operation"


class InsufficientLiveliness(CredentialError):
    code = "INSUFFICIENT_LIVELINESS"
    default_message = "credential is not lively"


class SignatureInvalid(CredentialError):
    code = "SIGNATURE_INVALID"
    default_message = "signature verification failed"


class PublicKeyMismatch(CredentialError):
    code = "PUBLIC_KEY_MISMATCH"
    default_message = "credential not signed by authority"


class NonceReused(CredentialError):
    code = "NONCE_REUSED"
    default_message = "signature nonce has already been used"


class CredentialReused(CredentialError):
    code = "CREDENTIAL_REUSED"
    default_message = "credential has already been used"


class AlreadyVoted(CredentialError):
    code = "ALREADY_VOTED"
    default_message = "user has already voted"


class AlreadyExecuted(CredentialError):
    code = "ALREADY_EXECUTED"
    default_message = "proposal has already been executed"


class InvalidPointError(ValueError):
    """Raised when a group operation receives a point that is not on the curve."""
