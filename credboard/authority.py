"""High level credential issuance helpers for the authority."""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional

from .constants import AUTHOR_BYTES, DEFAULT_AUTHORITY_KEY, DEFAULT_LIVELINESS, USER_HASH_BYTES
from .crypto import CurvePoint, require_length
from .signer import DeterministicSigner, Signature, StaticSecretKeyProvider
from .verifier import Credential

logger = logging.getLogger(__name__)


def _pad(data: bytes, length: int) -> bytes:
    return data[:length].ljust(length, b"\x00")


def create_user_hash(identity: str) -> bytes:
    """UTF-8 identity, truncated or zero-padded to 32 bytes."""

    return _pad(identity.encode("utf-8"), USER_HASH_BYTES)


def hashed_user_hash(identity: str) -> bytes:
    """SHA-256 of the identity, for identities longer than 32 bytes."""

    return hashlib.sha256(identity.encode("utf-8")).digest()


def create_author_bytes(author: str) -> bytes:
    return _pad(author.encode("utf-8"), AUTHOR_BYTES)


class AuthorityService:
    """Issues credentials on behalf of the authority key."""

    def __init__(self, secret_key: Optional[bytes] = None) -> None:
        self._signer = DeterministicSigner(StaticSecretKeyProvider(secret_key or DEFAULT_AUTHORITY_KEY))

    def public_key(self) -> CurvePoint:
        return self._signer.public_key()

    def switch_authority_key(self, secret_key: bytes) -> None:
        self._signer = DeterministicSigner(StaticSecretKeyProvider(secret_key))

    def issue_credential(self, user_hash: bytes) -> Signature:
        user_hash = require_length(user_hash, USER_HASH_BYTES, "user hash")
        signature = self._signer.sign(user_hash)
        logger.info("issued signature for %s", user_hash.hex()[:16])
        return signature

    def create_credential(
        self,
        user_hash: bytes,
        signature: Optional[Signature] = None,
        liveliness: int = DEFAULT_LIVELINESS,
    ) -> Credential:
        if signature is None:
            signature = self.issue_credential(user_hash)
        return Credential(user_hash=user_hash, liveliness=liveliness, authority_signature=signature)

    def create_credential_from_identity(self, identity: str, liveliness: int = DEFAULT_LIVELINESS) -> Credential:
        return self.create_credential(create_user_hash(identity), liveliness=liveliness)

    def prepare_posting_data(
        self,
        identity: str,
        author: str,
        liveliness: int = DEFAULT_LIVELINESS,
    ) -> Dict[str, object]:
        user_hash = create_user_hash(identity)
        return {
            "credential": self.create_credential(user_hash, liveliness=liveliness),
            "author": create_author_bytes(author),
            "user_hash": user_hash,
        }

    def verify_credential(self, credential: Credential) -> bool:
        """Local check that ``credential`` carries this authority's key.

        The ledger performs the full signature and replay verification.
        """

        return credential.authority_signature.pk == self.public_key()


def issue_credential_for_user(identity: str, secret_key: Optional[bytes] = None) -> Credential:
    return AuthorityService(secret_key).create_credential_from_identity(identity)


def prepare_message_post(
    identity: str,
    author: str,
    secret_key: Optional[bytes] = None,
    liveliness: int = DEFAULT_LIVELINESS,
) -> Dict[str, object]:
    return AuthorityService(secret_key).prepare_posting_data(identity, author, liveliness)


__all__ = [
    "AuthorityService",
    "create_author_bytes",
    "create_user_hash",
    "hashed_user_hash",
    "issue_credential_for_user",
    "prepare_message_post",
]
