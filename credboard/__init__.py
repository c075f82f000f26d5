"""Credential-gated governance ledger with deterministic Schnorr issuance."""

from .authority import (
    AuthorityService,
    create_author_bytes,
    create_user_hash,
    hashed_user_hash,
    issue_credential_for_user,
    prepare_message_post,
)
from .crypto import CurvePoint, mul_generator, persistent_hash, point_add, point_mul, truncate_to_scalar
from .errors import (
    AlreadyExecuted,
    AlreadyVoted,
    CredentialError,
    CredentialReused,
    InsufficientLiveliness,
    InvalidInput,
    InvalidKey,
    NonceReused,
    NotAuthority,
    PublicKeyMismatch,
    SignatureInvalid,
)
from .ledger import Comment, GovernanceLedger, LedgerParams, Post, Proposal, ProposalStatus, Vote
from .signer import (
    DeterministicSigner,
    KeyPair,
    SecretKeyProvider,
    Signature,
    StaticSecretKeyProvider,
    derive_public_key,
    generate_secret_key,
    sign,
)
from .store import LedgerStore
from .verifier import Credential, CredentialVerifier, verify_credential

__all__ = [
    "AuthorityService",
    "create_author_bytes",
    "create_user_hash",
    "hashed_user_hash",
    "issue_credential_for_user",
    "prepare_message_post",
    "CurvePoint",
    "mul_generator",
    "persistent_hash",
    "point_add",
    "point_mul",
    "truncate_to_scalar",
    "AlreadyExecuted",
    "AlreadyVoted",
    "CredentialError",
    "CredentialReused",
    "InsufficientLiveliness",
    "InvalidInput",
    "InvalidKey",
    "NonceReused",
    "NotAuthority",
    "PublicKeyMismatch",
    "SignatureInvalid",
    "Comment",
    "GovernanceLedger",
    "LedgerParams",
    "Post",
    "Proposal",
    "ProposalStatus",
    "Vote",
    "DeterministicSigner",
    "KeyPair",
    "SecretKeyProvider",
    "Signature",
    "StaticSecretKeyProvider",
    "derive_public_key",
    "generate_secret_key",
    "sign",
    "LedgerStore",
    "Credential",
    "CredentialVerifier",
    "verify_credential",
]
