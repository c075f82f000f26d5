"""FastAPI-powered credential ledger service."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, TypeVar

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .authority import AuthorityService, create_author_bytes, create_user_hash
from .constants import DEFAULT_LIVELINESS
from .errors import (
    AlreadyExecuted,
    AlreadyVoted,
    CredentialError,
    CredentialReused,
    NonceReused,
    NotAuthority,
    PublicKeyMismatch,
    SignatureInvalid,
)
from .ledger import GovernanceLedger
from .settings import Settings, load_settings
from .signer import StaticSecretKeyProvider
from .store import LedgerStore
from .verifier import Credential

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_CODES = {
    NotAuthority: 403,
    PublicKeyMismatch: 403,
    SignatureInvalid: 403,
    NonceReused: 409,
    CredentialReused: 409,
    AlreadyVoted: 409,
    AlreadyExecuted: 409,
}


class PointModel(BaseModel):
    x: str
    y: str


class SignatureModel(BaseModel):
    pk: PointModel
    R: PointModel
    s: str
    nonce: str


class CredentialModel(BaseModel):
    user_hash: str
    liveliness: int
    authority_signature: SignatureModel


class IssueRequest(BaseModel):
    identity: Optional[str] = None
    user_hash: Optional[str] = None
    liveliness: int = DEFAULT_LIVELINESS


class CredentialRequest(BaseModel):
    credential: CredentialModel


class CommentRequest(BaseModel):
    text: str
    credential: CredentialModel
    timestamp: Optional[int] = None


class PostRequest(BaseModel):
    message: str
    author: str
    credential: CredentialModel
    timestamp: Optional[int] = None


class AuthorityResponse(BaseModel):
    authority_pk: PointModel


class MembershipResponse(BaseModel):
    value: str
    member: bool


class ExecuteResponse(BaseModel):
    executed: str
    votes_for: int
    votes_against: int


def _rejection(exc: CredentialError) -> HTTPException:
    return HTTPException(status_code=_STATUS_CODES.get(type(exc), 400), detail=exc.to_dict())


def _parse_hex(value: str, name: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{name} must be hex encoded") from exc


def _to_credential(model: CredentialModel) -> Credential:
    try:
        return Credential.from_dict(model.model_dump())
    except CredentialError as exc:
        raise _rejection(exc) from exc
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="Malformed credential") from exc


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    store = LedgerStore(settings.store_path)
    provider = StaticSecretKeyProvider(settings.authority_key)
    authority = AuthorityService(settings.authority_key)
    # sync endpoints run on the threadpool; the lock serializes store access in this process
    lock = threading.Lock()

    app = FastAPI(title="credboard", description="Credential-gated governance ledger")

    def _read(query: Callable[[GovernanceLedger], T]) -> T:
        with lock:
            try:
                ledger = store.load(provider)
            except FileNotFoundError as exc:
                raise HTTPException(status_code=404, detail="No ledger has been created yet") from exc
            return query(ledger)

    def _apply(operation: Callable[[GovernanceLedger], T]) -> T:
        with lock:
            ledger = store.load_or_initialize(settings.ledger_params(), provider)
            try:
                result = operation(ledger)
            except CredentialError as exc:
                raise _rejection(exc) from exc
            store.save(ledger)
            logger.debug("ledger saved to %s at sequence %d", store.path, ledger.sequence)
            return result

    @app.get("/authority", response_model=AuthorityResponse)
    def get_authority() -> AuthorityResponse:
        with lock:
            # before genesis the ledger would adopt the configured key
            pk = store.load(provider).authority_pk if store.exists() else authority.public_key()
        return AuthorityResponse(authority_pk=PointModel(**pk.to_dict()))

    @app.get("/ledger")
    def get_ledger() -> Dict[str, object]:
        def summary(ledger: GovernanceLedger) -> Dict[str, object]:
            return {
                "proposal": ledger.proposal.to_dict(),
                "sequence": ledger.sequence,
                "vote_count": ledger.vote_count,
                "comment_count": ledger.comment_count,
                "post_count": ledger.post_count,
                "author_count": ledger.author_count,
                "stats": ledger.voting_stats(),
            }

        return _read(summary)

    @app.get("/votes")
    def get_votes() -> List[Dict[str, object]]:
        return _read(lambda ledger: [vote.to_dict() for vote in ledger.votes()])

    @app.get("/comments")
    def get_comments() -> List[Dict[str, object]]:
        return _read(lambda ledger: [comment.to_dict() for comment in ledger.comments()])

    @app.get("/posts")
    def get_posts() -> List[Dict[str, object]]:
        return _read(lambda ledger: [post.to_dict() for post in ledger.posts()])

    @app.get("/nonces/{nonce}", response_model=MembershipResponse)
    def nonce_used(nonce: str) -> MembershipResponse:
        value = _parse_hex(nonce, "nonce")
        return MembershipResponse(value=nonce, member=_read(lambda ledger: ledger.is_nonce_used(value)))

    @app.get("/credentials/{user_hash}", response_model=MembershipResponse)
    def credential_used(user_hash: str) -> MembershipResponse:
        value = _parse_hex(user_hash, "user_hash")
        return MembershipResponse(value=user_hash, member=_read(lambda ledger: ledger.is_credential_used(value)))

    @app.get("/voters/{user_hash}", response_model=MembershipResponse)
    def has_voted(user_hash: str) -> MembershipResponse:
        value = _parse_hex(user_hash, "user_hash")
        return MembershipResponse(value=user_hash, member=_read(lambda ledger: ledger.has_voted(value)))

    @app.post("/credentials/issue")
    def issue(request: IssueRequest) -> Dict[str, object]:
        if request.user_hash:
            user_hash = _parse_hex(request.user_hash, "user_hash")
        elif request.identity:
            user_hash = create_user_hash(request.identity)
        else:
            raise HTTPException(status_code=400, detail="identity or user_hash is required")
        try:
            credential = authority.create_credential(user_hash, liveliness=request.liveliness)
        except CredentialError as exc:
            raise _rejection(exc) from exc
        return credential.to_dict()

    @app.post("/votes/for")
    def vote_for(request: CredentialRequest) -> Dict[str, object]:
        credential = _to_credential(request.credential)
        return _apply(lambda ledger: ledger.vote_for(credential)).to_dict()

    @app.post("/votes/against")
    def vote_against(request: CredentialRequest) -> Dict[str, object]:
        credential = _to_credential(request.credential)
        return _apply(lambda ledger: ledger.vote_against(credential)).to_dict()

    @app.post("/comments")
    def comment(request: CommentRequest) -> Dict[str, object]:
        credential = _to_credential(request.credential)
        timestamp = request.timestamp if request.timestamp is not None else int(time.time())
        return _apply(lambda ledger: ledger.comment_on_proposal(request.text, credential, timestamp)).to_dict()

    @app.post("/posts")
    def post(request: PostRequest) -> Dict[str, object]:
        credential = _to_credential(request.credential)
        author = create_author_bytes(request.author)
        timestamp = request.timestamp if request.timestamp is not None else int(time.time())
        return _apply(lambda ledger: ledger.post(request.message, timestamp, author, credential)).to_dict()

    @app.post("/proposal/execute", response_model=ExecuteResponse)
    def execute() -> ExecuteResponse:
        def run(ledger: GovernanceLedger) -> ExecuteResponse:
            outcome = ledger.execute_proposal()
            proposal = ledger.proposal
            return ExecuteResponse(
                executed=outcome.name,
                votes_for=proposal.votes_for,
                votes_against=proposal.votes_against,
            )

        return _apply(run)

    return app


app = create_app()


__all__ = ["app", "create_app"]
