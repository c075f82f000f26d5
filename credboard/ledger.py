"""Credential-gated proposal, voting, comment and bulletin-board ledger.

Every state-changing operation is applied to a copy of the ledger state and
only replaces the live state once it has fully succeeded. A rejected
operation therefore leaves no trace: counters, replay sets and the proposal
are exactly as they were before the call.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Set

from .constants import AUTHOR_BYTES, DEFAULT_MIN_LIVELINESS, MAX_LIVELINESS, USER_HASH_BYTES
from .crypto import CurvePoint, require_length
from .errors import AlreadyExecuted, AlreadyVoted, CredentialError, InvalidInput, NotAuthority
from .signer import SecretKeyProvider, Signature, derive_public_key, sign
from .verifier import Credential, CredentialVerifier, verify_credential

logger = logging.getLogger(__name__)

MAX_UINT64 = 2**64 - 1


class ProposalStatus(IntEnum):
    ACTIVE = 0
    REJECTED = 1
    PASSED = 2


@dataclass(frozen=True)
class LedgerParams:
    """Genesis parameters, fixed for the lifetime of a ledger."""

    min_liveliness: int = DEFAULT_MIN_LIVELINESS
    proposer: bytes = bytes(USER_HASH_BYTES)
    description: str = ""
    deadline: int = 0

    def __post_init__(self) -> None:
        require_length(self.proposer, USER_HASH_BYTES, "proposer")
        if not 0 <= self.min_liveliness <= MAX_LIVELINESS:
            raise InvalidInput(f"min_liveliness must lie between 0 and {MAX_LIVELINESS}")
        if not 0 <= self.deadline <= MAX_UINT64:
            raise InvalidInput("deadline must be an unsigned 64-bit integer")

    def to_dict(self) -> Dict[str, object]:
        return {
            "min_liveliness": self.min_liveliness,
            "proposer": self.proposer.hex(),
            "description": self.description,
            "deadline": self.deadline,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "LedgerParams":
        return LedgerParams(
            min_liveliness=int(data["min_liveliness"]),  # type: ignore[arg-type]
            proposer=bytes.fromhex(data["proposer"]),  # type: ignore[arg-type]
            description=str(data["description"]),
            deadline=int(data["deadline"]),  # type: ignore[arg-type]
        )


@dataclass
class Proposal:
    id: int
    description: str
    proposer: bytes
    deadline: int
    votes_for: int = 0
    votes_against: int = 0
    executed: ProposalStatus = ProposalStatus.ACTIVE

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "description": self.description,
            "proposer": self.proposer.hex(),
            "deadline": self.deadline,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "executed": self.executed.name,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Proposal":
        return Proposal(
            id=int(data["id"]),  # type: ignore[arg-type]
            description=str(data["description"]),
            proposer=bytes.fromhex(data["proposer"]),  # type: ignore[arg-type]
            deadline=int(data["deadline"]),  # type: ignore[arg-type]
            votes_for=int(data["votes_for"]),  # type: ignore[arg-type]
            votes_against=int(data["votes_against"]),  # type: ignore[arg-type]
            executed=ProposalStatus[str(data["executed"])],
        )


@dataclass(frozen=True)
class Vote:
    proposal_id: int
    voter_hash: bytes
    vote_type: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "proposal_id": self.proposal_id,
            "voter_hash": self.voter_hash.hex(),
            "vote_type": self.vote_type,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Vote":
        return Vote(
            proposal_id=int(data["proposal_id"]),  # type: ignore[arg-type]
            voter_hash=bytes.fromhex(data["voter_hash"]),  # type: ignore[arg-type]
            vote_type=bool(data["vote_type"]),
        )


@dataclass(frozen=True)
class Comment:
    proposal_id: int
    text: str
    user_hash: bytes
    timestamp: int
    sequence_id: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "proposal_id": self.proposal_id,
            "text": self.text,
            "user_hash": self.user_hash.hex(),
            "timestamp": self.timestamp,
            "sequence_id": self.sequence_id,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Comment":
        return Comment(
            proposal_id=int(data["proposal_id"]),  # type: ignore[arg-type]
            text=str(data["text"]),
            user_hash=bytes.fromhex(data["user_hash"]),  # type: ignore[arg-type]
            timestamp=int(data["timestamp"]),  # type: ignore[arg-type]
            sequence_id=int(data["sequence_id"]),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class Post:
    message: str
    user_hash: bytes
    timestamp: int
    sequence_id: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "message": self.message,
            "user_hash": self.user_hash.hex(),
            "timestamp": self.timestamp,
            "sequence_id": self.sequence_id,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Post":
        return Post(
            message=str(data["message"]),
            user_hash=bytes.fromhex(data["user_hash"]),  # type: ignore[arg-type]
            timestamp=int(data["timestamp"]),  # type: ignore[arg-type]
            sequence_id=int(data["sequence_id"]),  # type: ignore[arg-type]
        )


def _sorted_hex(values: Set[bytes]) -> List[str]:
    return sorted(value.hex() for value in values)


@dataclass
class LedgerState:
    """Everything the ledger owns. Sets serialize in sorted order."""

    params: LedgerParams
    authority_pk: CurvePoint
    proposal: Proposal
    sequence: int = 0
    votes: List[Vote] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)
    posts: Dict[int, Post] = field(default_factory=dict)
    authors: Set[bytes] = field(default_factory=set)
    used_nonces: Set[bytes] = field(default_factory=set)
    used_credentials: Set[bytes] = field(default_factory=set)
    voters: Set[bytes] = field(default_factory=set)

    @staticmethod
    def genesis(params: LedgerParams, authority_pk: CurvePoint) -> "LedgerState":
        proposal = Proposal(
            id=0,
            description=params.description,
            proposer=params.proposer,
            deadline=params.deadline,
        )
        return LedgerState(params=params, authority_pk=authority_pk, proposal=proposal)

    def to_dict(self) -> Dict[str, object]:
        return {
            "params": self.params.to_dict(),
            "authority_pk": self.authority_pk.to_dict(),
            "proposal": self.proposal.to_dict(),
            "sequence": self.sequence,
            "votes": [vote.to_dict() for vote in self.votes],
            "comments": [comment.to_dict() for comment in self.comments],
            "posts": [self.posts[key].to_dict() for key in sorted(self.posts)],
            "authors": _sorted_hex(self.authors),
            "used_nonces": _sorted_hex(self.used_nonces),
            "used_credentials": _sorted_hex(self.used_credentials),
            "voters": _sorted_hex(self.voters),
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "LedgerState":
        posts = [Post.from_dict(raw) for raw in data.get("posts", [])]  # type: ignore[union-attr]
        return LedgerState(
            params=LedgerParams.from_dict(data["params"]),  # type: ignore[arg-type]
            authority_pk=CurvePoint.from_dict(data["authority_pk"]),  # type: ignore[arg-type]
            proposal=Proposal.from_dict(data["proposal"]),  # type: ignore[arg-type]
            sequence=int(data.get("sequence", 0)),  # type: ignore[arg-type]
            votes=[Vote.from_dict(raw) for raw in data.get("votes", [])],  # type: ignore[union-attr]
            comments=[Comment.from_dict(raw) for raw in data.get("comments", [])],  # type: ignore[union-attr]
            posts={post.sequence_id: post for post in posts},
            authors={bytes.fromhex(value) for value in data.get("authors", [])},  # type: ignore[union-attr]
            used_nonces={bytes.fromhex(value) for value in data.get("used_nonces", [])},  # type: ignore[union-attr]
            used_credentials={
                bytes.fromhex(value) for value in data.get("used_credentials", [])  # type: ignore[union-attr]
            },
            voters={bytes.fromhex(value) for value in data.get("voters", [])},  # type: ignore[union-attr]
        )


class GovernanceLedger:
    """Proposal ledger whose transitions require valid, unused credentials.

    ``secret_key_provider`` supplies the local party's key. At genesis it
    determines the authority public key; afterwards it decides whether the
    caller may issue credentials and execute the proposal.
    """

    def __init__(
        self,
        params: LedgerParams,
        secret_key_provider: SecretKeyProvider,
        *,
        state: Optional[LedgerState] = None,
    ) -> None:
        self._provider = secret_key_provider
        if state is None:
            state = LedgerState.genesis(params, derive_public_key(secret_key_provider()))
            logger.info("ledger created with authority %s", hex(state.authority_pk.x)[:18])
        self._state = state

    @classmethod
    def from_state(cls, state: LedgerState, secret_key_provider: SecretKeyProvider) -> "GovernanceLedger":
        return cls(state.params, secret_key_provider, state=state)

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[LedgerState]:
        working = copy.deepcopy(self._state)
        try:
            yield working
        except CredentialError as exc:
            logger.warning("%s rejected: %s %s", operation, exc.code, exc.message)
            raise
        self._state = working

    def _require_authority(self, action: str) -> bytes:
        secret = self._provider()
        if derive_public_key(secret) != self._state.authority_pk:
            raise NotAuthority(f"only authority can {action}")
        return secret

    def switch_user(self, secret_key_provider: SecretKeyProvider) -> None:
        """Act as a different local party. The authority key is unaffected."""

        self._provider = secret_key_provider

    # -- operations ---------------------------------------------------------

    def issue_credential(self, user_hash: bytes) -> Signature:
        try:
            secret = self._require_authority("issue credentials")
        except NotAuthority as exc:
            logger.warning("issue_credential rejected: %s", exc.code)
            raise
        signature = sign(secret, user_hash)
        logger.info("credential issued for %s", user_hash.hex()[:16])
        return signature

    def _vote(self, credential: Credential, in_favor: bool) -> Vote:
        with self._transaction("vote") as state:
            proposal = state.proposal
            if proposal.executed != ProposalStatus.ACTIVE:
                raise AlreadyExecuted("voting on this proposal is closed")
            if credential.user_hash in state.voters:
                raise AlreadyVoted()
            verify_credential(state, credential)

            vote = Vote(proposal_id=proposal.id, voter_hash=credential.user_hash, vote_type=in_favor)
            state.votes.append(vote)
            if in_favor:
                proposal.votes_for += 1
            else:
                proposal.votes_against += 1
            state.voters.add(credential.user_hash)
        logger.info("vote %s recorded for %s", "for" if in_favor else "against", credential.user_hash.hex()[:16])
        return vote

    def vote_for(self, credential: Credential) -> Vote:
        return self._vote(credential, True)

    def vote_against(self, credential: Credential) -> Vote:
        return self._vote(credential, False)

    def comment_on_proposal(self, text: str, credential: Credential, timestamp: int = 0) -> Comment:
        if not 0 <= timestamp <= MAX_UINT64:
            raise InvalidInput("timestamp must be an unsigned 64-bit integer")
        with self._transaction("comment") as state:
            verify_credential(state, credential)
            comment = Comment(
                proposal_id=state.proposal.id,
                text=text,
                user_hash=credential.user_hash,
                timestamp=timestamp,
                sequence_id=state.sequence,
            )
            state.comments.append(comment)
            state.sequence += 1
        logger.info("comment %d added", comment.sequence_id)
        return comment

    def post(self, message: str, timestamp: int, author: bytes, credential: Credential) -> Post:
        author = require_length(author, AUTHOR_BYTES, "author")
        if not 0 <= timestamp <= MAX_UINT64:
            raise InvalidInput("timestamp must be an unsigned 64-bit integer")
        with self._transaction("post") as state:
            verify_credential(state, credential)
            new_post = Post(
                message=message,
                user_hash=credential.user_hash,
                timestamp=timestamp,
                sequence_id=state.sequence,
            )
            state.posts[new_post.sequence_id] = new_post
            state.authors.add(author)
            state.sequence += 1
        logger.info("post %d added", new_post.sequence_id)
        return new_post

    def execute_proposal(self) -> ProposalStatus:
        """Close the proposal. Ties are rejected."""

        with self._transaction("execute_proposal") as state:
            self._require_authority("execute the proposal")
            proposal = state.proposal
            if proposal.executed != ProposalStatus.ACTIVE:
                raise AlreadyExecuted()
            if proposal.votes_for > proposal.votes_against:
                proposal.executed = ProposalStatus.PASSED
            else:
                proposal.executed = ProposalStatus.REJECTED
            outcome = proposal.executed
        logger.info(
            "proposal %d executed: %s (%d for, %d against)",
            proposal.id,
            outcome.name,
            proposal.votes_for,
            proposal.votes_against,
        )
        return outcome

    # -- queries ------------------------------------------------------------

    @property
    def params(self) -> LedgerParams:
        return self._state.params

    @property
    def authority_pk(self) -> CurvePoint:
        return self._state.authority_pk

    @property
    def sequence(self) -> int:
        return self._state.sequence

    @property
    def proposal(self) -> Proposal:
        return copy.copy(self._state.proposal)

    @property
    def vote_count(self) -> int:
        return len(self._state.votes)

    @property
    def comment_count(self) -> int:
        return len(self._state.comments)

    @property
    def post_count(self) -> int:
        return len(self._state.posts)

    @property
    def author_count(self) -> int:
        return len(self._state.authors)

    def is_nonce_used(self, nonce: bytes) -> bool:
        return bytes(nonce) in self._state.used_nonces

    def is_credential_used(self, user_hash: bytes) -> bool:
        return bytes(user_hash) in self._state.used_credentials

    def has_voted(self, user_hash: bytes) -> bool:
        return bytes(user_hash) in self._state.voters

    def is_authority(self) -> bool:
        return derive_public_key(self._provider()) == self._state.authority_pk

    def votes(self) -> List[Vote]:
        return list(self._state.votes)

    def comments(self) -> List[Comment]:
        """Comments, newest first."""

        return list(reversed(self._state.comments))

    def posts(self) -> List[Post]:
        return [self._state.posts[key] for key in sorted(self._state.posts)]

    def voting_stats(self) -> Dict[str, int]:
        proposal = self._state.proposal
        return {
            "for_votes": proposal.votes_for,
            "against_votes": proposal.votes_against,
            "total_votes": len(self._state.votes),
            "total_comments": len(self._state.comments),
        }

    def deadline_passed(self, now: int) -> bool:
        """Compare a caller-supplied time with the deadline. Zero means none."""

        deadline = self._state.params.deadline
        return deadline != 0 and now > deadline

    def verifier(self) -> CredentialVerifier:
        return CredentialVerifier(self._state.authority_pk, self._state.params.min_liveliness)

    def snapshot(self) -> LedgerState:
        return copy.deepcopy(self._state)

    def to_dict(self) -> Dict[str, object]:
        return self._state.to_dict()


__all__ = [
    "Comment",
    "GovernanceLedger",
    "LedgerParams",
    "LedgerState",
    "Post",
    "Proposal",
    "ProposalStatus",
    "Vote",
]
