import dataclasses
import unittest

from credboard.authority import AuthorityService, create_author_bytes, create_user_hash, hashed_user_hash
from credboard.constants import N
from credboard.errors import (
    AlreadyExecuted,
    AlreadyVoted,
    InsufficientLiveliness,
    InvalidInput,
    InvalidKey,
    NonceReused,
    NotAuthority,
    SignatureInvalid,
)
from credboard.ledger import GovernanceLedger, LedgerParams, LedgerState, ProposalStatus
from credboard.signer import StaticSecretKeyProvider, derive_public_key

AUTHORITY_KEY = bytes([0x11]) * 32
USER_KEY = bytes([0x42]) * 32
PROPOSER = create_user_hash("proposer")


def make_ledger(min_liveliness: int = 60) -> GovernanceLedger:
    params = LedgerParams(
        min_liveliness=min_liveliness,
        proposer=PROPOSER,
        description="Should we implement feature X?",
        deadline=86400000,
    )
    return GovernanceLedger(params, StaticSecretKeyProvider(AUTHORITY_KEY))


class LedgerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.ledger = make_ledger()
        self.authority = AuthorityService(AUTHORITY_KEY)

    def credential(self, identity: str, liveliness: int = 100):
        user_hash = create_user_hash(identity)
        signature = self.ledger.issue_credential(user_hash)
        return self.authority.create_credential(user_hash, signature, liveliness)


class TestGenesis(LedgerTestCase):
    def test_initial_state(self) -> None:
        self.assertEqual(self.ledger.sequence, 0)
        self.assertEqual(self.ledger.vote_count, 0)
        self.assertEqual(self.ledger.comment_count, 0)
        self.assertEqual(self.ledger.post_count, 0)
        self.assertEqual(self.ledger.author_count, 0)
        self.assertEqual(self.ledger.authority_pk, derive_public_key(AUTHORITY_KEY))

        proposal = self.ledger.proposal
        self.assertEqual(proposal.id, 0)
        self.assertEqual(proposal.description, "Should we implement feature X?")
        self.assertEqual(proposal.proposer, PROPOSER)
        self.assertEqual(proposal.deadline, 86400000)
        self.assertEqual((proposal.votes_for, proposal.votes_against), (0, 0))
        self.assertEqual(proposal.executed, ProposalStatus.ACTIVE)

    def test_zero_authority_key_rejected(self) -> None:
        with self.assertRaises(InvalidKey):
            GovernanceLedger(LedgerParams(), StaticSecretKeyProvider(bytes(32)))

    def test_invalid_params_rejected(self) -> None:
        with self.assertRaises(InvalidInput):
            LedgerParams(proposer=b"short")
        with self.assertRaises(InvalidInput):
            LedgerParams(deadline=2**64)

    def test_deadline_is_compared_with_supplied_time(self) -> None:
        self.assertFalse(self.ledger.deadline_passed(86400000))
        self.assertTrue(self.ledger.deadline_passed(86400001))
        self.assertFalse(GovernanceLedger(LedgerParams(), StaticSecretKeyProvider(AUTHORITY_KEY)).deadline_passed(1))


class TestIssuance(LedgerTestCase):
    def test_issued_credential_matches_authority_service(self) -> None:
        user_hash = create_user_hash("alice@example.com")
        self.assertEqual(self.ledger.issue_credential(user_hash), self.authority.issue_credential(user_hash))

    def test_only_authority_issues(self) -> None:
        self.ledger.switch_user(StaticSecretKeyProvider(USER_KEY))
        self.assertFalse(self.ledger.is_authority())
        with self.assertRaises(NotAuthority):
            self.ledger.issue_credential(create_user_hash("unauthorized@example.com"))


class TestVoting(LedgerTestCase):
    def test_vote_for(self) -> None:
        vote = self.ledger.vote_for(self.credential("alice@example.com"))
        self.assertEqual(vote.proposal_id, 0)
        self.assertTrue(vote.vote_type)
        self.assertEqual(self.ledger.vote_count, 1)
        self.assertEqual(self.ledger.proposal.votes_for, 1)
        self.assertEqual(self.ledger.proposal.votes_against, 0)

    def test_vote_against(self) -> None:
        self.ledger.vote_against(self.credential("bob@example.com"))
        self.assertEqual(self.ledger.proposal.votes_against, 1)
        self.assertFalse(self.ledger.votes()[0].vote_type)

    def test_mixed_votes(self) -> None:
        for identity in ("alice@example.com", "bob@example.com", "charlie@example.com"):
            self.ledger.vote_for(self.credential(identity))
        for identity in ("diana@example.com", "eve@example.com"):
            self.ledger.vote_against(self.credential(identity))
        self.assertEqual(
            self.ledger.voting_stats(),
            {"for_votes": 3, "against_votes": 2, "total_votes": 5, "total_comments": 0},
        )

    def test_second_vote_from_same_identity_rejected(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        with self.assertRaises(AlreadyVoted):
            self.ledger.vote_for(self.credential("alice@example.com"))
        with self.assertRaises(AlreadyVoted):
            self.ledger.vote_against(self.credential("alice@example.com"))
        self.assertEqual(self.ledger.vote_count, 1)
        self.assertEqual(self.ledger.proposal.votes_for, 1)
        self.assertEqual(self.ledger.proposal.votes_against, 0)

    def test_voter_registry(self) -> None:
        user_hash = create_user_hash("alice@example.com")
        self.assertFalse(self.ledger.has_voted(user_hash))
        credential = self.credential("alice@example.com")
        self.ledger.vote_for(credential)
        self.assertTrue(self.ledger.has_voted(user_hash))
        self.assertTrue(self.ledger.is_credential_used(user_hash))
        self.assertTrue(self.ledger.is_nonce_used(credential.authority_signature.nonce))

    def test_lively_enough_credential_required(self) -> None:
        with self.assertRaises(InsufficientLiveliness):
            self.ledger.vote_for(self.credential("sleepy@example.com", liveliness=60))
        self.ledger.vote_for(self.credential("awake@example.com", liveliness=61))
        self.assertEqual(self.ledger.vote_count, 1)

    def test_forged_credential_leaves_ledger_unchanged(self) -> None:
        credential = self.credential("alice@example.com")
        signature = dataclasses.replace(
            credential.authority_signature, s=(credential.authority_signature.s + 1) % N
        )
        forged = dataclasses.replace(credential, authority_signature=signature)
        before = self.ledger.to_dict()
        with self.assertRaises(SignatureInvalid):
            self.ledger.vote_for(forged)
        self.assertEqual(self.ledger.to_dict(), before)

    def test_verifier_checks_without_consuming(self) -> None:
        credential = self.credential("dora@example.com")
        signature = dataclasses.replace(
            credential.authority_signature, s=(credential.authority_signature.s + 1) % N
        )
        verifier = self.ledger.verifier()
        self.assertEqual(verifier.min_liveliness, 60)
        self.assertTrue(verifier.is_valid(credential))
        self.assertFalse(verifier.is_valid(dataclasses.replace(credential, authority_signature=signature)))
        self.assertFalse(self.ledger.is_nonce_used(credential.authority_signature.nonce))
        self.ledger.vote_for(credential)
        self.assertEqual(self.ledger.vote_count, 1)

    def test_snapshot_is_detached(self) -> None:
        self.ledger.vote_for(self.credential("erin@example.com"))
        snapshot = self.ledger.snapshot()
        self.assertEqual(snapshot.to_dict(), self.ledger.to_dict())
        snapshot.voters.add(create_user_hash("mallory@example.com"))
        snapshot.proposal.votes_for += 10
        self.assertFalse(self.ledger.has_voted(create_user_hash("mallory@example.com")))
        self.assertEqual(self.ledger.proposal.votes_for, 1)


class TestCommentsAndPosts(LedgerTestCase):
    def test_comments_are_newest_first(self) -> None:
        self.ledger.comment_on_proposal("Great idea!", self.credential("alice@example.com"))
        self.ledger.comment_on_proposal("I have concerns about...", self.credential("bob@example.com"))
        self.ledger.comment_on_proposal("What about the cost?", self.credential("charlie@example.com"))

        self.assertEqual(self.ledger.comment_count, 3)
        self.assertEqual(
            [comment.text for comment in self.ledger.comments()],
            ["What about the cost?", "I have concerns about...", "Great idea!"],
        )
        self.assertEqual(self.ledger.sequence, 3)

    def test_sequence_is_shared_by_comments_and_posts(self) -> None:
        first = self.ledger.comment_on_proposal("first", self.credential("alice@example.com"), timestamp=10)
        post = self.ledger.post(
            "hello board",
            20,
            create_author_bytes("Bob"),
            self.credential("bob@example.com"),
        )
        third = self.ledger.comment_on_proposal("third", self.credential("charlie@example.com"), timestamp=30)

        self.assertEqual([first.sequence_id, post.sequence_id, third.sequence_id], [0, 1, 2])
        self.assertEqual(self.ledger.post_count, 1)
        self.assertEqual(self.ledger.posts()[0].message, "hello board")
        self.assertEqual(self.ledger.posts()[0].timestamp, 20)

    def test_authors_are_tracked_as_a_set(self) -> None:
        author = create_author_bytes("Alice Smith")
        self.ledger.post("one", 1, author, self.credential("alice1@example.com"))
        self.ledger.post("two", 2, author, self.credential("alice2@example.com"))
        self.assertEqual(self.ledger.post_count, 2)
        self.assertEqual(self.ledger.author_count, 1)

    def test_post_requires_full_author_bytes(self) -> None:
        with self.assertRaises(InvalidInput):
            self.ledger.post("hi", 1, b"Alice", self.credential("alice@example.com"))
        self.assertEqual(self.ledger.sequence, 0)

    def test_voting_credential_cannot_be_reused_for_comment(self) -> None:
        credential = self.credential("alice@example.com")
        self.ledger.vote_for(credential)
        with self.assertRaises(NonceReused):
            self.ledger.comment_on_proposal("again", credential)
        self.assertEqual(self.ledger.comment_count, 0)
        self.assertEqual(self.ledger.sequence, 0)

    def test_vote_and_comment_with_separate_identities(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        self.ledger.comment_on_proposal("Voting for because...", self.credential("alice2@example.com"))
        self.assertEqual(self.ledger.voting_stats()["total_comments"], 1)
        self.assertEqual(self.ledger.proposal.votes_for, 1)


class TestExecution(LedgerTestCase):
    def test_majority_for_passes(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        self.ledger.vote_for(self.credential("bob@example.com"))
        self.ledger.vote_against(self.credential("charlie@example.com"))
        self.assertEqual(self.ledger.execute_proposal(), ProposalStatus.PASSED)
        self.assertEqual(self.ledger.proposal.executed, ProposalStatus.PASSED)

    def test_majority_against_rejects(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        self.ledger.vote_against(self.credential("bob@example.com"))
        self.ledger.vote_against(self.credential("charlie@example.com"))
        self.assertEqual(self.ledger.execute_proposal(), ProposalStatus.REJECTED)

    def test_tie_is_rejected(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        self.ledger.vote_against(self.credential("bob@example.com"))
        self.assertEqual(self.ledger.execute_proposal(), ProposalStatus.REJECTED)

    def test_no_votes_is_rejected(self) -> None:
        self.assertEqual(self.ledger.execute_proposal(), ProposalStatus.REJECTED)

    def test_execution_is_terminal(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        self.ledger.execute_proposal()
        with self.assertRaises(AlreadyExecuted):
            self.ledger.execute_proposal()

        late = self.credential("late@example.com")
        with self.assertRaises(AlreadyExecuted):
            self.ledger.vote_against(late)
        self.assertFalse(self.ledger.is_nonce_used(late.authority_signature.nonce))
        self.assertEqual(self.ledger.proposal.executed, ProposalStatus.PASSED)

    def test_only_authority_executes(self) -> None:
        self.ledger.switch_user(StaticSecretKeyProvider(USER_KEY))
        with self.assertRaises(NotAuthority):
            self.ledger.execute_proposal()
        self.assertEqual(self.ledger.proposal.executed, ProposalStatus.ACTIVE)

        self.ledger.switch_user(StaticSecretKeyProvider(AUTHORITY_KEY))
        self.assertEqual(self.ledger.execute_proposal(), ProposalStatus.REJECTED)


class TestEndToEnd(unittest.TestCase):
    def run_scenario(self, user_hash: bytes) -> None:
        ledger = make_ledger()
        authority = AuthorityService(AUTHORITY_KEY)
        credential = authority.create_credential(user_hash)

        ledger.vote_for(credential)
        self.assertEqual(ledger.proposal.votes_for, 1)

        with self.assertRaises(AlreadyVoted):
            ledger.vote_for(authority.create_credential(user_hash))

        self.assertEqual(ledger.execute_proposal(), ProposalStatus.PASSED)
        self.assertEqual((ledger.proposal.votes_for, ledger.proposal.votes_against), (1, 0))

    def test_padded_identity(self) -> None:
        self.run_scenario(create_user_hash("alice"))

    def test_hashed_identity(self) -> None:
        self.run_scenario(hashed_user_hash("alice"))


class TestSerialization(LedgerTestCase):
    def test_state_round_trip(self) -> None:
        self.ledger.vote_for(self.credential("alice@example.com"))
        self.ledger.comment_on_proposal("hi", self.credential("bob@example.com"), timestamp=5)
        self.ledger.post("msg", 6, create_author_bytes("Carol"), self.credential("carol@example.com"))

        payload = self.ledger.to_dict()
        restored = GovernanceLedger.from_state(
            LedgerState.from_dict(payload),
            StaticSecretKeyProvider(AUTHORITY_KEY),
        )
        self.assertEqual(restored.to_dict(), payload)
        self.assertEqual(payload["used_nonces"], sorted(payload["used_nonces"]))
        self.assertTrue(restored.has_voted(create_user_hash("alice@example.com")))


if __name__ == "__main__":
    unittest.main()
