"""
Tests for ballot sessions, submission and the registration commit.
"""
from typing import Optional

import pytest
from sqlalchemy import select

from verivote.core.capabilities import CollectorCapabilities
from verivote.core.security import RECEIPT_TAG, registration_digest, sign_message
from verivote.core.exceptions import (
    AuthenticationFailure,
    BallotRejected,
    ElectionNotReady,
    StorageAborted,
)
from verivote.models.ballot import BallotSession, SessionState, StoredBallotRecord
from verivote.models.registration import RegistrationEntry
from verivote.crypto.ballot_signing import sign_vote
from verivote.schemas.ballot import BallotSubmission, RegistrationReceipt, RegistrationRequest
from verivote.services.ballot_store import BallotLogReader
from verivote.services.registration_service import LocalRegistrationGateway, RegistrationGateway
from verivote.services.vote_collector import VoteCollector


class SilentGateway(RegistrationGateway):
    """A registration round trip that is always lost."""

    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        return None


class SlowGateway(RegistrationGateway):
    """Lets the clock run before answering."""

    def __init__(self, inner: RegistrationGateway, clock, ticks: int):
        self.inner = inner
        self.clock = clock
        self.ticks = ticks

    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        self.clock.advance(self.ticks)
        return await self.inner.register(request)


class ForgingGateway(RegistrationGateway):
    """Answers with a genuine signature over a different ballot hash."""

    def __init__(self, keyring):
        self.keyring = keyring

    async def register(self, request: RegistrationRequest) -> Optional[RegistrationReceipt]:
        return RegistrationReceipt(
            identifier=request.identifier,
            ballot_hash=request.ballot_hash,
            signature=sign_message(
                self.keyring.registration_private_pem,
                RECEIPT_TAG,
                registration_digest(request.identifier, "0" * 64),
            ),
        )


def resign(voter, ciphertext: str, challenge) -> BallotSubmission:
    """A submission of someone else's ciphertext under voter's own signature."""
    return BallotSubmission(
        voter_id=voter.identity,
        session_token=challenge.session_token,
        ciphertext=ciphertext,
        signature=sign_vote(voter.private_key_pem, voter.identity, challenge.session_token, ciphertext),
    )


def collector_with(test_db, keyring, clock, gateway, **kwargs) -> VoteCollector:
    kwargs.setdefault("challenge_mode", "token")
    kwargs.setdefault("freshness_ticks", 2)
    kwargs.setdefault("session_ttl_ticks", 10)
    kwargs.setdefault("require_proof", False)
    return VoteCollector(test_db, keyring, clock, gateway, **kwargs)


async def session_state(test_db, token: str) -> SessionState:
    result = await test_db.execute(select(BallotSession).where(BallotSession.session_token == token))
    return result.scalar_one().state


async def stored_count(test_db) -> int:
    result = await test_db.execute(select(StoredBallotRecord))
    return len(result.scalars().all())


class TestAuthentication:
    """Test cases for challenge-response session authentication."""

    @pytest.mark.asyncio
    async def test_challenge_and_authenticate(self, collector, make_voter, test_db):
        voter = await make_voter("voter-1")

        challenge = await collector.issue_challenge("voter-1")
        session = await collector.authenticate(voter.answer_challenge(challenge))

        assert challenge.counter is None
        assert session.state == SessionState.AUTHENTICATED
        assert await collector.get_authenticated_session("voter-1", challenge.session_token) is not None

    @pytest.mark.asyncio
    async def test_ineligible_voter(self, collector, issuer, test_election):
        await issuer.issue("outsider")

        with pytest.raises(AuthenticationFailure):
            await collector.issue_challenge("outsider")

    @pytest.mark.asyncio
    async def test_no_election(self, collector):
        with pytest.raises(ElectionNotReady):
            await collector.issue_challenge("voter-1")

    @pytest.mark.asyncio
    async def test_wrong_key_abandons_session(self, collector, make_voter, test_db):
        await make_voter("voter-1")
        impostor = await make_voter("voter-2")
        impostor.identity = "voter-1"

        challenge = await collector.issue_challenge("voter-1")
        with pytest.raises(AuthenticationFailure):
            await collector.authenticate(impostor.answer_challenge(challenge))

        assert await session_state(test_db, challenge.session_token) == SessionState.ABANDONED

    @pytest.mark.asyncio
    async def test_challenge_is_single_use(self, collector, make_voter):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")
        response = voter.answer_challenge(challenge)

        await collector.authenticate(response)
        with pytest.raises(AuthenticationFailure):
            await collector.authenticate(response)

    @pytest.mark.asyncio
    async def test_new_challenge_abandons_open_session(self, collector, make_voter, test_db):
        voter = await make_voter("voter-1")
        first = await collector.issue_challenge("voter-1")
        second = await collector.issue_challenge("voter-1")

        assert await session_state(test_db, first.session_token) == SessionState.ABANDONED
        with pytest.raises(AuthenticationFailure):
            await collector.authenticate(voter.answer_challenge(first))
        await collector.authenticate(voter.answer_challenge(second))

    @pytest.mark.asyncio
    async def test_expired_challenge(self, collector, make_voter, clock):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")

        clock.advance(11)

        with pytest.raises(AuthenticationFailure):
            await collector.authenticate(voter.answer_challenge(challenge))

    @pytest.mark.asyncio
    async def test_counter_mode(self, test_db, keyring, clock, registration_service, make_voter):
        collector = collector_with(
            test_db, keyring, clock, LocalRegistrationGateway(registration_service), challenge_mode="counter"
        )
        voter = await make_voter("voter-1")

        first = await collector.issue_challenge("voter-1")
        clock.advance()
        second = await collector.issue_challenge("voter-1")

        assert (first.counter, first.timestamp) == (1, 0)
        assert (second.counter, second.timestamp) == (2, 1)

        await collector.authenticate(voter.answer_challenge(second))
        # The app refuses to answer a counter it has already moved past
        with pytest.raises(AuthenticationFailure):
            voter.answer_challenge(first)

    def test_unknown_challenge_mode(self, test_db, keyring, clock):
        with pytest.raises(ValueError):
            collector_with(test_db, keyring, clock, SilentGateway(), challenge_mode="nonce")


class TestSubmission:
    """Test cases for ballot acceptance and storage."""

    @pytest.mark.asyncio
    async def test_cast_stores_final_ballot(self, collector, make_voter, cast_ballot, test_db, keyring):
        voter = await make_voter("voter-1")

        confirmation, code = await cast_ballot(voter, 2)

        reader = BallotLogReader(test_db)
        record = await reader.final_for("voter-1")
        assert record.identifier == confirmation.identifier == code.identifier
        assert record.receipt == confirmation.receipt
        assert record.sequence == 1
        assert record.is_final
        assert await session_state(test_db, confirmation.session_token) == SessionState.STORED

        entry = await test_db.get(RegistrationEntry, confirmation.identifier)
        assert entry.ballot_hash == record.ballot_hash

    @pytest.mark.asyncio
    async def test_revote_supersedes(self, make_voter, cast_ballot, test_db, clock):
        voter = await make_voter("voter-1")

        first, _ = await cast_ballot(voter, 1)
        clock.advance()
        second, _ = await cast_ballot(voter, 2)

        records = await BallotLogReader(test_db).records_for("voter-1")
        assert [r.identifier for r in records] == [first.identifier, second.identifier]
        assert [r.is_final for r in records] == [False, True]
        assert [r.sequence for r in records] == [1, 2]

    @pytest.mark.asyncio
    async def test_same_tick_revotes_ordered_by_sequence(self, make_voter, cast_ballot, test_db):
        voter = await make_voter("voter-1")

        await cast_ballot(voter, 1)
        await cast_ballot(voter, 2)
        last, _ = await cast_ballot(voter, 3)

        final = await BallotLogReader(test_db).final_for("voter-1")
        assert final.identifier == last.identifier
        assert final.sequence == 3

    @pytest.mark.asyncio
    async def test_duplicate_ciphertext_across_voters(self, collector, make_voter, test_db):
        alice = await make_voter("alice")
        bob = await make_voter("bob")

        challenge = await collector.issue_challenge("alice")
        await collector.authenticate(alice.answer_challenge(challenge))
        submission = alice.cast(1, challenge)
        await collector.submit_ballot(submission)

        # Bob replays Alice's ciphertext under his own signature
        challenge = await collector.issue_challenge("bob")
        await collector.authenticate(bob.answer_challenge(challenge))
        replay = resign(bob, submission.ciphertext, challenge)

        with pytest.raises(BallotRejected):
            await collector.submit_ballot(replay)

        assert await session_state(test_db, challenge.session_token) == SessionState.ABANDONED
        assert await BallotLogReader(test_db).records_for("bob") == []

    @pytest.mark.asyncio
    async def test_bad_vote_signature(self, collector, make_voter, test_db):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")
        await collector.authenticate(voter.answer_challenge(challenge))
        submission = voter.cast(1, challenge)
        other = voter.cast(2, challenge)

        with pytest.raises(BallotRejected):
            await collector.submit_ballot(submission.model_copy(update={"signature": other.signature}))

        assert await stored_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_unauthenticated_session(self, collector, make_voter):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")

        with pytest.raises(AuthenticationFailure):
            await collector.submit_ballot(voter.cast(1, challenge))

    @pytest.mark.asyncio
    async def test_session_single_submission(self, collector, make_voter, cast_ballot):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")
        await collector.authenticate(voter.answer_challenge(challenge))
        await collector.submit_ballot(voter.cast(1, challenge))

        with pytest.raises(AuthenticationFailure):
            await collector.submit_ballot(voter.cast(2, challenge))

    @pytest.mark.asyncio
    async def test_closed_election(self, collector, elections, make_voter, test_db):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")
        await collector.authenticate(voter.answer_challenge(challenge))
        await elections.close_election()

        with pytest.raises(ElectionNotReady):
            await collector.submit_ballot(voter.cast(1, challenge))

        assert await stored_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_proof_required(self, test_db, keyring, clock, registration_service, make_voter):
        collector = collector_with(
            test_db, keyring, clock, LocalRegistrationGateway(registration_service), require_proof=True
        )
        plain = await make_voter("voter-1")
        proving = await make_voter("voter-2", attach_proof=True)

        challenge = await collector.issue_challenge("voter-1")
        await collector.authenticate(plain.answer_challenge(challenge))
        with pytest.raises(BallotRejected):
            await collector.submit_ballot(plain.cast(1, challenge))

        challenge = await collector.issue_challenge("voter-2")
        await collector.authenticate(proving.answer_challenge(challenge))
        confirmation = await collector.submit_ballot(proving.cast(1, challenge))
        assert confirmation.identifier

    @pytest.mark.asyncio
    async def test_zero_randomness_is_not_replaced(self, collector, make_voter):
        voter = await make_voter("voter-1")
        challenge = await collector.issue_challenge("voter-1")
        await collector.authenticate(voter.answer_challenge(challenge))

        with pytest.raises(ValueError):
            voter.cast(1, challenge, randomness=0)


class TestRegistrationCommit:
    """Test cases for the two-phase registration commit."""

    @pytest.mark.asyncio
    async def test_lost_round_trip_aborts(self, test_db, keyring, clock, make_voter, cast_ballot):
        collector = collector_with(test_db, keyring, clock, SilentGateway())
        voter = await make_voter("voter-1")

        with pytest.raises(StorageAborted):
            await cast_ballot(voter, 1, via=collector)

        assert await stored_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_stale_acceptance_aborts(self, test_db, keyring, clock, registration_service, make_voter, cast_ballot):
        gateway = SlowGateway(LocalRegistrationGateway(registration_service), clock, ticks=3)
        collector = collector_with(test_db, keyring, clock, gateway)
        voter = await make_voter("voter-1")

        with pytest.raises(StorageAborted):
            await cast_ballot(voter, 1, via=collector)

        assert await stored_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_acceptance_within_freshness(self, test_db, keyring, clock, registration_service, make_voter, cast_ballot):
        gateway = SlowGateway(LocalRegistrationGateway(registration_service), clock, ticks=2)
        collector = collector_with(test_db, keyring, clock, gateway)
        voter = await make_voter("voter-1")

        confirmation, _ = await cast_ballot(voter, 1, via=collector)

        record = await BallotLogReader(test_db).get_by_identifier(confirmation.identifier)
        assert record.store_tick - record.accepted_tick == 2

    @pytest.mark.asyncio
    async def test_mismatching_receipt_aborts(self, test_db, keyring, clock, make_voter, cast_ballot):
        gateway = ForgingGateway(keyring)
        collector = collector_with(test_db, keyring, clock, gateway)
        voter = await make_voter("voter-1")

        with pytest.raises(StorageAborted):
            await cast_ballot(voter, 1, via=collector)

        assert await stored_count(test_db) == 0

    @pytest.mark.asyncio
    async def test_voter_can_retry_after_abort(self, test_db, keyring, clock, collector, make_voter, cast_ballot):
        lossy = collector_with(test_db, keyring, clock, SilentGateway())
        voter = await make_voter("voter-1")

        with pytest.raises(StorageAborted):
            await cast_ballot(voter, 1, via=lossy)
        confirmation, _ = await cast_ballot(voter, 1)

        record = await BallotLogReader(test_db).final_for("voter-1")
        assert record.identifier == confirmation.identifier
        assert record.sequence == 2


class TestCorruptedCollector:
    """A collector with checks switched off, against the honest components around it."""

    @pytest.mark.asyncio
    async def test_disabled_duplicate_weeding(self, test_db, keyring, clock, registration_service, make_voter):
        collector = collector_with(
            test_db,
            keyring,
            clock,
            LocalRegistrationGateway(registration_service),
            capabilities=CollectorCapabilities.without(["check_duplicates"]),
        )
        alice = await make_voter("alice")
        bob = await make_voter("bob")

        challenge = await collector.issue_challenge("alice")
        await collector.authenticate(alice.answer_challenge(challenge))
        submission = alice.cast(1, challenge)
        await collector.submit_ballot(submission)

        challenge = await collector.issue_challenge("bob")
        await collector.authenticate(bob.answer_challenge(challenge))
        await collector.submit_ballot(resign(bob, submission.ciphertext, challenge))

        reader = BallotLogReader(test_db)
        assert (await reader.final_for("bob")).ciphertext == submission.ciphertext
        result = await test_db.execute(select(BallotSession.ciphertext_hash))
        assert all(h is None for h in result.scalars().all())

    def test_unknown_check_name(self):
        with pytest.raises(ValueError):
            CollectorCapabilities.without(["check_everything"])

    def test_honest_flag(self):
        assert CollectorCapabilities().honest
        assert not CollectorCapabilities.without(["check_receipt"]).honest
