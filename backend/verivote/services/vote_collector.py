"""
Vote collector: authenticates ballot sessions, weeds and checks
submitted ballots, drives the registration commit and appends accepted
ballots to the voter's log.

Session lifecycle:

    CHALLENGE_ISSUED -> AUTHENTICATED -> ACCEPTED -> STORED
            \\                  \\             \\
             +-------------------+-------------+--> ABANDONED

Every failed check abandons the session; the voter re-authenticates to
try again.
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.capabilities import CollectorCapabilities
from verivote.core.config import settings
from verivote.core.exceptions import (
    AuthenticationFailure,
    BallotRejected,
    ElectionNotReady,
    StorageAborted,
)
from verivote.core.keyring import ServiceKeyring
from verivote.core.security import (
    compute_ballot_hash,
    generate_challenge_token,
    generate_identifier,
    hash_ciphertext,
)
from verivote.crypto.ballot_signing import verify_auth, verify_vote
from verivote.crypto.zkp.proof_system import ProofSystem, get_proof_system
from verivote.models.ballot import OPEN_STATES, BallotSession, SessionState, StoredBallotRecord
from verivote.schemas.ballot import BallotSubmission, RegistrationRequest, StorageConfirmation
from verivote.schemas.session import AuthChallenge, AuthResponse
from verivote.services.ballot_store import BallotStore
from verivote.services.election_service import ElectionService
from verivote.services.identity_service import CredentialStore
from verivote.services.notifier import LoggingNotifier, VoterNotifier
from verivote.services.registration_service import (
    RegistrationGateway,
    sign_registration_request,
    verify_receipt,
)
from verivote.services.time_oracle import TimeOracle


logger = logging.getLogger(__name__)

CHALLENGE_MODES = ("token", "counter")


class VoteCollector:
    """Service for ballot sessions and ballot submission."""

    def __init__(
        self,
        db: AsyncSession,
        keyring: ServiceKeyring,
        clock: TimeOracle,
        registration: RegistrationGateway,
        capabilities: Optional[CollectorCapabilities] = None,
        proof_system: Optional[ProofSystem] = None,
        notifier: Optional[VoterNotifier] = None,
        challenge_mode: Optional[str] = None,
        session_ttl_ticks: Optional[int] = None,
        freshness_ticks: Optional[int] = None,
        require_proof: Optional[bool] = None,
        notify_on_store: Optional[bool] = None,
    ):
        self.db = db
        self.keyring = keyring
        self.clock = clock
        self.registration = registration
        self.capabilities = capabilities or CollectorCapabilities()
        self.proof_system = proof_system or get_proof_system()
        self.notifier = notifier or LoggingNotifier()

        self.challenge_mode = challenge_mode or settings.SESSION_CHALLENGE_MODE
        if self.challenge_mode not in CHALLENGE_MODES:
            raise ValueError(f"Unknown challenge mode {self.challenge_mode!r}")
        self.session_ttl_ticks = (
            settings.SESSION_TTL_TICKS if session_ttl_ticks is None else session_ttl_ticks
        )
        self.freshness_ticks = (
            settings.REGISTRATION_FRESHNESS_TICKS if freshness_ticks is None else freshness_ticks
        )
        self.require_proof = settings.REQUIRE_BALLOT_PROOF if require_proof is None else require_proof
        self.notify_on_store = (
            (not settings.VERIFICATION_REQUIRES_FINAL) if notify_on_store is None else notify_on_store
        )

        self.store = BallotStore(db)
        self.credentials = CredentialStore(db, keyring)
        self.elections = ElectionService(db, clock)

    # Authentication

    async def issue_challenge(self, voter_id: str) -> AuthChallenge:
        """
        Open a ballot session for voter_id.

        Unfinished sessions of the voter are abandoned. A session whose
        ballot is in the middle of its registration commit blocks new
        sessions until it is stored or abandoned.
        """
        await self.elections.require_active_election()

        if not await self.elections.is_eligible(voter_id):
            logger.info("Challenge refused: %s is not an eligible voter", voter_id)
            raise AuthenticationFailure("Not an eligible voter")

        result = await self.db.execute(
            select(BallotSession).where(
                BallotSession.voter_id == voter_id,
                BallotSession.state.in_(OPEN_STATES + (SessionState.ACCEPTED,))
            )
        )
        for pending in result.scalars().all():
            if pending.state == SessionState.ACCEPTED:
                logger.info("Challenge refused: voter %s has a submission in flight", voter_id)
                raise AuthenticationFailure("A submission for this voter is still in flight")
            pending.state = SessionState.ABANDONED

        last_ordinal = await self.db.scalar(
            select(func.max(BallotSession.ordinal)).where(BallotSession.voter_id == voter_id)
        )
        now = self.clock.current_tick()

        session = BallotSession(
            voter_id=voter_id,
            session_token=generate_challenge_token(),
            ordinal=(last_ordinal or 0) + 1,
            issued_tick=now,
            state=SessionState.CHALLENGE_ISSUED,
        )
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise AuthenticationFailure("Concurrent session for this voter")

        counter, timestamp = self.session_fields(session)
        logger.debug("Issued challenge #%d to voter %s", session.ordinal, voter_id)
        return AuthChallenge(
            voter_id=voter_id,
            session_token=session.session_token,
            counter=counter,
            timestamp=timestamp,
        )

    async def authenticate(self, response: AuthResponse) -> BallotSession:
        """Check the voter's signature over the challenge."""
        session = await self._get_session(response.voter_id, response.session_token)
        if session is None or session.state != SessionState.CHALLENGE_ISSUED:
            raise AuthenticationFailure("No open challenge for this session")

        if self._expired(session):
            await self._abandon(session)
            raise AuthenticationFailure("Challenge expired")

        counter, timestamp = self.session_fields(session)
        public_key = await self.credentials.certified_key(session.voter_id)
        if public_key is None:
            await self._abandon(session)
            raise AuthenticationFailure("No certified key for voter")

        if self.capabilities.check_auth_signature and not verify_auth(
            public_key, response.signature, session.voter_id, session.session_token, counter, timestamp
        ):
            await self._abandon(session)
            logger.info("Authentication failed for voter %s", session.voter_id)
            raise AuthenticationFailure("Challenge signature does not verify")

        session.state = SessionState.AUTHENTICATED
        session.authenticated_tick = self.clock.current_tick()
        await self.db.commit()

        logger.info("Voter %s authenticated session #%d", session.voter_id, session.ordinal)
        return session

    async def get_authenticated_session(self, voter_id: str, session_token: str) -> Optional[BallotSession]:
        session = await self._get_session(voter_id, session_token)
        if session is None or session.state != SessionState.AUTHENTICATED:
            return None
        return session

    def session_fields(self, session: BallotSession) -> Tuple[Optional[int], Optional[int]]:
        """(counter, timestamp) the voter signs; both None in token mode."""
        if self.challenge_mode == "counter":
            return session.ordinal, session.issued_tick
        return None, None

    # Submission

    async def submit_ballot(self, submission: BallotSubmission) -> StorageConfirmation:
        """
        Accept, register and store a ballot.

        Raises:
            AuthenticationFailure: the session is not authenticated
            BallotRejected: weeding, vote signature or proof failed
            StorageAborted: no valid receipt, stale acceptance or
                out-of-order commit
        """
        session = await self.get_authenticated_session(submission.voter_id, submission.session_token)
        if session is None:
            raise AuthenticationFailure("Session is not authenticated")

        if self._expired(session):
            await self._abandon(session)
            raise AuthenticationFailure("Session expired")

        election = await self.elections.get_election()
        if election is None or not election.is_active:
            await self._abandon(session)
            raise ElectionNotReady("The election is not accepting ballots")

        await self._check_ballot(session, submission, election.election_public_key)

        # Accept
        ciphertext_hash = hash_ciphertext(submission.ciphertext)
        session.state = SessionState.ACCEPTED
        session.accepted_tick = self.clock.current_tick()
        if self.capabilities.check_duplicates:
            session.ciphertext_hash = ciphertext_hash
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            await self._abandon(session)
            raise BallotRejected("Ciphertext already accepted")

        return await self._register_and_store(session, submission)

    async def _check_ballot(
        self,
        session: BallotSession,
        submission: BallotSubmission,
        election_public_key: str
    ) -> None:
        voter_id = session.voter_id
        counter, timestamp = self.session_fields(session)

        if self.capabilities.check_duplicates:
            duplicate = await self.db.scalar(
                select(BallotSession.id).where(
                    BallotSession.ciphertext_hash == hash_ciphertext(submission.ciphertext)
                )
            )
            if duplicate is not None:
                await self._reject(session, "Ciphertext already accepted")

        if self.capabilities.check_vote_signature:
            public_key = await self.credentials.certified_key(voter_id)
            if public_key is None or not verify_vote(
                public_key,
                submission.signature,
                voter_id,
                session.session_token,
                submission.ciphertext,
                counter,
                timestamp,
            ):
                await self._reject(session, "Vote signature does not verify")

        if self.require_proof and self.capabilities.check_proof:
            if not submission.knowledge_proof or not self.proof_system.verify(
                submission.ciphertext,
                submission.knowledge_proof,
                election_public_key,
                voter_id,
            ):
                await self._reject(session, "Knowledge proof does not verify")

    async def _register_and_store(
        self,
        session: BallotSession,
        submission: BallotSubmission
    ) -> StorageConfirmation:
        identifier = generate_identifier()
        ballot_hash = compute_ballot_hash(
            submission.ciphertext, submission.signature, submission.knowledge_proof
        )
        collector_signature = sign_registration_request(
            self.keyring.collector_private_pem, identifier, ballot_hash
        )

        receipt = await self.registration.register(RegistrationRequest(
            identifier=identifier,
            ballot_hash=ballot_hash,
            collector_signature=collector_signature,
        ))
        if receipt is None:
            await self._abort(session, "No registration receipt")

        if self.capabilities.check_receipt and not (
            receipt.identifier == identifier
            and receipt.ballot_hash == ballot_hash
            and verify_receipt(self.keyring.registration_public_pem, identifier, ballot_hash, receipt.signature)
        ):
            await self._abort(session, "Registration receipt does not verify")

        now = self.clock.current_tick()
        if self.capabilities.check_freshness and now - session.accepted_tick > self.freshness_ticks:
            await self._abort(
                session,
                f"Acceptance at tick {session.accepted_tick} is stale at tick {now}"
            )

        counter, timestamp = self.session_fields(session)
        record = StoredBallotRecord(
            voter_id=session.voter_id,
            session_id=session.id,
            session_token=session.session_token,
            identifier=identifier,
            sequence=session.ordinal,
            ciphertext=submission.ciphertext,
            voter_signature=submission.signature,
            knowledge_proof=submission.knowledge_proof,
            ballot_hash=ballot_hash,
            session_counter=counter,
            session_timestamp=timestamp,
            collector_signature=collector_signature,
            receipt=receipt.signature,
            accepted_tick=session.accepted_tick,
            store_tick=now,
        )
        try:
            await self.store.append(record)
        except StorageAborted as e:
            await self._abort(session, e.reason)

        session.state = SessionState.STORED
        await self.db.commit()

        if self.notify_on_store:
            await self.notifier.ballot_stored(session.voter_id, identifier, now)

        return StorageConfirmation(
            session_token=session.session_token,
            identifier=identifier,
            receipt=receipt.signature,
        )

    # Helpers

    async def _get_session(self, voter_id: str, session_token: str) -> Optional[BallotSession]:
        result = await self.db.execute(
            select(BallotSession).where(
                BallotSession.session_token == session_token,
                BallotSession.voter_id == voter_id
            )
        )
        return result.scalar_one_or_none()

    def _expired(self, session: BallotSession) -> bool:
        return self.clock.current_tick() - session.issued_tick > self.session_ttl_ticks

    async def _abandon(self, session: BallotSession) -> None:
        # A rollback expires the session; reload it before touching it again
        if inspect(session).expired_attributes:
            await self.db.refresh(session)
        session.state = SessionState.ABANDONED
        await self.db.commit()

    async def _reject(self, session: BallotSession, reason: str) -> None:
        await self._abandon(session)
        logger.info("Ballot from voter %s rejected: %s", session.voter_id, reason)
        raise BallotRejected(reason)

    async def _abort(self, session: BallotSession, reason: str) -> None:
        await self._abandon(session)
        logger.warning("Storage aborted for voter %s: %s", session.voter_id, reason)
        raise StorageAborted(reason)
