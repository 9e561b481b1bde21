"""
Voter application: answers challenges, builds signed ballots and keeps
the verification codes of stored ballots.

The encryption randomness of a cast ballot never leaves the app except
inside a verification code the voter hands to a verification device.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from verivote.core.exceptions import AuthenticationFailure, StorageAborted
from verivote.core.security import compute_ballot_hash
from verivote.crypto.ballot_signing import sign_auth, sign_vote
from verivote.crypto.homomorphic.cgs_protocol import CGSProtocol, encrypt_vote
from verivote.crypto.zkp.proof_system import ProofSystem, get_proof_system
from verivote.schemas.ballot import BallotSubmission, StorageConfirmation
from verivote.schemas.session import AuthChallenge, AuthResponse
from verivote.schemas.verification import VerificationCode, VerificationResult
from verivote.services.registration_service import verify_receipt
from verivote.services.verification_service import VerificationClient


logger = logging.getLogger(__name__)


@dataclass
class CastBallot:
    """What the app remembers about a submitted ballot."""
    session_token: str
    vote: int
    randomness: int
    ballot_hash: str


class VoterApp:
    """Client side of one voter's ballot sessions."""

    def __init__(
        self,
        identity: str,
        private_key_pem: str,
        election_public_key: str,
        registration_public_pem: str,
        proof_system: Optional[ProofSystem] = None,
        attach_proof: bool = False,
    ):
        self.identity = identity
        self.private_key_pem = private_key_pem
        self.election_public_key = election_public_key
        self.registration_public_pem = registration_public_pem
        self.proof_system = proof_system or get_proof_system()
        self.attach_proof = attach_proof
        self.cgs = CGSProtocol()

        self.last_counter: Optional[int] = None
        self.pending: Dict[str, CastBallot] = {}
        self.codes: Dict[str, VerificationCode] = {}
        self.votes: Dict[str, int] = {}

    def answer_challenge(self, challenge: AuthChallenge) -> AuthResponse:
        """
        Sign the challenge.

        In counter mode a counter that does not exceed the last one
        answered is a replay and is refused.
        """
        if challenge.voter_id != self.identity:
            raise AuthenticationFailure("Challenge is for another voter")

        if challenge.counter is not None:
            if self.last_counter is not None and challenge.counter <= self.last_counter:
                logger.warning(
                    "Refusing replayed challenge counter %d (last %d)",
                    challenge.counter, self.last_counter
                )
                raise AuthenticationFailure("Challenge counter did not increase")
            self.last_counter = challenge.counter

        signature = sign_auth(
            self.private_key_pem,
            challenge.voter_id,
            challenge.session_token,
            challenge.counter,
            challenge.timestamp,
        )
        return AuthResponse(**challenge.model_dump(), signature=signature)

    def cast(self, vote: int, challenge: AuthChallenge, randomness: Optional[int] = None) -> BallotSubmission:
        """Encrypt and sign vote for the authenticated session of challenge."""
        if randomness is None:
            randomness = self.cgs.random_exponent()
        ciphertext = encrypt_vote(vote, self.election_public_key, randomness)
        signature = sign_vote(
            self.private_key_pem,
            self.identity,
            challenge.session_token,
            ciphertext,
            challenge.counter,
            challenge.timestamp,
        )

        knowledge_proof = None
        if self.attach_proof:
            knowledge_proof = self.proof_system.prove(
                ciphertext, randomness, self.election_public_key, self.identity
            )

        self.pending[challenge.session_token] = CastBallot(
            session_token=challenge.session_token,
            vote=vote,
            randomness=randomness,
            ballot_hash=compute_ballot_hash(ciphertext, signature, knowledge_proof),
        )

        return BallotSubmission(
            voter_id=self.identity,
            session_token=challenge.session_token,
            ciphertext=ciphertext,
            signature=signature,
            knowledge_proof=knowledge_proof,
        )

    def accept_confirmation(self, confirmation: StorageConfirmation) -> VerificationCode:
        """
        Check the receipt in a storage confirmation and derive the
        verification code for that ballot.

        Raises:
            StorageAborted: no ballot was cast in that session, or the
                receipt does not cover the ballot the app built
        """
        cast = self.pending.pop(confirmation.session_token, None)
        if cast is None:
            raise StorageAborted("No ballot was cast in this session")

        if not verify_receipt(
            self.registration_public_pem,
            confirmation.identifier,
            cast.ballot_hash,
            confirmation.receipt,
        ):
            raise StorageAborted("Confirmation receipt does not cover the cast ballot")

        code = VerificationCode(identifier=confirmation.identifier, randomness=cast.randomness)
        self.codes[confirmation.identifier] = code
        self.votes[confirmation.identifier] = cast.vote
        return code

    async def verify(
        self,
        client: VerificationClient,
        code: VerificationCode,
        claimed_vote: Optional[int] = None
    ) -> VerificationResult:
        """Check a stored ballot; claimed_vote defaults to the vote the app cast."""
        if claimed_vote is None:
            claimed_vote = self.votes[code.identifier]
        return await client.verify(code, claimed_vote)
