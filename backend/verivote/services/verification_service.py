"""
Individual verification: the collector-side read path and the voter's
verification client.

Server checks, in order: redemption bound, window open, record still
final (base design only), stored signature and receipt. The client then
re-checks the certificate chain, the signature and the receipt itself
and recomputes the ciphertext from the claimed vote and the code's
randomness.
"""
import logging
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.capabilities import CollectorCapabilities
from verivote.core.config import settings
from verivote.core.exceptions import VerificationDenied
from verivote.core.keyring import ServiceKeyring
from verivote.core.security import compute_ballot_hash
from verivote.crypto.ballot_signing import verify_vote
from verivote.crypto.certificates import certificate_public_key, verify_certificate
from verivote.crypto.homomorphic.cgs_protocol import encrypt_vote
from verivote.models.ballot import StoredBallotRecord
from verivote.models.registration import VerificationRedemption
from verivote.schemas.ballot import Ballot
from verivote.schemas.verification import VerificationCode, VerificationRecord, VerificationResult
from verivote.services.ballot_store import BallotLogReader
from verivote.services.identity_service import CredentialStore
from verivote.services.registration_service import verify_receipt
from verivote.services.time_oracle import TimeOracle, VerificationWindow


logger = logging.getLogger(__name__)


class VerificationService:
    """Server side of the verification read path."""

    def __init__(
        self,
        db: AsyncSession,
        keyring: ServiceKeyring,
        clock: TimeOracle,
        capabilities: Optional[CollectorCapabilities] = None,
        window_ticks: Optional[int] = None,
        max_redemptions: Optional[int] = None,
        requires_final: Optional[bool] = None,
    ):
        self.db = db
        self.keyring = keyring
        self.clock = clock
        self.capabilities = capabilities or CollectorCapabilities()
        self.window_ticks = settings.VERIFICATION_WINDOW_TICKS if window_ticks is None else window_ticks
        self.max_redemptions = (
            settings.MAX_VERIFICATION_REDEMPTIONS if max_redemptions is None else max_redemptions
        )
        self.requires_final = (
            settings.VERIFICATION_REQUIRES_FINAL if requires_final is None else requires_final
        )
        self.reader = BallotLogReader(db)
        self.credentials = CredentialStore(db, keyring)

    def window_for(self, record: StoredBallotRecord) -> VerificationWindow:
        return VerificationWindow.from_store_tick(record.store_tick, self.window_ticks)

    async def query(self, identifier: str) -> VerificationRecord:
        """
        Redeem identifier and return the stored ballot for client checks.

        Raises:
            VerificationDenied: unknown identifier, redemption limit
                reached, window closed, record superseded or stored
                signatures not verifying
        """
        record = await self.reader.get_by_identifier(identifier)
        if record is None:
            raise VerificationDenied("Unknown identifier")

        now = self.clock.current_tick()
        redemptions_left = await self._redeem(identifier, now)

        window = self.window_for(record)
        if self.capabilities.check_verification_window and not window.is_open(now):
            self._deny(identifier, f"Verification window closed at tick {window.closes_at}")

        if (
            self.requires_final
            and self.capabilities.check_verification_final
            and not record.is_final
        ):
            self._deny(identifier, "Ballot has been superseded")

        identity = await self.credentials.lookup(record.voter_id)
        if identity is None:
            self._deny(identifier, "No credential for voter")

        if self.capabilities.check_verification_signatures:
            public_key = await self.credentials.certified_key(record.voter_id)
            if public_key is None or not verify_vote(
                public_key,
                record.voter_signature,
                record.voter_id,
                record.session_token,
                record.ciphertext,
                record.session_counter,
                record.session_timestamp,
            ):
                self._deny(identifier, "Stored vote signature does not verify")
            ballot_hash = compute_ballot_hash(record.ciphertext, record.voter_signature, record.knowledge_proof)
            if ballot_hash != record.ballot_hash:
                self._deny(identifier, "Stored ballot does not match its registered hash")
            if not verify_receipt(
                self.keyring.registration_public_pem, record.identifier, ballot_hash, record.receipt
            ):
                self._deny(identifier, "Stored receipt does not verify")

        return VerificationRecord(
            identifier=record.identifier,
            voter_id=record.voter_id,
            voter_certificate_pem=identity.certificate_pem,
            ballot=Ballot(
                ciphertext=record.ciphertext,
                signature=record.voter_signature,
                knowledge_proof=record.knowledge_proof,
            ),
            store_tick=record.store_tick,
            receipt=record.receipt,
            session_token=record.session_token,
            session_counter=record.session_counter,
            session_timestamp=record.session_timestamp,
            window_closes_at=window.closes_at,
            redemptions_left=redemptions_left,
        )

    async def _redeem(self, identifier: str, now: int) -> int:
        """Count one redemption; returns how many remain."""
        redemption = await self.db.get(VerificationRedemption, identifier)
        if redemption is None:
            redemption = VerificationRedemption(identifier=identifier, count=0)
            self.db.add(redemption)

        if redemption.count >= self.max_redemptions:
            self._deny(identifier, "Redemption limit reached")

        redemption.count += 1
        redemption.last_tick = now
        await self.db.commit()
        return self.max_redemptions - redemption.count

    def _deny(self, identifier: str, reason: str) -> None:
        logger.info("Verification of %s denied: %s", identifier, reason)
        raise VerificationDenied(reason)


class VerificationServer(Protocol):
    async def query(self, identifier: str) -> VerificationRecord:
        ...


class VerificationClient:
    """
    The voter's verification app. Trusts only the issuer certificate,
    the registration service key and the election key.
    """

    def __init__(
        self,
        server: VerificationServer,
        issuer_certificate_pem: str,
        registration_public_pem: str,
        election_public_key: str,
    ):
        self.server = server
        self.issuer_certificate_pem = issuer_certificate_pem
        self.registration_public_pem = registration_public_pem
        self.election_public_key = election_public_key

    async def verify(self, code: VerificationCode, claimed_vote: int) -> VerificationResult:
        """
        Fetch the record for code and check it against claimed_vote.

        Raises:
            VerificationDenied: any check fails
        """
        record = await self.server.query(code.identifier)
        self.check_record(record, code, claimed_vote)
        return VerificationResult(
            verified=True,
            identifier=record.identifier,
            store_tick=record.store_tick,
        )

    def check_record(self, record: VerificationRecord, code: VerificationCode, claimed_vote: int) -> None:
        if record.identifier != code.identifier:
            raise VerificationDenied("Record does not match the verification code")

        if not verify_certificate(record.voter_certificate_pem, self.issuer_certificate_pem, record.voter_id):
            raise VerificationDenied("Voter certificate does not verify")

        ballot = record.ballot
        if not verify_vote(
            certificate_public_key(record.voter_certificate_pem),
            ballot.signature,
            record.voter_id,
            record.session_token,
            ballot.ciphertext,
            record.session_counter,
            record.session_timestamp,
        ):
            raise VerificationDenied("Vote signature does not verify")

        ballot_hash = compute_ballot_hash(ballot.ciphertext, ballot.signature, ballot.knowledge_proof)
        if not verify_receipt(self.registration_public_pem, record.identifier, ballot_hash, record.receipt):
            raise VerificationDenied("Registration receipt does not verify")

        try:
            expected = encrypt_vote(claimed_vote, self.election_public_key, code.randomness)
        except ValueError:
            raise VerificationDenied("Verification code randomness is invalid")

        if expected.encode() != ballot.ciphertext.encode():
            raise VerificationDenied("Ciphertext does not encrypt the claimed vote")
