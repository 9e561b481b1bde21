"""
Tally selection: one ciphertext per voter after the election closes.

Decryption and aggregation belong to an external collaborator; this
service only decides which stored ballot counts for each voter.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.exceptions import ElectionNotReady, TallyFault
from verivote.core.keyring import ServiceKeyring
from verivote.core.security import compute_ballot_hash
from verivote.crypto.ballot_signing import verify_vote
from verivote.models.ballot import StoredBallotRecord
from verivote.models.election import ElectionStatus
from verivote.schemas.tally import RejectedRecord, TallyEntry, TallyReport
from verivote.services.ballot_store import BallotLogReader, ballot_order, latest_record
from verivote.services.election_service import ElectionService
from verivote.services.identity_service import CredentialStore
from verivote.services.registration_service import verify_receipt, verify_registration_request
from verivote.services.time_oracle import TimeOracle


logger = logging.getLogger(__name__)


class DecryptionCollaborator(ABC):
    """Receives the selected ciphertexts; decrypts or mixes them elsewhere."""

    @abstractmethod
    async def consume(self, ciphertexts: List[str]) -> Dict[int, int]:
        """Return vote counts keyed by choice."""


class TallyProcessor:
    """Selects each voter's final ballot from the stored ballot log."""

    def __init__(self, db: AsyncSession, keyring: ServiceKeyring, clock: TimeOracle):
        self.db = db
        self.keyring = keyring
        self.clock = clock
        self.reader = BallotLogReader(db)
        self.credentials = CredentialStore(db, keyring)
        self.elections = ElectionService(db, clock)

    async def select_final_ballots(self) -> TallyReport:
        """
        Re-verify every stored record and emit one ciphertext per voter.

        Raises:
            ElectionNotReady: the election has not been closed
            TallyFault: a voter has zero or several final records, or
                two valid records share the latest position
        """
        election = await self.elections.require_election()
        if election.status != ElectionStatus.CLOSED:
            raise ElectionNotReady("Tally can only run after the election is closed")

        entries: List[TallyEntry] = []
        rejected: List[RejectedRecord] = []

        for voter_id, records in (await self.reader.records_by_voter()).items():
            finals = sum(1 for r in records if r.is_final)
            if finals != 1:
                logger.error("Voter %s has %d final ballots", voter_id, finals)
                raise TallyFault(f"{finals} final ballots stored", voter_id)

            if not await self.elections.is_eligible(voter_id):
                for record in records:
                    self._reject(rejected, record, "Voter is not eligible")
                continue

            public_key = await self.credentials.certified_key(voter_id)
            valid = []
            for record in records:
                reason = self._check_record(record, public_key)
                if reason is None:
                    valid.append(record)
                else:
                    self._reject(rejected, record, reason)

            selected = latest_record(valid)
            if selected is None:
                continue
            position = ballot_order(selected)
            if sum(1 for r in valid if ballot_order(r) == position) > 1:
                raise TallyFault(f"Several valid ballots at position {position}", voter_id)

            entries.append(TallyEntry(voter_id=voter_id, ciphertext=selected.ciphertext))

        logger.info("Tally selected %d ballots, rejected %d records", len(entries), len(rejected))
        return TallyReport(closed_tick=election.closed_tick, entries=entries, rejected=rejected)

    def _reject(self, rejected: List[RejectedRecord], record: StoredBallotRecord, reason: str) -> None:
        logger.warning("Tally rejected ballot %s of voter %s: %s", record.identifier, record.voter_id, reason)
        rejected.append(RejectedRecord(
            voter_id=record.voter_id,
            identifier=record.identifier,
            reason=reason,
        ))

    def _check_record(self, record: StoredBallotRecord, public_key: Optional[str]) -> Optional[str]:
        """Reason the record fails re-verification, or None."""
        if public_key is None:
            return "Voter certificate does not verify"

        if not verify_vote(
            public_key,
            record.voter_signature,
            record.voter_id,
            record.session_token,
            record.ciphertext,
            record.session_counter,
            record.session_timestamp,
        ):
            return "Vote signature does not verify"

        if record.session_counter is not None and record.session_counter != record.sequence:
            return "Signed session counter does not match the stored sequence"

        ballot_hash = compute_ballot_hash(record.ciphertext, record.voter_signature, record.knowledge_proof)
        if ballot_hash != record.ballot_hash:
            return "Ballot does not match its registered hash"

        if not verify_receipt(
            self.keyring.registration_public_pem, record.identifier, ballot_hash, record.receipt
        ):
            return "Registration receipt does not verify"

        if not verify_registration_request(
            self.keyring.collector_public_pem, record.identifier, ballot_hash, record.collector_signature
        ):
            return "Collector signature does not verify"

        return None

    async def forward(self, collaborator: DecryptionCollaborator) -> Dict[int, int]:
        """Select the final ballots and hand their ciphertexts over."""
        report = await self.select_final_ballots()
        return await collaborator.consume(report.ciphertexts)
