"""
Election setup: key pair, candidate list and eligible voters.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from verivote.core.exceptions import ElectionAlreadySetUp, ElectionNotReady, UnknownIdentity
from verivote.crypto.homomorphic.cgs_protocol import CGSProtocol
from verivote.models.election import Candidate, Election, ElectionStatus, EligibleVoter
from verivote.models.identity import Identity
from verivote.schemas.election import CandidateCreate
from verivote.services.time_oracle import TimeOracle


logger = logging.getLogger(__name__)


class ElectionService:
    """Service for the single election of a deployment."""

    def __init__(self, db: AsyncSession, clock: TimeOracle):
        self.db = db
        self.clock = clock
        self.cgs = CGSProtocol()

    async def setup_election(
        self,
        title: str,
        candidates: List[CandidateCreate]
    ) -> Tuple[Election, str]:
        """
        Generate and publish the election key pair and candidate list.

        Returns:
            Tuple of (election, serialized private key). The private key
            is meant for the decryption collaborator and is not stored.

        Raises:
            ElectionAlreadySetUp: a key has already been published
        """
        if await self.get_election() is not None:
            raise ElectionAlreadySetUp("The election key has already been published")

        public_key, private_key = self.cgs.generate_keypair()

        election = Election(
            title=title,
            status=ElectionStatus.ACTIVE,
            election_public_key=self.cgs.serialize_public_key(public_key),
            opened_tick=self.clock.current_tick(),
        )
        self.db.add(election)
        await self.db.flush()

        for idx, candidate_data in enumerate(candidates):
            self.db.add(Candidate(
                election_id=election.id,
                name=candidate_data.name,
                party=candidate_data.party,
                symbol_number=candidate_data.symbol_number,
                display_order=idx,
            ))

        await self.db.commit()
        await self.db.refresh(election)

        logger.info(
            "Election %s set up with %d candidates at tick %d",
            election.id, len(candidates), election.opened_tick
        )
        return election, self.cgs.serialize_private_key(private_key)

    async def get_election(self) -> Optional[Election]:
        result = await self.db.execute(select(Election))
        return result.scalars().first()

    async def require_election(self) -> Election:
        election = await self.get_election()
        if election is None:
            raise ElectionNotReady("No election has been set up")
        return election

    async def require_active_election(self) -> Election:
        election = await self.require_election()
        if not election.is_active:
            raise ElectionNotReady("The election is closed")
        return election

    async def get_election_key(self) -> str:
        election = await self.require_election()
        return election.election_public_key

    async def register_voters(self, identities: List[str]) -> Tuple[List[str], List[str]]:
        """
        Register issued identities as eligible voters.

        Returns:
            Tuple of (newly registered, already registered)

        Raises:
            UnknownIdentity: an identity has no issued credential
        """
        await self.require_election()

        registered, already = [], []
        for identity in dict.fromkeys(identities):
            if await self.db.get(Identity, identity) is None:
                await self.db.rollback()
                raise UnknownIdentity(f"Identity {identity!r} has not been issued")

            if await self.db.get(EligibleVoter, identity) is not None:
                already.append(identity)
                continue

            self.db.add(EligibleVoter(identity_id=identity))
            registered.append(identity)

        await self.db.commit()
        logger.info("Registered %d eligible voters", len(registered))
        return registered, already

    async def register_voter(self, identity: str) -> bool:
        registered, _ = await self.register_voters([identity])
        return bool(registered)

    async def is_eligible(self, identity: str) -> bool:
        return await self.db.get(EligibleVoter, identity) is not None

    async def close_election(self) -> Election:
        """Stop accepting ballots; the tally may run afterwards."""
        election = await self.require_active_election()

        election.status = ElectionStatus.CLOSED
        election.closed_tick = self.clock.current_tick()
        await self.db.commit()

        logger.info("Election %s closed at tick %d", election.id, election.closed_tick)
        return election
