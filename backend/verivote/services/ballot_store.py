"""
Per-voter append-only ballot log.

Only the vote collector holds a BallotStore; the verification service
and the tally processor get a BallotLogReader.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from verivote.core.exceptions import StorageAborted
from verivote.models.ballot import StoredBallotRecord


logger = logging.getLogger(__name__)


class BallotLogReader:
    """Read-only view of the stored ballot log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def records_for(self, voter_id: str) -> List[StoredBallotRecord]:
        """A voter's records in storage order."""
        result = await self.db.execute(
            select(StoredBallotRecord)
            .where(StoredBallotRecord.voter_id == voter_id)
            .order_by(StoredBallotRecord.sequence)
        )
        return list(result.scalars().all())

    async def final_for(self, voter_id: str) -> Optional[StoredBallotRecord]:
        result = await self.db.execute(
            select(StoredBallotRecord).where(
                StoredBallotRecord.voter_id == voter_id,
                StoredBallotRecord.is_final == True  # noqa: E712
            )
        )
        return result.scalars().first()

    async def get_by_identifier(self, identifier: str) -> Optional[StoredBallotRecord]:
        result = await self.db.execute(
            select(StoredBallotRecord).where(StoredBallotRecord.identifier == identifier)
        )
        return result.scalar_one_or_none()

    async def all_records(self) -> List[StoredBallotRecord]:
        """Every stored record, grouped by voter in storage order."""
        result = await self.db.execute(
            select(StoredBallotRecord).order_by(
                StoredBallotRecord.voter_id,
                StoredBallotRecord.sequence
            )
        )
        return list(result.scalars().all())

    async def records_by_voter(self) -> Dict[str, List[StoredBallotRecord]]:
        grouped: Dict[str, List[StoredBallotRecord]] = {}
        for record in await self.all_records():
            grouped.setdefault(record.voter_id, []).append(record)
        return grouped


class BallotStore(BallotLogReader):
    """Exclusive writer of the ballot log."""

    async def append(self, record: StoredBallotRecord) -> StoredBallotRecord:
        """
        Append record as the voter's new final ballot.

        The previous final record is flagged superseded, never removed.

        Raises:
            StorageAborted: record.sequence does not follow the voter's
                last stored sequence, or the identifier is already used
        """
        last = await self._last_record(record.voter_id)
        if last is not None and record.sequence <= last.sequence:
            raise StorageAborted(
                f"Out-of-order commit for voter {record.voter_id}: "
                f"sequence {record.sequence} after {last.sequence}"
            )

        await self.db.execute(
            update(StoredBallotRecord)
            .where(
                StoredBallotRecord.voter_id == record.voter_id,
                StoredBallotRecord.is_final == True  # noqa: E712
            )
            .values(is_final=False)
            .execution_options(synchronize_session="fetch")
        )

        record.is_final = True
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise StorageAborted(f"Conflicting commit for voter {record.voter_id}")

        logger.info(
            "Stored ballot %s for voter %s at sequence %d (tick %d)",
            record.identifier, record.voter_id, record.sequence, record.store_tick
        )
        return record

    async def _last_record(self, voter_id: str) -> Optional[StoredBallotRecord]:
        result = await self.db.execute(
            select(StoredBallotRecord)
            .where(StoredBallotRecord.voter_id == voter_id)
            .order_by(StoredBallotRecord.sequence.desc())
            .limit(1)
        )
        return result.scalars().first()


def ballot_order(record: StoredBallotRecord) -> int:
    """Position of record in its voter's log: the signed counter when present."""
    if record.session_counter is not None:
        return record.session_counter
    return record.sequence


def latest_record(records: List[StoredBallotRecord]) -> Optional[StoredBallotRecord]:
    """
    The record latest in ballot order, or None for an empty list.

    Records sharing a store tick are ordered by sequence, or by the
    voter-signed counter in counter mode, so the result depends only on
    the records themselves.
    """
    if not records:
        return None
    return max(records, key=ballot_order)
