"""
Ballot session and stored ballot models.
"""
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
import enum

from verivote.core.database import Base
from verivote.models.election import GUID


class SessionState(str, enum.Enum):
    """Ballot session lifecycle."""
    CHALLENGE_ISSUED = "challenge_issued"
    AUTHENTICATED = "authenticated"
    ACCEPTED = "accepted"
    STORED = "stored"
    ABANDONED = "abandoned"


OPEN_STATES = (SessionState.CHALLENGE_ISSUED, SessionState.AUTHENTICATED)


class BallotSession(Base):
    """
    One authentication-and-submission attempt.

    ordinal increases strictly per voter; in counter mode it is the
    counter the voter signed.
    """

    __tablename__ = "ballot_sessions"
    __table_args__ = (
        UniqueConstraint("voter_id", "ordinal", name="uq_session_voter_ordinal"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    voter_id = Column(
        String(128),
        ForeignKey("identities.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    session_token = Column(String(64), unique=True, nullable=False, index=True)
    ordinal = Column(Integer, nullable=False)
    issued_tick = Column(Integer, nullable=False)
    state = Column(
        Enum(SessionState),
        default=SessionState.CHALLENGE_ISSUED,
        nullable=False
    )

    authenticated_tick = Column(Integer, nullable=True)
    accepted_tick = Column(Integer, nullable=True)

    # Set on acceptance; unique across all voters (ballot weeding)
    ciphertext_hash = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<BallotSession(voter_id='{self.voter_id}', ordinal={self.ordinal}, state={self.state})>"


class StoredBallotRecord(Base):
    """
    Entry of a voter's append-only ballot log.

    Records are never deleted; a newer record for the same voter clears
    is_final on the older one.
    """

    __tablename__ = "stored_ballots"
    __table_args__ = (
        UniqueConstraint("voter_id", "sequence", name="uq_stored_voter_sequence"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    voter_id = Column(
        String(128),
        ForeignKey("identities.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    session_id = Column(
        GUID(),
        ForeignKey("ballot_sessions.id"),
        nullable=False
    )
    session_token = Column(String(64), nullable=False)
    identifier = Column(String(64), unique=True, nullable=False, index=True)
    sequence = Column(Integer, nullable=False)

    # Ballot
    ciphertext = Column(Text, nullable=False)
    voter_signature = Column(Text, nullable=False)
    knowledge_proof = Column(Text, nullable=True)
    ballot_hash = Column(String(64), nullable=False)

    # Session binding fields the voter signed in counter mode
    session_counter = Column(Integer, nullable=True)
    session_timestamp = Column(Integer, nullable=True)

    # Two-phase commit artifacts
    collector_signature = Column(Text, nullable=False)
    receipt = Column(Text, nullable=False)

    accepted_tick = Column(Integer, nullable=False)
    store_tick = Column(Integer, nullable=False)
    is_final = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<StoredBallotRecord(voter_id='{self.voter_id}', sequence={self.sequence}, "
            f"identifier='{self.identifier}', is_final={self.is_final})>"
        )
