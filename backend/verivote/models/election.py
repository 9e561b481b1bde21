"""
Election, candidate and eligibility database models.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Text, Integer, ForeignKey, Enum, TypeDecorator, CHAR
from sqlalchemy.orm import relationship
import enum

from verivote.core.database import Base


class GUID(TypeDecorator):
    """Platform-independent GUID type for SQLite and PostgreSQL."""
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            from sqlalchemy.dialects.postgresql import UUID
            return dialect.type_descriptor(UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return str(value)
        else:
            if isinstance(value, uuid.UUID):
                return str(value)
            else:
                return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid.UUID):
            return uuid.UUID(value)
        return value


class ElectionStatus(str, enum.Enum):
    """Election status enumeration."""
    ACTIVE = "active"
    CLOSED = "closed"


class Election(Base):
    """
    The election. A deployment holds exactly one row, created together
    with the single published election key.
    """

    __tablename__ = "elections"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    status = Column(
        Enum(ElectionStatus),
        default=ElectionStatus.ACTIVE,
        nullable=False
    )

    # Exponential ElGamal public key (JSON)
    election_public_key = Column(Text, nullable=False)

    # Logical clock ticks
    opened_tick = Column(Integer, nullable=False)
    closed_tick = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    candidates = relationship(
        "Candidate",
        back_populates="election",
        cascade="all, delete-orphan",
        order_by="Candidate.display_order",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Election(id={self.id}, title='{self.title}', status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status == ElectionStatus.ACTIVE


class Candidate(Base):
    """Candidate on the ballot. symbol_number is the encrypted vote value."""

    __tablename__ = "candidates"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    election_id = Column(
        GUID(),
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False
    )
    name = Column(String(200), nullable=False)
    party = Column(String(200), nullable=True)
    symbol_number = Column(Integer, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    election = relationship("Election", back_populates="candidates")

    def __repr__(self) -> str:
        return f"<Candidate(name='{self.name}', symbol_number={self.symbol_number})>"


class EligibleVoter(Base):
    """An issued identity registered to vote in the election."""

    __tablename__ = "eligible_voters"

    identity_id = Column(
        String(128),
        ForeignKey("identities.id", ondelete="CASCADE"),
        primary_key=True
    )
    registered_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<EligibleVoter(identity_id='{self.identity_id}')>"
