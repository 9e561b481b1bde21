"""
Registration service and verification service records.
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Text

from verivote.core.database import Base


class RegistrationEntry(Base):
    """
    Receipt issued by the registration service. One per identifier;
    written only by the registration service.
    """

    __tablename__ = "registrations"

    identifier = Column(String(64), primary_key=True)
    ballot_hash = Column(String(64), nullable=False, index=True)
    receipt = Column(Text, nullable=False)
    registered_tick = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<RegistrationEntry(identifier='{self.identifier}')>"


class VerificationRedemption(Base):
    """How many times an identifier has been redeemed for verification."""

    __tablename__ = "verification_redemptions"

    identifier = Column(String(64), primary_key=True)
    count = Column(Integer, default=0, nullable=False)
    last_tick = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<VerificationRedemption(identifier='{self.identifier}', count={self.count})>"
