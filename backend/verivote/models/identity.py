"""
Identity database model.
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Text

from verivote.core.database import Base


class Identity(Base):
    """
    An issued identity. The primary key makes the certificate unique
    per identity.
    """

    __tablename__ = "identities"

    id = Column(String(128), primary_key=True)
    public_key_pem = Column(Text, nullable=False)
    certificate_pem = Column(Text, nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Identity(id='{self.id}')>"
