"""
Individual verification schemas.
"""
from typing import Optional
from pydantic import BaseModel, Field

from verivote.schemas.ballot import Ballot


class VerificationCode(BaseModel):
    """Verification code: (identifier, randomness). Kept by the voter only."""

    identifier: str
    randomness: int = Field(..., gt=0)


class VerificationRecord(BaseModel):
    """
    Verification query response: (ballot, storeTimestamp, receipt, sessionToken),
    plus the fields the voter client needs to re-check the signatures.
    """

    identifier: str
    voter_id: str
    voter_certificate_pem: str
    ballot: Ballot
    store_tick: int
    receipt: str
    session_token: str
    session_counter: Optional[int] = None
    session_timestamp: Optional[int] = None
    window_closes_at: int
    redemptions_left: int


class VerificationResult(BaseModel):
    """Outcome of a client-side verification."""

    verified: bool
    identifier: str
    store_tick: int
    reason: Optional[str] = None
