"""
Ballot session authentication schemas.
"""
from typing import Optional
from pydantic import BaseModel, Field


class ChallengeRequest(BaseModel):
    voter_id: str = Field(..., min_length=1, max_length=128)


class AuthChallenge(BaseModel):
    """
    Auth challenge: (voterId, sessionToken[, counter, timestamp]).

    counter and timestamp are only set in counter mode.
    """

    voter_id: str
    session_token: str
    counter: Optional[int] = None
    timestamp: Optional[int] = None


class AuthResponse(AuthChallenge):
    """Auth response: the challenge plus the voter's signature over it."""

    signature: str = Field(..., description="Base64 Ed25519 signature over the 'auth' message")


class SessionGrant(BaseModel):
    """Bearer token bound to an authenticated ballot session."""

    access_token: str
    token_type: str = "bearer"
    session_token: str
    expires_in: int
