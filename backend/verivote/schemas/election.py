"""
Election setup schemas.
"""
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator


class CandidateCreate(BaseModel):
    """Candidate on the published list."""

    name: str = Field(..., min_length=1, max_length=200)
    party: Optional[str] = Field(None, max_length=200)
    symbol_number: int = Field(..., ge=1, le=999, description="Value encrypted in a vote for this candidate")


class CandidateResponse(BaseModel):
    name: str
    party: Optional[str] = None
    symbol_number: int


class ElectionSetupRequest(BaseModel):
    """Create the election, its key pair and candidate list."""

    title: str = Field(..., min_length=1, max_length=200)
    candidates: List[CandidateCreate] = Field(..., min_length=1)

    @field_validator("candidates")
    @classmethod
    def symbol_numbers_unique(cls, candidates: List[CandidateCreate]) -> List[CandidateCreate]:
        numbers = [c.symbol_number for c in candidates]
        if len(numbers) != len(set(numbers)):
            raise ValueError("Candidate symbol numbers must be unique")
        return candidates


class ElectionKeyResponse(BaseModel):
    """Election key publication: (electionPublicKey) plus the candidate list."""

    election_id: UUID
    title: str
    status: str
    election_public_key: str = Field(..., description="Exponential ElGamal public key (JSON)")
    candidates: List[CandidateResponse]


class ElectionSetupResponse(ElectionKeyResponse):
    """Setup output; the private key goes to the decryption collaborator only."""

    election_private_key: str = Field(..., description="Hand to the decryption collaborator, never stored")


class VoterRegistrationRequest(BaseModel):
    identities: List[str] = Field(..., min_length=1)


class VoterRegistrationResponse(BaseModel):
    registered: List[str]
    already_registered: List[str] = []


class ElectionCloseResponse(BaseModel):
    election_id: UUID
    status: str
    closed_tick: int
