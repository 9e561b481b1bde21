"""
Ballot submission and registration commit schemas.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Ballot(BaseModel):
    """(ciphertext, voter signature[, knowledge proof]). Immutable."""

    model_config = ConfigDict(frozen=True)

    ciphertext: str = Field(..., description="Canonical ElGamal ciphertext JSON")
    signature: str = Field(..., description="Voter signature over the 'vote' message")
    knowledge_proof: Optional[str] = Field(None, description="Proof over the ciphertext")


class BallotSubmission(BaseModel):
    """Ballot submission: (voterId, sessionToken, ciphertext, signature[, knowledgeProof])."""

    voter_id: str
    session_token: str
    ciphertext: str
    signature: str
    knowledge_proof: Optional[str] = None

    @property
    def ballot(self) -> Ballot:
        return Ballot(
            ciphertext=self.ciphertext,
            signature=self.signature,
            knowledge_proof=self.knowledge_proof,
        )


class RegistrationRequest(BaseModel):
    """Registration request: (identifier, hash(ballot), collectorSignature)."""

    identifier: str
    ballot_hash: str
    collector_signature: str


class RegistrationReceipt(BaseModel):
    """Registration service signature over hash(identifier, hash(ballot))."""

    identifier: str
    ballot_hash: str
    signature: str


class StorageConfirmation(BaseModel):
    """Storage confirmation: (sessionToken, identifier, receipt)."""

    session_token: str
    identifier: str
    receipt: str = Field(..., description="Registration receipt signature")
