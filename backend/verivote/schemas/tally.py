"""
Tally schemas.
"""
from typing import List
from pydantic import BaseModel


class TallyEntry(BaseModel):
    """Tally output per voter: (ciphertext)."""

    voter_id: str
    ciphertext: str


class RejectedRecord(BaseModel):
    """A stored record that failed certificate-chain re-verification."""

    voter_id: str
    identifier: str
    reason: str


class TallyReport(BaseModel):
    closed_tick: int
    entries: List[TallyEntry]
    rejected: List[RejectedRecord] = []

    @property
    def ciphertexts(self) -> List[str]:
        return [entry.ciphertext for entry in self.entries]
