"""
SQLAlchemy database models.
"""
from verivote.models.identity import Identity
from verivote.models.election import Election, Candidate, EligibleVoter, ElectionStatus
from verivote.models.ballot import BallotSession, SessionState, StoredBallotRecord
from verivote.models.registration import RegistrationEntry, VerificationRedemption

__all__ = [
    "Identity",
    "Election",
    "Candidate",
    "EligibleVoter",
    "ElectionStatus",
    "BallotSession",
    "SessionState",
    "StoredBallotRecord",
    "RegistrationEntry",
    "VerificationRedemption",
]
