"""
Pydantic schemas for protocol messages and API payloads.
"""
from verivote.schemas.identity import (
    IdentityIssueRequest,
    IdentityCredential,
    IdentityResponse,
)
from verivote.schemas.election import (
    CandidateCreate,
    CandidateResponse,
    ElectionSetupRequest,
    ElectionSetupResponse,
    ElectionKeyResponse,
    VoterRegistrationRequest,
    VoterRegistrationResponse,
    ElectionCloseResponse,
)
from verivote.schemas.session import (
    ChallengeRequest,
    AuthChallenge,
    AuthResponse,
    SessionGrant,
)
from verivote.schemas.ballot import (
    Ballot,
    BallotSubmission,
    RegistrationRequest,
    RegistrationReceipt,
    StorageConfirmation,
)
from verivote.schemas.verification import (
    VerificationCode,
    VerificationRecord,
    VerificationResult,
)
from verivote.schemas.tally import (
    TallyEntry,
    RejectedRecord,
    TallyReport,
)
from verivote.schemas.clock import ClockResponse, ClockAdvanceRequest

__all__ = [
    # Identity
    "IdentityIssueRequest",
    "IdentityCredential",
    "IdentityResponse",
    # Election
    "CandidateCreate",
    "CandidateResponse",
    "ElectionSetupRequest",
    "ElectionSetupResponse",
    "ElectionKeyResponse",
    "VoterRegistrationRequest",
    "VoterRegistrationResponse",
    "ElectionCloseResponse",
    # Session
    "ChallengeRequest",
    "AuthChallenge",
    "AuthResponse",
    "SessionGrant",
    # Ballot
    "Ballot",
    "BallotSubmission",
    "RegistrationRequest",
    "RegistrationReceipt",
    "StorageConfirmation",
    # Verification
    "VerificationCode",
    "VerificationRecord",
    "VerificationResult",
    # Tally
    "TallyEntry",
    "RejectedRecord",
    "TallyReport",
    # Clock
    "ClockResponse",
    "ClockAdvanceRequest",
]
