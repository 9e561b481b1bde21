"""
Ballot lifecycle services.
"""
from verivote.services.time_oracle import TimeOracle, VerificationWindow, get_time_oracle
from verivote.services.identity_service import IdentityIssuer, CredentialStore
from verivote.services.election_service import ElectionService
from verivote.services.ballot_store import BallotLogReader, BallotStore
from verivote.services.registration_service import (
    RegistrationService,
    RegistrationGateway,
    LocalRegistrationGateway,
    HttpRegistrationGateway,
)
from verivote.services.notifier import VoterNotifier, LoggingNotifier, WebhookNotifier
from verivote.services.vote_collector import VoteCollector
from verivote.services.verification_service import VerificationService, VerificationClient
from verivote.services.tally_service import TallyProcessor, DecryptionCollaborator

__all__ = [
    "TimeOracle",
    "VerificationWindow",
    "get_time_oracle",
    "IdentityIssuer",
    "CredentialStore",
    "ElectionService",
    "BallotLogReader",
    "BallotStore",
    "RegistrationService",
    "RegistrationGateway",
    "LocalRegistrationGateway",
    "HttpRegistrationGateway",
    "VoterNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "VoteCollector",
    "VerificationService",
    "VerificationClient",
    "TallyProcessor",
    "DecryptionCollaborator",
]
